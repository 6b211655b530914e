# inspection_engine/routers/outsourcing.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Actor, get_actor
from ..db import get_db
from ..schemas import (
    AssignmentAccept,
    AssignmentCreate,
    AssignmentDecline,
    AssignmentOut,
    AssignmentRating,
    TokenCreate,
    TokenIssuedOut,
    TokenOut,
)
from ..services import access_tokens
from ..services import outsourcing

router = APIRouter(tags=["outsourcing"])


# -----------------------------
# Assignments
# -----------------------------
@router.get("/inspections/{inspection_id}/assignments", response_model=list[AssignmentOut])
def list_assignments(inspection_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    rows = outsourcing.list_assignments(db, actor=actor, inspection_id=inspection_id)
    return [AssignmentOut.model_validate(r) for r in rows]


@router.post("/inspections/{inspection_id}/assignments", response_model=AssignmentOut)
def create_assignment(
    inspection_id: int,
    payload: AssignmentCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    asg = outsourcing.create_assignment(db, actor=actor, inspection_id=inspection_id, **payload.model_dump())
    return AssignmentOut.model_validate(asg)


@router.post("/assignments/{assignment_id}/accept", response_model=AssignmentOut)
def accept(assignment_id: int, payload: AssignmentAccept, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    asg = outsourcing.accept_assignment(
        db,
        actor=actor,
        assignment_id=assignment_id,
        confirmed_date=payload.confirmed_date,
        confirmed_time=payload.confirmed_time,
    )
    return AssignmentOut.model_validate(asg)


@router.post("/assignments/{assignment_id}/decline", response_model=AssignmentOut)
def decline(assignment_id: int, payload: AssignmentDecline, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    asg = outsourcing.decline_assignment(db, actor=actor, assignment_id=assignment_id, reason=payload.reason)
    return AssignmentOut.model_validate(asg)


@router.post("/assignments/{assignment_id}/complete", response_model=AssignmentOut)
def complete(assignment_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return AssignmentOut.model_validate(outsourcing.complete_assignment(db, actor=actor, assignment_id=assignment_id))


@router.post("/assignments/{assignment_id}/rating", response_model=AssignmentOut)
def rate(assignment_id: int, payload: AssignmentRating, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    asg = outsourcing.rate_inspector(
        db, actor=actor, assignment_id=assignment_id, rating=payload.rating, review_text=payload.review_text
    )
    return AssignmentOut.model_validate(asg)


@router.post("/assignments/{assignment_id}/paid", response_model=AssignmentOut)
def mark_paid(assignment_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return AssignmentOut.model_validate(outsourcing.mark_assignment_paid(db, actor=actor, assignment_id=assignment_id))


# -----------------------------
# Access links (issuer side)
# -----------------------------
@router.get("/inspections/{inspection_id}/access-tokens", response_model=list[TokenOut])
def list_tokens(inspection_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return [TokenOut.model_validate(t) for t in access_tokens.list_tokens(db, actor=actor, inspection_id=inspection_id)]


@router.post("/inspections/{inspection_id}/access-tokens", response_model=TokenIssuedOut)
def issue_token(inspection_id: int, payload: TokenCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    row = access_tokens.generate_access_token(
        db, actor=actor, inspection_id=inspection_id, assignment_id=payload.assignment_id, email=payload.email
    )
    base = TokenOut.model_validate(row).model_dump()
    return TokenIssuedOut(**base, token=row.token, link=access_tokens.access_link(row.token))


@router.post("/access-tokens/{token_id}/revoke", response_model=TokenOut)
def revoke_token(token_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return TokenOut.model_validate(access_tokens.revoke_access_token(db, actor=actor, token_id=token_id))
