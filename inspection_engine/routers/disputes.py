# inspection_engine/routers/disputes.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Actor, get_actor
from ..db import get_db
from ..schemas import DisputeEscalate, DisputeOut, DisputeRaise, DisputeResponse
from ..services import disputes

router = APIRouter(tags=["disputes"])


@router.get("/inspections/{inspection_id}/disputes", response_model=list[DisputeOut])
def list_disputes(inspection_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return [DisputeOut.model_validate(d) for d in disputes.list_disputes(db, actor=actor, inspection_id=inspection_id)]


@router.post("/inspections/{inspection_id}/disputes", response_model=DisputeOut)
def raise_dispute(inspection_id: int, payload: DisputeRaise, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    row = disputes.raise_item_dispute(
        db,
        actor=actor,
        inspection_id=inspection_id,
        item_id=payload.item_id,
        reason=payload.reason,
        proposed_condition=payload.proposed_condition,
    )
    return DisputeOut.model_validate(row)


@router.post("/disputes/{dispute_id}/respond", response_model=DisputeOut)
def respond(dispute_id: int, payload: DisputeResponse, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    row = disputes.respond_to_dispute(
        db,
        actor=actor,
        dispute_id=dispute_id,
        response=payload.response,
        resolved_condition=payload.resolved_condition,
        resolution_notes=payload.resolution_notes,
    )
    return DisputeOut.model_validate(row)


@router.post("/disputes/{dispute_id}/escalate", response_model=DisputeOut)
def escalate(dispute_id: int, payload: DisputeEscalate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return DisputeOut.model_validate(disputes.escalate_dispute(db, actor=actor, dispute_id=dispute_id, notes=payload.notes))
