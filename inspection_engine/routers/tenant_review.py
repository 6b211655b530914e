# inspection_engine/routers/tenant_review.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Actor, get_actor
from ..db import get_db
from ..schemas import (
    ReviewProgressOut,
    RoomAcknowledgeRequest,
    RoomAcknowledgmentOut,
    TenantSubmissionCreate,
    TenantSubmissionOut,
    TenantSubmissionReview,
)
from ..services import tenant_review

router = APIRouter(tags=["tenant-review"])


@router.get("/inspections/{inspection_id}/submissions", response_model=list[TenantSubmissionOut])
def list_submissions(
    inspection_id: int,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    rows = tenant_review.list_submissions(db, actor=actor, inspection_id=inspection_id, status=status)
    return [TenantSubmissionOut.model_validate(r) for r in rows]


@router.post("/inspections/{inspection_id}/submissions", response_model=TenantSubmissionOut)
def submit(
    inspection_id: int,
    payload: TenantSubmissionCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    row = tenant_review.submit_tenant_submission(
        db,
        actor=actor,
        inspection_id=inspection_id,
        room_id=payload.room_id,
        submission_type=payload.submission_type,
        item_id=payload.item_id,
        description=payload.description,
        original_description=payload.original_description,
        image_url=payload.image_url,
        storage_path=payload.storage_path,
    )
    return TenantSubmissionOut.model_validate(row)


@router.post("/submissions/{submission_id}/review", response_model=TenantSubmissionOut)
def review(
    submission_id: int,
    payload: TenantSubmissionReview,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    row = tenant_review.review_submission(
        db, actor=actor, submission_id=submission_id, decision=payload.status, notes=payload.reviewer_notes
    )
    return TenantSubmissionOut.model_validate(row)


@router.post("/rooms/{room_id}/acknowledge", response_model=RoomAcknowledgmentOut)
def acknowledge_room(
    room_id: int,
    payload: RoomAcknowledgeRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    row = tenant_review.acknowledge_room(db, actor=actor, room_id=room_id, signature_url=payload.signature_url)
    return RoomAcknowledgmentOut.model_validate(row)


@router.get("/inspections/{inspection_id}/room-acknowledgments", response_model=list[RoomAcknowledgmentOut])
def list_room_acknowledgments(inspection_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    rows = tenant_review.list_room_acknowledgments(db, actor=actor, inspection_id=inspection_id)
    return [RoomAcknowledgmentOut.model_validate(r) for r in rows]


@router.get("/inspections/{inspection_id}/review-progress", response_model=ReviewProgressOut)
def review_progress(inspection_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return ReviewProgressOut.model_validate(tenant_review.review_progress(db, actor=actor, inspection_id=inspection_id))
