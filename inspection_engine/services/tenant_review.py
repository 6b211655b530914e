# inspection_engine/services/tenant_review.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Actor, require_capability
from ..domain.audit import audit_write
from ..domain.enums import SubmissionStatus, SubmissionType
from ..domain.errors import NotFound, ValidationError
from ..models import Inspection, RoomAcknowledgment, TenantSubmission
from .disputes import OPEN_FOR_DISPUTES
from .inspection_store import ensure_party, load_inspection_tree, must_get_inspection, must_get_item, must_get_room

log = logging.getLogger("inspections.review")

# same window as item disputes: while the tenant reviews, and while disputed
OPEN_FOR_REVIEW = OPEN_FOR_DISPUTES

REVIEW_DECISIONS = frozenset(
    {SubmissionStatus.APPROVED.value, SubmissionStatus.REJECTED.value, SubmissionStatus.RESOLVED.value}
)


def _utcnow() -> datetime:
    return datetime.utcnow()


def _ensure_review_open(insp: Inspection, what: str) -> None:
    if insp.status not in OPEN_FOR_REVIEW:
        raise ValidationError(f"inspection is '{insp.status}'; {what} only during tenant review", field="status")


def _text(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def must_get_submission(db: Session, submission_id: int) -> TenantSubmission:
    row = db.get(TenantSubmission, submission_id)
    if row is None:
        raise NotFound("submission", submission_id)
    return row


# -----------------------------
# Tenant submissions
# -----------------------------
def submit_tenant_submission(
    db: Session,
    *,
    actor: Actor,
    inspection_id: int,
    room_id: int,
    submission_type: str,
    description: Optional[str] = None,
    original_description: Optional[str] = None,
    item_id: Optional[int] = None,
    image_url: Optional[str] = None,
    storage_path: Optional[str] = None,
) -> TenantSubmission:
    """
    Something the tenant wants on the record without disputing a rating: an extra
    photo, a corrected description, an item the inspector missed, or a question.
    """
    require_capability(actor, "submission.create")
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor)
    _ensure_review_open(insp, "submissions are accepted")

    try:
        kind = SubmissionType(str(submission_type or "").strip().lower()).value
    except ValueError:
        raise ValidationError(f"unknown submission type {submission_type!r}", field="submission_type")

    room = must_get_room(db, room_id, scope_inspection_id=insp.id)
    if item_id is not None:
        item = must_get_item(db, item_id, scope_inspection_id=insp.id)
        if item.room_id != room.id:
            raise ValidationError(f"item {item.id} is not in room {room.id}", field="item_id")

    description = _text(description)
    image_url = _text(image_url)
    if kind == SubmissionType.NEW_PHOTO.value and not image_url:
        raise ValidationError("a photo submission needs image_url", field="image_url")
    if kind == SubmissionType.DESCRIPTION_ALTERATION.value and item_id is None:
        raise ValidationError("a description alteration names the item it corrects", field="item_id")
    if kind != SubmissionType.NEW_PHOTO.value and not description:
        raise ValidationError("description is required", field="description")

    row = TenantSubmission(
        inspection_id=insp.id,
        room_id=room.id,
        item_id=item_id,
        submitted_by=str(actor.user_id),
        submission_type=kind,
        description=description,
        original_description=_text(original_description),
        image_url=image_url,
        storage_path=_text(storage_path),
        status=SubmissionStatus.PENDING.value,
    )
    db.add(row)
    db.flush()
    audit_write(
        db,
        actor=actor,
        action="submission.create",
        entity_type="TenantSubmission",
        entity_id=row.id,
        after={"inspection_id": insp.id, "room_id": room.id, "item_id": item_id, "type": kind},
    )
    db.commit()
    log.info("tenant submission received", extra={"inspection_id": insp.id, "actor_role": actor.role})
    return row


def review_submission(
    db: Session,
    *,
    actor: Actor,
    submission_id: int,
    decision: str,
    notes: Optional[str] = None,
) -> TenantSubmission:
    require_capability(actor, "submission.review")
    row = must_get_submission(db, submission_id)
    insp = must_get_inspection(db, row.inspection_id)
    ensure_party(db, insp, actor)

    decision = str(decision or "").strip().lower()
    if decision not in REVIEW_DECISIONS:
        raise ValidationError(f"decision must be one of {sorted(REVIEW_DECISIONS)}", field="status")
    if row.status != SubmissionStatus.PENDING.value:
        raise ValidationError(f"submission {row.id} was already {row.status}", field="status")

    row.status = decision
    row.reviewer_notes = _text(notes)
    row.reviewed_at = _utcnow()
    row.reviewed_by = actor.user_id
    audit_write(
        db,
        actor=actor,
        action="submission.review",
        entity_type="TenantSubmission",
        entity_id=row.id,
        before={"status": SubmissionStatus.PENDING.value},
        after={"status": decision},
    )
    db.commit()
    log.info("tenant submission reviewed", extra={"inspection_id": insp.id, "actor_role": actor.role})
    return row


def list_submissions(
    db: Session,
    *,
    actor: Actor,
    inspection_id: int,
    status: Optional[str] = None,
) -> list[TenantSubmission]:
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor)
    q = select(TenantSubmission).where(TenantSubmission.inspection_id == insp.id)
    if status:
        q = q.where(TenantSubmission.status == status)
    return list(db.scalars(q.order_by(TenantSubmission.id.asc())).all())


# -----------------------------
# Per-room sign-off
# -----------------------------
def acknowledge_room(
    db: Session,
    *,
    actor: Actor,
    room_id: int,
    signature_url: Optional[str] = None,
) -> RoomAcknowledgment:
    """
    Tenant or owner signs off one room. Each party acknowledges a room once;
    the room carries tenant_reviewed_at / owner_review_completed_at accordingly.
    """
    require_capability(actor, "room.acknowledge")
    room = must_get_room(db, room_id)
    insp = must_get_inspection(db, room.inspection_id)
    ensure_party(db, insp, actor)
    _ensure_review_open(insp, "rooms can be acknowledged")

    existing = db.scalar(
        select(RoomAcknowledgment).where(
            RoomAcknowledgment.room_id == room.id,
            RoomAcknowledgment.acknowledged_by == str(actor.user_id),
        )
    )
    if existing is not None:
        raise ValidationError(f"room {room.id} was already acknowledged", field="room_id")

    now = _utcnow()
    row = RoomAcknowledgment(
        inspection_id=insp.id,
        room_id=room.id,
        acknowledged_by=str(actor.user_id),
        role=actor.role,
        signature_url=_text(signature_url),
        acknowledged_at=now,
    )
    db.add(row)
    if actor.role == "tenant":
        room.tenant_reviewed_at = now
    else:
        room.owner_review_completed_at = now
    db.flush()
    audit_write(
        db,
        actor=actor,
        action="room.acknowledge",
        entity_type="InspectionRoom",
        entity_id=room.id,
        after={"inspection_id": insp.id, "role": actor.role, "signed": row.signature_url is not None},
    )
    db.commit()
    return row


def list_room_acknowledgments(db: Session, *, actor: Actor, inspection_id: int) -> list[RoomAcknowledgment]:
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor)
    return list(
        db.scalars(
            select(RoomAcknowledgment)
            .where(RoomAcknowledgment.inspection_id == insp.id)
            .order_by(RoomAcknowledgment.id.asc())
        ).all()
    )


@dataclass(frozen=True)
class ReviewProgress:
    inspection_id: int
    total_rooms: int
    tenant_reviewed_rooms: int
    owner_reviewed_rooms: int
    pending_submissions: int


def review_progress(db: Session, *, actor: Actor, inspection_id: int) -> ReviewProgress:
    insp = load_inspection_tree(db, inspection_id)
    ensure_party(db, insp, actor)
    pending = db.scalars(
        select(TenantSubmission.id).where(
            TenantSubmission.inspection_id == insp.id,
            TenantSubmission.status == SubmissionStatus.PENDING.value,
        )
    ).all()
    return ReviewProgress(
        inspection_id=insp.id,
        total_rooms=len(insp.rooms),
        tenant_reviewed_rooms=sum(1 for r in insp.rooms if r.tenant_reviewed_at is not None),
        owner_reviewed_rooms=sum(1 for r in insp.rooms if r.owner_review_completed_at is not None),
        pending_submissions=len(pending),
    )
