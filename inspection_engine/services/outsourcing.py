# inspection_engine/services/outsourcing.py
from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..auth import Actor, require_capability
from ..domain.audit import audit_write
from ..domain.enums import OutsourceMode
from ..domain.errors import Forbidden, NotFound, ValidationError
from ..domain.status_machine import TERMINAL
from ..models import InspectionAssignment, InspectorAccessToken
from .inspection_store import current_assignment, ensure_party, must_get_inspection, parse_scheduled_date

log = logging.getLogger("inspections.outsourcing")


def _utcnow() -> datetime:
    return datetime.utcnow()


def must_get_assignment(db: Session, assignment_id: int) -> InspectionAssignment:
    row = db.get(InspectionAssignment, assignment_id)
    if row is None:
        raise NotFound("assignment", assignment_id)
    return row


def _ensure_current(asg: InspectionAssignment) -> None:
    if asg.superseded_by_id is not None:
        raise ValidationError(f"assignment {asg.id} was superseded by {asg.superseded_by_id}", field="assignment_id")


def _ensure_assignee(asg: InspectionAssignment, actor: Actor) -> None:
    if actor.role == "inspector" and asg.inspector_id != actor.user_id:
        raise Forbidden(actor.role, f"assignment {asg.id}")


def _snapshot(asg: InspectionAssignment) -> dict:
    return {
        "accepted": asg.accepted,
        "completed_at": asg.completed_at,
        "fee_paid": asg.fee_paid,
        "rating": asg.rating,
    }


def list_assignments(db: Session, *, actor: Actor, inspection_id: int) -> list[InspectionAssignment]:
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor)
    return list(
        db.scalars(
            select(InspectionAssignment)
            .where(InspectionAssignment.inspection_id == insp.id)
            .order_by(InspectionAssignment.id.asc())
        ).all()
    )


def create_assignment(
    db: Session,
    *,
    actor: Actor,
    inspection_id: int,
    inspector_id: str,
    fee_amount: float,
    inspector_email: Optional[str] = None,
    proposed_date: Optional[date | str] = None,
    proposed_time_start: Optional[time] = None,
    proposed_time_end: Optional[time] = None,
) -> InspectionAssignment:
    """
    Outsources an inspection. A new assignment is only allowed when there is none
    yet or the current one was declined; the declined one is kept and points at
    its successor.
    """
    require_capability(actor, "assignment.create")
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor)
    if insp.status in TERMINAL:
        raise ValidationError(f"inspection is '{insp.status}'; it cannot be outsourced")
    if not (inspector_id or "").strip():
        raise ValidationError("inspector_id is required", field="inspector_id")
    if fee_amount is None or float(fee_amount) < 0:
        raise ValidationError("fee_amount must be zero or more", field="fee_amount")
    if proposed_time_start and proposed_time_end and proposed_time_end <= proposed_time_start:
        raise ValidationError("proposed window ends before it starts", field="proposed_time_end")

    prior = current_assignment(db, insp.id)
    if prior is not None and prior.accepted is not False:
        raise ValidationError(
            f"inspection already has an active assignment ({prior.id}); it must be declined first",
            field="inspection_id",
        )

    now = _utcnow()
    asg = InspectionAssignment(
        inspection_id=insp.id,
        inspector_id=inspector_id.strip(),
        inspector_email=(inspector_email or "").strip().lower() or None,
        assigned_at=now,
        assigned_by="owner" if actor.role == "owner" else "agent",
        proposed_date=parse_scheduled_date(proposed_date) if proposed_date is not None else None,
        proposed_time_start=proposed_time_start,
        proposed_time_end=proposed_time_end,
        fee_amount=float(fee_amount),
        fee_paid=False,
    )
    db.add(asg)
    db.flush()

    if prior is not None:
        prior.superseded_by_id = asg.id
        prior.superseded_at = now
        # normally already revoked by the decline
        db.execute(
            update(InspectorAccessToken)
            .where(
                InspectorAccessToken.assignment_id == prior.id,
                InspectorAccessToken.revoked.is_(False),
            )
            .values(revoked=True, revoked_at=now)
        )

    insp.is_outsourced = True
    insp.outsource_mode = OutsourceMode.PROFESSIONAL.value
    insp.inspector_id = asg.inspector_id

    audit_write(
        db,
        actor=actor,
        action="assignment.create",
        entity_type="InspectionAssignment",
        entity_id=asg.id,
        after={"inspection_id": insp.id, "inspector_id": asg.inspector_id, "supersedes": prior.id if prior else None},
    )
    db.commit()
    log.info("inspection outsourced", extra={"inspection_id": insp.id, "assignment_id": asg.id})
    return asg


def accept_assignment(
    db: Session,
    *,
    actor: Actor,
    assignment_id: int,
    confirmed_date: Optional[date | str],
    confirmed_time: Optional[time],
) -> InspectionAssignment:
    require_capability(actor, "assignment.respond")
    asg = must_get_assignment(db, assignment_id)
    _ensure_current(asg)
    _ensure_assignee(asg, actor)
    if asg.accepted is not None:
        raise ValidationError(f"assignment {asg.id} was already {'accepted' if asg.accepted else 'declined'}")
    if confirmed_date is None or confirmed_time is None:
        raise ValidationError("confirmed date and time are required to accept", field="confirmed_date")

    before = _snapshot(asg)
    now = _utcnow()
    asg.accepted = True
    asg.accepted_at = now
    asg.responded_at = now
    asg.confirmed_date = parse_scheduled_date(confirmed_date)
    asg.confirmed_time = confirmed_time
    audit_write(db, actor=actor, action="assignment.accept", entity_type="InspectionAssignment", entity_id=asg.id, before=before, after=_snapshot(asg))
    db.commit()
    return asg


def decline_assignment(db: Session, *, actor: Actor, assignment_id: int, reason: str) -> InspectionAssignment:
    require_capability(actor, "assignment.respond")
    asg = must_get_assignment(db, assignment_id)
    _ensure_current(asg)
    _ensure_assignee(asg, actor)
    if asg.accepted is not None:
        raise ValidationError(f"assignment {asg.id} was already {'accepted' if asg.accepted else 'declined'}")
    if not (reason or "").strip():
        raise ValidationError("a decline reason is required", field="declined_reason")

    before = _snapshot(asg)
    now = _utcnow()
    asg.accepted = False
    asg.declined_reason = reason.strip()
    asg.responded_at = now
    # a declined inspector keeps no access to the inspection
    db.execute(
        update(InspectorAccessToken)
        .where(
            InspectorAccessToken.assignment_id == asg.id,
            InspectorAccessToken.revoked.is_(False),
        )
        .values(revoked=True, revoked_at=now)
    )
    audit_write(db, actor=actor, action="assignment.decline", entity_type="InspectionAssignment", entity_id=asg.id, before=before, after=_snapshot(asg))
    db.commit()
    log.info("assignment declined", extra={"inspection_id": asg.inspection_id, "assignment_id": asg.id})
    return asg


def finish_assignment(db: Session, asg: InspectionAssignment, *, now: datetime) -> None:
    """Stamps completion and retires any link still live for it. Caller commits."""
    asg.completed_at = now
    db.execute(
        update(InspectorAccessToken)
        .where(
            InspectorAccessToken.assignment_id == asg.id,
            InspectorAccessToken.completed_at.is_(None),
        )
        .values(completed_at=now)
    )


def complete_assignment(db: Session, *, actor: Actor, assignment_id: int) -> InspectionAssignment:
    require_capability(actor, "assignment.complete")
    asg = must_get_assignment(db, assignment_id)
    _ensure_current(asg)
    _ensure_assignee(asg, actor)
    if asg.accepted is not True:
        raise ValidationError(f"assignment {asg.id} was not accepted")
    if asg.completed_at is not None:
        raise ValidationError(f"assignment {asg.id} is already completed")

    before = _snapshot(asg)
    finish_assignment(db, asg, now=_utcnow())
    audit_write(db, actor=actor, action="assignment.complete", entity_type="InspectionAssignment", entity_id=asg.id, before=before, after=_snapshot(asg))
    db.commit()
    return asg


def rate_inspector(
    db: Session,
    *,
    actor: Actor,
    assignment_id: int,
    rating: int,
    review_text: Optional[str] = None,
) -> InspectionAssignment:
    require_capability(actor, "assignment.rate")
    asg = must_get_assignment(db, assignment_id)
    ensure_party(db, must_get_inspection(db, asg.inspection_id), actor)
    if asg.completed_at is None:
        raise ValidationError(f"assignment {asg.id} is not completed yet")
    if rating is None or not (1 <= int(rating) <= 5):
        raise ValidationError("rating must be between 1 and 5", field="rating")

    before = _snapshot(asg)
    asg.rating = int(rating)
    asg.review_text = review_text
    audit_write(db, actor=actor, action="assignment.rate", entity_type="InspectionAssignment", entity_id=asg.id, before=before, after=_snapshot(asg))
    db.commit()
    return asg


def mark_assignment_paid(db: Session, *, actor: Actor, assignment_id: int) -> InspectionAssignment:
    require_capability(actor, "assignment.mark_paid")
    asg = must_get_assignment(db, assignment_id)
    ensure_party(db, must_get_inspection(db, asg.inspection_id), actor)
    if asg.completed_at is None:
        raise ValidationError(f"assignment {asg.id} is not completed yet")
    if asg.fee_paid:
        return asg

    before = _snapshot(asg)
    asg.fee_paid = True
    audit_write(db, actor=actor, action="assignment.mark_paid", entity_type="InspectionAssignment", entity_id=asg.id, before=before, after=_snapshot(asg))
    db.commit()
    return asg
