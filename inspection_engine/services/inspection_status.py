# inspection_engine/services/inspection_status.py
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Actor, require_capability
from ..domain.audit import audit_write
from ..domain.cadence import TRACKED_STATUSES, next_inspection_due
from ..domain.enums import InspectionStatus, worst_condition
from ..domain.errors import ValidationError
from ..domain.status_machine import (
    check_acknowledge,
    check_cancel,
    check_completion,
    check_dispute,
    check_finalize_disputed,
    check_send_for_review,
    ensure_edge,
)
from ..models import Inspection, ItemDispute, Property
from .disputes import open_item_dispute
from .inspection_store import ensure_party, load_inspection_tree, must_get_inspection

log = logging.getLogger("inspections.status")

S = InspectionStatus


def _utcnow() -> datetime:
    return datetime.utcnow()


def _set_status(db: Session, insp: Inspection, actor: Actor, target: str, *, action: str, extra: Optional[dict] = None) -> None:
    before = insp.status
    insp.status = target
    insp.updated_at = _utcnow()
    if target in TRACKED_STATUSES and before != target:
        _track_property(db, insp)
    after: dict[str, Any] = {"status": target}
    if extra:
        after.update(extra)
    audit_write(
        db,
        actor=actor,
        action=action,
        entity_type="Inspection",
        entity_id=insp.id,
        before={"status": before},
        after=after,
    )
    log.info(
        "inspection status changed",
        extra={"inspection_id": insp.id, "actor_role": actor.role, "actor_user_id": actor.user_id},
    )


def _track_property(db: Session, insp: Inspection) -> None:
    """Moves the property's last/next inspection markers; caller commits."""
    prop = db.get(Property, insp.property_id)
    if prop is None:
        return
    inspected_at = insp.completed_at or _utcnow()
    prop.last_inspection_at = inspected_at
    prop.next_inspection_due = next_inspection_due(inspected_at, prop.inspection_interval_months)


def _duration_minutes(insp: Inspection, now: datetime) -> Optional[int]:
    if insp.actual_date is None or insp.actual_time is None:
        return None
    started = datetime.combine(insp.actual_date, insp.actual_time)
    return max(0, int((now - started).total_seconds() // 60))


def start_inspection(
    db: Session,
    *,
    actor: Actor,
    inspection_id: int,
    scope_inspection_id: Optional[int] = None,
) -> Inspection:
    require_capability(actor, "inspection.start")
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor, scope_inspection_id=scope_inspection_id)
    ensure_edge(insp.status, S.IN_PROGRESS.value)

    now = _utcnow()
    insp.actual_date = now.date()
    insp.actual_time = now.time().replace(microsecond=0)
    _set_status(db, insp, actor, S.IN_PROGRESS.value, action="inspection.start")
    db.commit()
    return insp


def apply_completion(
    db: Session,
    insp: Inspection,
    *,
    actor: Actor,
    overall_condition: Optional[str] = None,
    summary_notes: Optional[str] = None,
    action_items: Optional[Iterable[str]] = None,
    override_incomplete: bool = False,
) -> Inspection:
    """
    in_progress -> completed without committing, so callers can bundle it with
    other writes (the inspector portal completes the assignment in the same transaction).
    """
    tree = load_inspection_tree(db, insp.id)
    check = check_completion(
        insp.status,
        [(r.name, r.completed_at is not None) for r in tree.rooms],
        override=override_incomplete,
    )
    if check.incomplete_rooms:
        log.warning(
            "inspection completed with incomplete rooms",
            extra={"inspection_id": insp.id, "actor_role": actor.role, "actor_user_id": actor.user_id},
        )
        audit_write(
            db,
            actor=actor,
            action="inspection.complete_override",
            entity_type="Inspection",
            entity_id=insp.id,
            after={"incomplete_rooms": list(check.incomplete_rooms), "total_rooms": check.total_rooms},
        )

    now = _utcnow()
    if overall_condition is None:
        overall_condition = worst_condition(
            r.overall_condition or worst_condition(i.condition for i in r.items) for r in tree.rooms
        )
    insp.overall_condition = overall_condition
    if summary_notes is not None:
        insp.summary_notes = summary_notes
    if action_items is not None:
        insp.action_items_json = json.dumps([str(a) for a in action_items])
    insp.completed_at = now
    insp.duration_minutes = _duration_minutes(insp, now)
    _set_status(db, insp, actor, S.COMPLETED.value, action="inspection.complete", extra={"duration_minutes": insp.duration_minutes})
    return insp


def complete_inspection(
    db: Session,
    *,
    actor: Actor,
    inspection_id: int,
    overall_condition: Optional[str] = None,
    summary_notes: Optional[str] = None,
    action_items: Optional[Iterable[str]] = None,
    override_incomplete: bool = False,
    scope_inspection_id: Optional[int] = None,
) -> Inspection:
    require_capability(actor, "inspection.complete")
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor, scope_inspection_id=scope_inspection_id)
    apply_completion(
        db,
        insp,
        actor=actor,
        overall_condition=overall_condition,
        summary_notes=summary_notes,
        action_items=action_items,
        override_incomplete=override_incomplete,
    )
    db.commit()
    return insp


def send_for_review(db: Session, *, actor: Actor, inspection_id: int) -> Inspection:
    require_capability(actor, "inspection.send_for_review")
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor)
    check_send_for_review(insp.status, insp.tenancy_id)
    _set_status(db, insp, actor, S.TENANT_REVIEW.value, action="inspection.send_for_review")
    db.commit()
    return insp


def acknowledge_inspection(db: Session, *, actor: Actor, inspection_id: int, signature_url: str) -> Inspection:
    require_capability(actor, "inspection.acknowledge")
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor)
    check_acknowledge(insp.status)
    if not (signature_url or "").strip():
        raise ValidationError("signature_url is required to acknowledge", field="signature_url")

    now = _utcnow()
    insp.tenant_acknowledged = True
    insp.tenant_acknowledged_at = now
    insp.tenant_signature_url = signature_url.strip()
    _set_status(db, insp, actor, S.FINALIZED.value, action="inspection.acknowledge")
    db.commit()
    return insp


def dispute_inspection(
    db: Session,
    *,
    actor: Actor,
    inspection_id: int,
    dispute_text: str,
    item_disputes: Optional[Iterable[dict[str, Any]]] = None,
) -> Inspection:
    """
    tenant_review -> disputed. Optional per-item disputes are opened in the same
    transaction; each needs item_id and reason, proposed_condition is optional.
    """
    require_capability(actor, "inspection.dispute")
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor)
    check_dispute(insp.status, dispute_text)

    insp.tenant_disputes = dispute_text.strip()
    opened = []
    for spec in item_disputes or []:
        opened.append(
            open_item_dispute(
                db,
                insp,
                actor=actor,
                item_id=int(spec["item_id"]),
                reason=str(spec.get("reason") or ""),
                proposed_condition=spec.get("proposed_condition"),
            )
        )
    _set_status(db, insp, actor, S.DISPUTED.value, action="inspection.dispute", extra={"item_disputes": len(opened)})
    db.commit()
    return insp


def finalize_inspection(db: Session, *, actor: Actor, inspection_id: int) -> Inspection:
    require_capability(actor, "inspection.finalize")
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor)
    statuses = db.scalars(select(ItemDispute.status).where(ItemDispute.inspection_id == insp.id)).all()
    check_finalize_disputed(insp.status, statuses)
    _set_status(db, insp, actor, S.FINALIZED.value, action="inspection.finalize")
    db.commit()
    return insp


def cancel_inspection(db: Session, *, actor: Actor, inspection_id: int, reason: Optional[str] = None) -> Inspection:
    require_capability(actor, "inspection.cancel")
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor)
    check_cancel(insp.status)
    insp.cancelled_at = _utcnow()
    _set_status(db, insp, actor, S.CANCELLED.value, action="inspection.cancel", extra={"reason": reason})
    db.commit()
    return insp


def sign_inspection(db: Session, *, actor: Actor, inspection_id: int, signature_url: str) -> Inspection:
    """
    Tenant signature is the acknowledgment itself. The owner may countersign at
    any point before cancellation without moving the status.
    """
    require_capability(actor, "inspection.sign")
    if actor.role == "tenant":
        return acknowledge_inspection(db, actor=actor, inspection_id=inspection_id, signature_url=signature_url)

    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor)
    if insp.status == S.CANCELLED.value:
        raise ValidationError("cancelled inspections cannot be signed")
    if not (signature_url or "").strip():
        raise ValidationError("signature_url is required", field="signature_url")

    insp.owner_signature_url = signature_url.strip()
    insp.owner_signed_at = _utcnow()
    audit_write(
        db,
        actor=actor,
        action="inspection.owner_sign",
        entity_type="Inspection",
        entity_id=insp.id,
        after={"status": insp.status},
    )
    db.commit()
    return insp
