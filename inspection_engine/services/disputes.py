# inspection_engine/services/disputes.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Actor, require_capability
from ..domain.audit import audit_write
from ..domain.enums import DisputeStatus, InspectionStatus, condition_value
from ..domain.errors import NotFound, ValidationError
from ..models import Inspection, ItemDispute
from .inspection_store import ensure_party, must_get_inspection, must_get_item, recompute_condition_changed

log = logging.getLogger("inspections.disputes")

# per-item disputes live alongside the inspection status; they can be opened
# while the tenant reviews or once the inspection is disputed
OPEN_FOR_DISPUTES = frozenset({InspectionStatus.TENANT_REVIEW.value, InspectionStatus.DISPUTED.value})


def _utcnow() -> datetime:
    return datetime.utcnow()


def _condition(raw: Any, field: str) -> Optional[str]:
    try:
        return condition_value(raw)
    except ValueError:
        raise ValidationError(f"unknown condition {raw!r}", field=field)


def must_get_dispute(db: Session, dispute_id: int) -> ItemDispute:
    row = db.get(ItemDispute, dispute_id)
    if row is None:
        raise NotFound("dispute", dispute_id)
    return row


def open_item_dispute(
    db: Session,
    insp: Inspection,
    *,
    actor: Actor,
    item_id: int,
    reason: str,
    proposed_condition: Any = None,
) -> ItemDispute:
    """Adds a dispute row for an item of insp. Caller commits."""
    if not (reason or "").strip():
        raise ValidationError("dispute reason is required", field="dispute_reason")
    item = must_get_item(db, item_id, scope_inspection_id=insp.id)

    row = ItemDispute(
        inspection_id=insp.id,
        item_id=item.id,
        raised_by=actor.user_id,
        dispute_reason=reason.strip(),
        proposed_condition=_condition(proposed_condition, "proposed_condition"),
        status=DisputeStatus.OPEN.value,
    )
    db.add(row)
    db.flush()
    audit_write(
        db,
        actor=actor,
        action="dispute.raise",
        entity_type="ItemDispute",
        entity_id=row.id,
        after={"inspection_id": insp.id, "item_id": item.id, "proposed_condition": row.proposed_condition},
    )
    return row


def raise_item_dispute(
    db: Session,
    *,
    actor: Actor,
    inspection_id: int,
    item_id: int,
    reason: str,
    proposed_condition: Any = None,
) -> ItemDispute:
    require_capability(actor, "dispute.raise")
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor)
    if insp.status not in OPEN_FOR_DISPUTES:
        raise ValidationError(f"inspection is '{insp.status}'; item disputes can only be raised during review")
    row = open_item_dispute(
        db, insp, actor=actor, item_id=item_id, reason=reason, proposed_condition=proposed_condition
    )
    db.commit()
    log.info("item dispute raised", extra={"inspection_id": insp.id, "dispute_id": row.id})
    return row


def respond_to_dispute(
    db: Session,
    *,
    actor: Actor,
    dispute_id: int,
    response: str,
    resolved_condition: Any = None,
    resolution_notes: Optional[str] = None,
) -> ItemDispute:
    """
    Always records the owner's response. Supplying resolved_condition also resolves
    the dispute, stamps resolved_at and re-rates the disputed item.
    """
    require_capability(actor, "dispute.respond")
    row = must_get_dispute(db, dispute_id)
    insp = must_get_inspection(db, row.inspection_id)
    ensure_party(db, insp, actor)

    if row.status == DisputeStatus.RESOLVED.value:
        raise ValidationError(f"dispute {row.id} is already resolved", field="status")
    if not (response or "").strip():
        raise ValidationError("response is required", field="owner_response")
    resolved = _condition(resolved_condition, "resolved_condition")

    before = {"status": row.status}
    now = _utcnow()
    row.owner_response = response.strip()
    row.status = DisputeStatus.OWNER_RESPONDED.value
    if resolution_notes is not None:
        row.resolution_notes = resolution_notes

    if resolved is not None:
        row.status = DisputeStatus.RESOLVED.value
        row.resolved_condition = resolved
        row.resolved_at = now

        item = must_get_item(db, row.item_id, scope_inspection_id=insp.id)
        item.condition = resolved
        item.updated_at = now
        recompute_condition_changed(item)

    row.updated_at = now
    audit_write(
        db,
        actor=actor,
        action="dispute.respond",
        entity_type="ItemDispute",
        entity_id=row.id,
        before=before,
        after={"status": row.status, "resolved_condition": row.resolved_condition},
    )
    db.commit()
    log.info("dispute responded", extra={"inspection_id": insp.id, "dispute_id": row.id})
    return row


def escalate_dispute(db: Session, *, actor: Actor, dispute_id: int, notes: Optional[str] = None) -> ItemDispute:
    require_capability(actor, "dispute.escalate")
    row = must_get_dispute(db, dispute_id)
    insp = must_get_inspection(db, row.inspection_id)
    ensure_party(db, insp, actor)
    if row.status == DisputeStatus.RESOLVED.value:
        raise ValidationError(f"dispute {row.id} is already resolved", field="status")

    before = {"status": row.status}
    row.status = DisputeStatus.ESCALATED.value
    if notes is not None:
        row.resolution_notes = notes
    row.updated_at = _utcnow()
    audit_write(
        db,
        actor=actor,
        action="dispute.escalate",
        entity_type="ItemDispute",
        entity_id=row.id,
        before=before,
        after={"status": row.status},
    )
    db.commit()
    log.warning("dispute escalated", extra={"inspection_id": insp.id, "dispute_id": row.id})
    return row


def list_disputes(db: Session, *, actor: Actor, inspection_id: int) -> list[ItemDispute]:
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor)
    return list(
        db.scalars(
            select(ItemDispute).where(ItemDispute.inspection_id == insp.id).order_by(ItemDispute.id.asc())
        ).all()
    )
