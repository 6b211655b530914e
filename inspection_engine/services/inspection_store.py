# inspection_engine/services/inspection_store.py
from __future__ import annotations

import json
import logging
from datetime import date, datetime, time
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from ..auth import Actor, require_capability
from ..domain.audit import audit_write
from ..domain.enums import InspectionKind, InspectionStatus, OutsourceMode, condition_value, worst_condition
from ..domain.errors import Forbidden, NotFound, ValidationError
from ..domain.templates import name_key, normalize_name
from ..models import (
    Inspection,
    InspectionAssignment,
    InspectionImage,
    InspectionItem,
    InspectionRoom,
    InspectionVoiceNote,
    Property,
    Tenancy,
)

log = logging.getLogger("inspections.store")

EDITABLE_STATUSES = frozenset({InspectionStatus.SCHEDULED.value, InspectionStatus.IN_PROGRESS.value})


def _utcnow() -> datetime:
    return datetime.utcnow()


def parse_scheduled_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        s = value.strip()
        try:
            return date.fromisoformat(s[:10]) if "T" in s else date.fromisoformat(s)
        except ValueError:
            pass
    raise ValidationError(f"scheduled_date {value!r} is not a calendar date", field="scheduled_date")


def _condition(raw: Any, field: str = "condition") -> Optional[str]:
    try:
        return condition_value(raw)
    except ValueError:
        raise ValidationError(f"unknown condition {raw!r}", field=field)


# -----------------------------
# Lookups
# -----------------------------
def must_get_inspection(db: Session, inspection_id: int) -> Inspection:
    row = db.get(Inspection, inspection_id)
    if row is None:
        raise NotFound("inspection", inspection_id)
    return row


def must_get_room(db: Session, room_id: int, *, scope_inspection_id: Optional[int] = None) -> InspectionRoom:
    row = db.get(InspectionRoom, room_id)
    if row is None or (scope_inspection_id is not None and row.inspection_id != scope_inspection_id):
        raise NotFound("room", room_id)
    return row


def must_get_item(db: Session, item_id: int, *, scope_inspection_id: Optional[int] = None) -> InspectionItem:
    row = db.get(InspectionItem, item_id)
    if row is None:
        raise NotFound("item", item_id)
    if scope_inspection_id is not None and row.room.inspection_id != scope_inspection_id:
        raise NotFound("item", item_id)
    return row


def load_inspection_tree(db: Session, inspection_id: int) -> Inspection:
    row = db.scalar(
        select(Inspection)
        .where(Inspection.id == inspection_id)
        .options(
            selectinload(Inspection.rooms).selectinload(InspectionRoom.items),
            selectinload(Inspection.images),
            selectinload(Inspection.voice_notes),
        )
        .execution_options(populate_existing=True)
    )
    if row is None:
        raise NotFound("inspection", inspection_id)
    return row


def next_room_order(db: Session, inspection_id: int) -> int:
    current_max = db.scalar(
        select(func.max(InspectionRoom.display_order)).where(InspectionRoom.inspection_id == inspection_id)
    )
    return 0 if current_max is None else int(current_max) + 1


def current_assignment(db: Session, inspection_id: int) -> Optional[InspectionAssignment]:
    return db.scalar(
        select(InspectionAssignment)
        .where(
            InspectionAssignment.inspection_id == inspection_id,
            InspectionAssignment.superseded_by_id.is_(None),
        )
        .order_by(InspectionAssignment.id.desc())
    )


def ensure_party(
    db: Session,
    inspection: Inspection,
    actor: Actor,
    *,
    scope_inspection_id: Optional[int] = None,
) -> None:
    """
    Row-level check on top of the role allow-list: owners act on their own
    properties, tenants on their own tenancy, inspectors on inspections they
    conduct. Token-scoped calls are bound to exactly one inspection.
    """
    if scope_inspection_id is not None:
        if inspection.id != scope_inspection_id:
            raise NotFound("inspection", inspection.id)
        return
    if actor.role in ("admin", "agent"):
        return
    if actor.role == "owner":
        prop = db.get(Property, inspection.property_id)
        if prop is not None and prop.owner_user_id == actor.user_id:
            return
    elif actor.role == "tenant":
        tenancy = db.get(Tenancy, inspection.tenancy_id) if inspection.tenancy_id else None
        if tenancy is not None and tenancy.tenant_user_id == actor.user_id:
            return
    elif actor.role == "inspector":
        if inspection.inspector_id == actor.user_id:
            return
        asg = current_assignment(db, inspection.id)
        if asg is not None and asg.inspector_id == actor.user_id:
            return
    raise Forbidden(actor.role, f"inspection {inspection.id}")


def _ensure_editable(inspection: Inspection, what: str) -> None:
    if inspection.status not in EDITABLE_STATUSES:
        raise ValidationError(f"inspection is '{inspection.status}'; {what} is only allowed before completion")


def _ensure_in_progress(inspection: Inspection, what: str) -> None:
    if inspection.status != InspectionStatus.IN_PROGRESS.value:
        raise ValidationError(f"inspection is '{inspection.status}'; {what} requires in_progress")


# -----------------------------
# Scheduling
# -----------------------------
def schedule_inspection(
    db: Session,
    *,
    actor: Actor,
    property_id: int,
    inspector_id: str,
    kind: str,
    scheduled_date: Any,
    scheduled_time: Optional[time] = None,
    tenancy_id: Optional[int] = None,
    compare_to_inspection_id: Optional[int] = None,
    summary_notes: Optional[str] = None,
) -> Inspection:
    require_capability(actor, "inspection.schedule")

    prop = db.get(Property, property_id)
    if prop is None:
        raise NotFound("property", property_id)
    if actor.role == "owner" and prop.owner_user_id != actor.user_id:
        raise Forbidden(actor.role, f"property {property_id}")

    try:
        kind_v = InspectionKind(str(kind).strip().lower()).value
    except ValueError:
        raise ValidationError(f"unknown inspection kind {kind!r}", field="inspection_type")

    when = parse_scheduled_date(scheduled_date)

    if not (inspector_id or "").strip():
        raise ValidationError("inspector_id is required", field="inspector_id")

    if tenancy_id is not None:
        tenancy = db.get(Tenancy, tenancy_id)
        if tenancy is None or tenancy.property_id != property_id:
            raise NotFound("tenancy", tenancy_id)

    if compare_to_inspection_id is not None:
        prior = db.get(Inspection, compare_to_inspection_id)
        if prior is None:
            raise NotFound("inspection", compare_to_inspection_id)
        if prior.property_id != property_id:
            raise ValidationError("compare_to_inspection_id belongs to a different property", field="compare_to_inspection_id")

    insp = Inspection(
        property_id=property_id,
        tenancy_id=tenancy_id,
        inspector_id=inspector_id.strip(),
        created_by_user_id=actor.user_id,
        inspection_type=kind_v,
        scheduled_date=when,
        scheduled_time=scheduled_time,
        status=InspectionStatus.SCHEDULED.value,
        compare_to_inspection_id=compare_to_inspection_id,
        summary_notes=summary_notes,
        is_outsourced=False,
        outsource_mode=OutsourceMode.SELF.value,
    )
    db.add(insp)
    db.flush()

    audit_write(
        db,
        actor=actor,
        action="inspection.schedule",
        entity_type="Inspection",
        entity_id=insp.id,
        after={"property_id": property_id, "kind": kind_v, "scheduled_date": when.isoformat()},
    )
    db.commit()
    log.info("inspection scheduled", extra={"inspection_id": insp.id, "actor_role": actor.role})
    return insp


# -----------------------------
# Exit inspections: entry snapshot
# -----------------------------
def entry_condition_index(db: Session, inspection: Inspection) -> dict[tuple[str, str], Optional[str]]:
    """(room key, item key) -> entry condition for the inspection this one compares against."""
    if inspection.compare_to_inspection_id is None:
        return {}
    prior = load_inspection_tree(db, inspection.compare_to_inspection_id)
    index: dict[tuple[str, str], Optional[str]] = {}
    for room in prior.rooms:
        for item in room.items:
            index.setdefault((name_key(room.name), name_key(item.name)), item.condition)
    return index


def recompute_condition_changed(item: InspectionItem) -> bool:
    item.condition_changed = bool(
        item.entry_condition is not None
        and item.condition is not None
        and item.condition != item.entry_condition
    )
    return item.condition_changed


# -----------------------------
# Rooms / items
# -----------------------------
def add_room(
    db: Session,
    *,
    actor: Actor,
    inspection_id: int,
    name: str,
    display_order: Optional[int] = None,
) -> InspectionRoom:
    require_capability(actor, "inspection.edit_checklist")
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor)
    _ensure_editable(insp, "adding rooms")

    clean = normalize_name(name)
    if not clean:
        raise ValidationError("room name is required", field="name")
    if display_order is None:
        display_order = next_room_order(db, insp.id)

    room = InspectionRoom(inspection_id=insp.id, name=clean, display_order=display_order)
    db.add(room)
    db.commit()
    return room


def add_item(
    db: Session,
    *,
    actor: Actor,
    room_id: int,
    name: str,
    display_order: Optional[int] = None,
) -> InspectionItem:
    require_capability(actor, "inspection.edit_checklist")
    room = must_get_room(db, room_id)
    insp = room.inspection
    ensure_party(db, insp, actor)
    _ensure_editable(insp, "adding items")

    clean = normalize_name(name)
    if not clean:
        raise ValidationError("item name is required", field="name")
    if display_order is None:
        current_max = db.scalar(select(func.max(InspectionItem.display_order)).where(InspectionItem.room_id == room.id))
        display_order = 0 if current_max is None else int(current_max) + 1

    item = InspectionItem(room_id=room.id, name=clean, display_order=display_order)
    entry = entry_condition_index(db, insp).get((name_key(room.name), name_key(clean)))
    if entry is not None:
        item.entry_condition = entry
    recompute_condition_changed(item)

    db.add(item)
    db.commit()
    return item


def rate_item(
    db: Session,
    *,
    actor: Actor,
    item_id: int,
    condition: Any,
    notes: Optional[str] = None,
    action_required: Optional[bool] = None,
    action_description: Optional[str] = None,
    estimated_cost: Optional[float] = None,
    if_unmodified_since: Optional[datetime] = None,
    scope_inspection_id: Optional[int] = None,
) -> InspectionItem:
    require_capability(actor, "inspection.rate_item")
    item = must_get_item(db, item_id, scope_inspection_id=scope_inspection_id)
    insp = item.room.inspection
    ensure_party(db, insp, actor, scope_inspection_id=scope_inspection_id)
    _ensure_in_progress(insp, "rating items")

    cond = _condition(condition)
    if cond is None:
        raise ValidationError("condition is required", field="condition")
    if estimated_cost is not None and estimated_cost < 0:
        raise ValidationError("estimated_cost cannot be negative", field="estimated_cost")

    # last write wins; a stale writer is only reported
    if if_unmodified_since is not None and item.checked_at is not None and item.checked_at > if_unmodified_since:
        log.warning(
            "stale item rating overwrote a newer one",
            extra={"inspection_id": insp.id, "actor_role": actor.role},
        )

    before = {"condition": item.condition, "condition_changed": item.condition_changed}

    now = _utcnow()
    item.condition = cond
    if notes is not None:
        item.notes = notes
    if action_required is not None:
        item.action_required = bool(action_required)
    if action_description is not None:
        item.action_description = action_description
    if estimated_cost is not None:
        item.estimated_cost = float(estimated_cost)
    item.checked_at = now
    item.updated_at = now
    recompute_condition_changed(item)

    audit_write(
        db,
        actor=actor,
        action="inspection_item.rate",
        entity_type="InspectionItem",
        entity_id=item.id,
        before=before,
        after={"condition": item.condition, "condition_changed": item.condition_changed},
    )
    db.commit()
    return item


def complete_room(
    db: Session,
    *,
    actor: Actor,
    room_id: int,
    overall_condition: Any = None,
    notes: Optional[str] = None,
    scope_inspection_id: Optional[int] = None,
) -> InspectionRoom:
    require_capability(actor, "inspection.complete_room")
    room = must_get_room(db, room_id, scope_inspection_id=scope_inspection_id)
    insp = room.inspection
    ensure_party(db, insp, actor, scope_inspection_id=scope_inspection_id)
    _ensure_in_progress(insp, "completing rooms")

    overall = _condition(overall_condition, field="overall_condition")
    if overall is None:
        overall = worst_condition(i.condition for i in room.items)

    room.overall_condition = overall
    if notes is not None:
        room.notes = notes
    room.completed_at = _utcnow()
    db.commit()
    return room


# -----------------------------
# Evidence
# -----------------------------
def _check_tags(db: Session, inspection_id: int, room_id: Optional[int], item_id: Optional[int]) -> None:
    if room_id is not None:
        must_get_room(db, room_id, scope_inspection_id=inspection_id)
    if item_id is not None:
        item = must_get_item(db, item_id, scope_inspection_id=inspection_id)
        if room_id is not None and item.room_id != room_id:
            raise ValidationError("item does not belong to the tagged room", field="item_id")


def attach_image(
    db: Session,
    *,
    actor: Actor,
    inspection_id: int,
    storage_path: str,
    url: str,
    room_id: Optional[int] = None,
    item_id: Optional[int] = None,
    scope_inspection_id: Optional[int] = None,
    **meta: Any,
) -> InspectionImage:
    require_capability(actor, "inspection.attach_evidence")
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor, scope_inspection_id=scope_inspection_id)
    if insp.status in (InspectionStatus.FINALIZED.value, InspectionStatus.CANCELLED.value):
        raise ValidationError(f"inspection is '{insp.status}'; evidence is closed")
    if not (storage_path or "").strip() or not (url or "").strip():
        raise ValidationError("storage_path and url are required", field="storage_path")
    _check_tags(db, insp.id, room_id, item_id)

    allowed = {
        "thumbnail_url", "caption", "taken_at", "compass_bearing", "device_pitch",
        "device_roll", "capture_sequence", "is_wide_shot", "is_closeup",
    }
    img = InspectionImage(
        inspection_id=insp.id,
        room_id=room_id,
        item_id=item_id,
        storage_path=storage_path.strip(),
        url=url.strip(),
        **{k: v for k, v in meta.items() if k in allowed and v is not None},
    )
    db.add(img)
    db.commit()
    return img


def attach_voice_note(
    db: Session,
    *,
    actor: Actor,
    inspection_id: int,
    storage_path: str,
    url: str,
    duration_seconds: int,
    room_id: Optional[int] = None,
    item_id: Optional[int] = None,
    transcript: Optional[str] = None,
    scope_inspection_id: Optional[int] = None,
) -> InspectionVoiceNote:
    require_capability(actor, "inspection.attach_evidence")
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor, scope_inspection_id=scope_inspection_id)
    if insp.status in (InspectionStatus.FINALIZED.value, InspectionStatus.CANCELLED.value):
        raise ValidationError(f"inspection is '{insp.status}'; evidence is closed")
    if not (storage_path or "").strip() or not (url or "").strip():
        raise ValidationError("storage_path and url are required", field="storage_path")
    if duration_seconds is None or int(duration_seconds) <= 0:
        raise ValidationError("duration_seconds must be positive", field="duration_seconds")
    _check_tags(db, insp.id, room_id, item_id)

    note = InspectionVoiceNote(
        inspection_id=insp.id,
        room_id=room_id,
        item_id=item_id,
        storage_path=storage_path.strip(),
        url=url.strip(),
        duration_seconds=int(duration_seconds),
        transcript=transcript,
        transcribed_at=_utcnow() if transcript else None,
    )
    db.add(note)
    db.commit()
    return note


# -----------------------------
# Report hand-off
# -----------------------------
def record_report(db: Session, *, actor: Actor, inspection_id: int, report_url: str) -> Inspection:
    require_capability(actor, "inspection.record_report")
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor)
    if not (report_url or "").strip():
        raise ValidationError("report_url is required", field="report_url")
    insp.report_url = report_url.strip()
    insp.report_generated_at = _utcnow()
    db.commit()
    return insp


def action_items(insp: Inspection) -> list[str]:
    if not insp.action_items_json:
        return []
    try:
        v = json.loads(insp.action_items_json)
    except ValueError:
        return []
    return [str(x) for x in v] if isinstance(v, list) else []


__all__ = [
    "action_items",
    "add_item",
    "add_room",
    "attach_image",
    "attach_voice_note",
    "complete_room",
    "current_assignment",
    "ensure_party",
    "entry_condition_index",
    "load_inspection_tree",
    "must_get_inspection",
    "must_get_item",
    "must_get_room",
    "next_room_order",
    "parse_scheduled_date",
    "rate_item",
    "recompute_condition_changed",
    "record_report",
    "schedule_inspection",
]
