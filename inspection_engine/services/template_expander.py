# inspection_engine/services/template_expander.py
from __future__ import annotations

import json
import logging
from typing import Iterable, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ..auth import Actor, require_capability
from ..domain.audit import audit_write
from ..domain.errors import Forbidden, NotFound, ValidationError
from ..domain.templates import (
    STANDARD_TEMPLATE_NAME,
    TemplateRoomSpec,
    name_key,
    standard_residential_template,
    validate_template_rooms,
)
from ..models import InspectionItem, InspectionRoom, InspectionTemplate, InspectionTemplateRoom
from .inspection_store import (
    EDITABLE_STATUSES,
    ensure_party,
    entry_condition_index,
    must_get_inspection,
    next_room_order,
    recompute_condition_changed,
)

log = logging.getLogger("inspections.templates")


def _room_specs(template: InspectionTemplate) -> list[TemplateRoomSpec]:
    specs: list[TemplateRoomSpec] = []
    for r in template.rooms:
        try:
            items = json.loads(r.items_json or "[]")
        except ValueError:
            raise ValidationError(f"template room '{r.name}' has a corrupt item list", field="items")
        if not isinstance(items, list):
            raise ValidationError(f"template room '{r.name}' has a corrupt item list", field="items")
        specs.append(TemplateRoomSpec(name=r.name, items=tuple(str(i) for i in items), display_order=r.display_order))
    return specs


def _template_visible(template: InspectionTemplate, actor: Actor) -> bool:
    if template.owner_id is None:
        return True
    return actor.role == "admin" or template.owner_id == actor.user_id


# -----------------------------
# Template CRUD
# -----------------------------
def seed_default_templates(db: Session) -> InspectionTemplate:
    """Idempotent: returns the existing system default when it is already present."""
    existing = db.scalar(
        select(InspectionTemplate).where(
            InspectionTemplate.owner_id.is_(None),
            InspectionTemplate.name == STANDARD_TEMPLATE_NAME,
        )
    )
    if existing is not None:
        return existing

    tpl = InspectionTemplate(
        owner_id=None,
        name=STANDARD_TEMPLATE_NAME,
        description="Typical house or apartment checklist",
        is_default=True,
    )
    for spec in standard_residential_template():
        tpl.rooms.append(
            InspectionTemplateRoom(name=spec.name, display_order=spec.display_order, items_json=json.dumps(list(spec.items)))
        )
    db.add(tpl)
    db.commit()
    log.info("default inspection template seeded", extra={"template_id": tpl.id})
    return tpl


def create_template(
    db: Session,
    *,
    actor: Actor,
    name: str,
    rooms: Iterable[TemplateRoomSpec],
    description: Optional[str] = None,
) -> InspectionTemplate:
    require_capability(actor, "template.manage")
    clean_name = " ".join((name or "").split())
    if not clean_name:
        raise ValidationError("template name is required", field="name")
    specs = validate_template_rooms(rooms)

    tpl = InspectionTemplate(
        owner_id=None if actor.role == "admin" else actor.user_id,
        name=clean_name,
        description=description,
        is_default=False,
    )
    for idx, spec in enumerate(specs):
        tpl.rooms.append(InspectionTemplateRoom(name=spec.name, display_order=idx, items_json=json.dumps(list(spec.items))))
    db.add(tpl)
    db.flush()
    audit_write(db, actor=actor, action="template.create", entity_type="InspectionTemplate", entity_id=tpl.id, after={"name": clean_name, "rooms": len(specs)})
    db.commit()
    return tpl


def list_templates(db: Session, *, actor: Actor) -> list[InspectionTemplate]:
    q = select(InspectionTemplate)
    if actor.role != "admin":
        q = q.where(or_(InspectionTemplate.owner_id.is_(None), InspectionTemplate.owner_id == actor.user_id))
    return list(db.scalars(q.order_by(InspectionTemplate.is_default.desc(), InspectionTemplate.id.asc())).all())


def get_template(db: Session, *, actor: Actor, template_id: int) -> InspectionTemplate:
    tpl = db.get(InspectionTemplate, template_id)
    if tpl is None or not _template_visible(tpl, actor):
        raise NotFound("template", template_id)
    return tpl


def delete_template(db: Session, *, actor: Actor, template_id: int) -> None:
    require_capability(actor, "template.manage")
    tpl = get_template(db, actor=actor, template_id=template_id)
    if tpl.owner_id is None and actor.role != "admin":
        raise Forbidden(actor.role, "delete system template")
    db.delete(tpl)
    audit_write(db, actor=actor, action="template.delete", entity_type="InspectionTemplate", entity_id=template_id)
    db.commit()


# -----------------------------
# Expansion
# -----------------------------
def expand_template(
    db: Session,
    *,
    actor: Actor,
    inspection_id: int,
    template_id: Optional[int] = None,
    rooms: Optional[Iterable[TemplateRoomSpec]] = None,
) -> list[InspectionRoom]:
    """
    Materializes a template into rooms and items on an inspection.

    All-or-nothing: every name is validated before anything is written, and the
    rooms and items land in one commit. Any failure leaves the inspection untouched.
    Items on an inspection with compare_to set get the prior rating as entry_condition.
    """
    require_capability(actor, "inspection.expand_template")
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor)
    if insp.status not in EDITABLE_STATUSES:
        raise ValidationError(f"inspection is '{insp.status}'; templates can only be expanded before completion")

    if (template_id is None) == (rooms is None):
        raise ValidationError("give exactly one of template_id or rooms", field="template_id")

    if template_id is not None:
        tpl = get_template(db, actor=actor, template_id=template_id)
        specs = validate_template_rooms(_room_specs(tpl))
    else:
        specs = validate_template_rooms(list(rooms or []))

    entry_index = entry_condition_index(db, insp)
    base_order = next_room_order(db, insp.id)

    created: list[InspectionRoom] = []
    try:
        for offset, spec in enumerate(specs):
            room = InspectionRoom(inspection_id=insp.id, name=spec.name, display_order=base_order + offset)
            for idx, item_name in enumerate(spec.items):
                item = InspectionItem(name=item_name, display_order=idx)
                snapshot = entry_index.get((name_key(spec.name), name_key(item_name)))
                if snapshot is not None:
                    item.entry_condition = snapshot
                recompute_condition_changed(item)
                room.items.append(item)
            db.add(room)
            created.append(room)

        audit_write(
            db,
            actor=actor,
            action="inspection.expand_template",
            entity_type="Inspection",
            entity_id=insp.id,
            after={
                "template_id": template_id,
                "rooms": len(specs),
                "items": sum(len(s.items) for s in specs),
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        log.exception("template expansion rolled back", extra={"inspection_id": inspection_id})
        raise

    log.info(
        "template expanded",
        extra={"inspection_id": insp.id, "actor_role": actor.role},
    )
    return created
