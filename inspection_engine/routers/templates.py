# inspection_engine/routers/templates.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Actor, get_actor
from ..db import get_db
from ..domain.templates import TemplateRoomSpec
from ..schemas import TemplateCreate, TemplateOut
from ..services import template_expander as templates

router = APIRouter(prefix="/templates", tags=["templates"])


@router.get("", response_model=list[TemplateOut])
def list_templates(db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return [TemplateOut.model_validate(t) for t in templates.list_templates(db, actor=actor)]


@router.get("/{template_id}", response_model=TemplateOut)
def get_template(template_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return TemplateOut.model_validate(templates.get_template(db, actor=actor, template_id=template_id))


@router.post("", response_model=TemplateOut)
def create_template(payload: TemplateCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    tpl = templates.create_template(
        db,
        actor=actor,
        name=payload.name,
        description=payload.description,
        rooms=[TemplateRoomSpec(name=r.name, items=tuple(r.items), display_order=i) for i, r in enumerate(payload.rooms)],
    )
    return TemplateOut.model_validate(tpl)


@router.delete("/{template_id}")
def delete_template(template_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    templates.delete_template(db, actor=actor, template_id=template_id)
    return {"ok": True}
