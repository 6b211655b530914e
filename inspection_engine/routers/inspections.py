# inspection_engine/routers/inspections.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Actor, get_actor
from ..db import get_db
from ..models import Inspection
from ..schemas import (
    CancelRequest,
    CompleteRequest,
    DisputeRequest,
    ExpandTemplateRequest,
    ImageCreate,
    ImageOut,
    InspectionCreate,
    InspectionOut,
    InspectionTreeOut,
    ItemCreate,
    ItemOut,
    ItemRating,
    ReportRecord,
    RoomCompletion,
    RoomCreate,
    RoomOut,
    SignatureRequest,
    VoiceNoteCreate,
    VoiceNoteOut,
)
from ..domain.templates import TemplateRoomSpec
from ..services import inspection_status as status_svc
from ..services import inspection_store as store
from ..services.template_expander import expand_template

router = APIRouter(prefix="/inspections", tags=["inspections"])


def tree_out(insp: Inspection) -> InspectionTreeOut:
    return InspectionTreeOut(
        inspection=InspectionOut.model_validate(insp),
        rooms=[RoomOut.model_validate(r) for r in insp.rooms],
        images=[ImageOut.model_validate(i) for i in insp.images],
        voice_notes=[VoiceNoteOut.model_validate(v) for v in insp.voice_notes],
    )


# -----------------------------
# Scheduling / reads
# -----------------------------
@router.post("", response_model=InspectionOut)
def schedule(payload: InspectionCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    insp = store.schedule_inspection(
        db,
        actor=actor,
        property_id=payload.property_id,
        inspector_id=payload.inspector_id,
        kind=payload.inspection_type,
        scheduled_date=payload.scheduled_date,
        scheduled_time=payload.scheduled_time,
        tenancy_id=payload.tenancy_id,
        compare_to_inspection_id=payload.compare_to_inspection_id,
        summary_notes=payload.summary_notes,
    )
    return InspectionOut.model_validate(insp)


@router.get("/{inspection_id}", response_model=InspectionTreeOut)
def get_inspection(inspection_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    insp = store.load_inspection_tree(db, inspection_id)
    store.ensure_party(db, insp, actor)
    return tree_out(insp)


# -----------------------------
# Checklist
# -----------------------------
@router.post("/{inspection_id}/expand-template", response_model=list[RoomOut])
def expand(
    inspection_id: int,
    payload: ExpandTemplateRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    rooms = None
    if payload.rooms is not None:
        rooms = [TemplateRoomSpec(name=r.name, items=tuple(r.items), display_order=i) for i, r in enumerate(payload.rooms)]
    created = expand_template(db, actor=actor, inspection_id=inspection_id, template_id=payload.template_id, rooms=rooms)
    return [RoomOut.model_validate(r) for r in created]


@router.post("/{inspection_id}/rooms", response_model=RoomOut)
def add_room(inspection_id: int, payload: RoomCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    room = store.add_room(db, actor=actor, inspection_id=inspection_id, name=payload.name, display_order=payload.display_order)
    return RoomOut.model_validate(room)


@router.post("/rooms/{room_id}/items", response_model=ItemOut)
def add_item(room_id: int, payload: ItemCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    item = store.add_item(db, actor=actor, room_id=room_id, name=payload.name, display_order=payload.display_order)
    return ItemOut.model_validate(item)


@router.put("/items/{item_id}/rating", response_model=ItemOut)
def rate_item(item_id: int, payload: ItemRating, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    item = store.rate_item(
        db,
        actor=actor,
        item_id=item_id,
        condition=payload.condition,
        notes=payload.notes,
        action_required=payload.action_required,
        action_description=payload.action_description,
        estimated_cost=payload.estimated_cost,
        if_unmodified_since=payload.if_unmodified_since,
    )
    return ItemOut.model_validate(item)


@router.post("/rooms/{room_id}/complete", response_model=RoomOut)
def complete_room(room_id: int, payload: RoomCompletion, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    room = store.complete_room(db, actor=actor, room_id=room_id, overall_condition=payload.overall_condition, notes=payload.notes)
    return RoomOut.model_validate(room)


# -----------------------------
# Evidence / report
# -----------------------------
@router.post("/{inspection_id}/images", response_model=ImageOut)
def attach_image(inspection_id: int, payload: ImageCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    img = store.attach_image(db, actor=actor, inspection_id=inspection_id, **payload.model_dump())
    return ImageOut.model_validate(img)


@router.post("/{inspection_id}/voice-notes", response_model=VoiceNoteOut)
def attach_voice_note(
    inspection_id: int,
    payload: VoiceNoteCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    note = store.attach_voice_note(db, actor=actor, inspection_id=inspection_id, **payload.model_dump())
    return VoiceNoteOut.model_validate(note)


@router.post("/{inspection_id}/report", response_model=InspectionOut)
def record_report(inspection_id: int, payload: ReportRecord, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return InspectionOut.model_validate(store.record_report(db, actor=actor, inspection_id=inspection_id, report_url=payload.report_url))


# -----------------------------
# Status machine
# -----------------------------
@router.post("/{inspection_id}/start", response_model=InspectionOut)
def start(inspection_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return InspectionOut.model_validate(status_svc.start_inspection(db, actor=actor, inspection_id=inspection_id))


@router.post("/{inspection_id}/complete", response_model=InspectionOut)
def complete(inspection_id: int, payload: CompleteRequest, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    insp = status_svc.complete_inspection(
        db,
        actor=actor,
        inspection_id=inspection_id,
        overall_condition=payload.overall_condition,
        summary_notes=payload.summary_notes,
        action_items=payload.action_items,
        override_incomplete=payload.override_incomplete,
    )
    return InspectionOut.model_validate(insp)


@router.post("/{inspection_id}/send-for-review", response_model=InspectionOut)
def send_for_review(inspection_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return InspectionOut.model_validate(status_svc.send_for_review(db, actor=actor, inspection_id=inspection_id))


@router.post("/{inspection_id}/acknowledge", response_model=InspectionOut)
def acknowledge(inspection_id: int, payload: SignatureRequest, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    insp = status_svc.acknowledge_inspection(db, actor=actor, inspection_id=inspection_id, signature_url=payload.signature_url)
    return InspectionOut.model_validate(insp)


@router.post("/{inspection_id}/dispute", response_model=InspectionOut)
def dispute(inspection_id: int, payload: DisputeRequest, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    insp = status_svc.dispute_inspection(
        db,
        actor=actor,
        inspection_id=inspection_id,
        dispute_text=payload.dispute_text,
        item_disputes=[i.model_dump() for i in payload.items],
    )
    return InspectionOut.model_validate(insp)


@router.post("/{inspection_id}/finalize", response_model=InspectionOut)
def finalize(inspection_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return InspectionOut.model_validate(status_svc.finalize_inspection(db, actor=actor, inspection_id=inspection_id))


@router.post("/{inspection_id}/cancel", response_model=InspectionOut)
def cancel(inspection_id: int, payload: CancelRequest, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    insp = status_svc.cancel_inspection(db, actor=actor, inspection_id=inspection_id, reason=payload.reason)
    return InspectionOut.model_validate(insp)


@router.post("/{inspection_id}/sign", response_model=InspectionOut)
def sign(inspection_id: int, payload: SignatureRequest, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    insp = status_svc.sign_inspection(db, actor=actor, inspection_id=inspection_id, signature_url=payload.signature_url)
    return InspectionOut.model_validate(insp)
