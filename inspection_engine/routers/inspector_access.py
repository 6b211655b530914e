# inspection_engine/routers/inspector_access.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas import (
    ImageCreate,
    ImageOut,
    InspectionOut,
    InspectionTreeOut,
    ItemOut,
    ItemRating,
    PortalSubmit,
    RoomCompletion,
    RoomOut,
    TokenOut,
    VoiceNoteCreate,
    VoiceNoteOut,
)
from ..services import access_tokens
from ..services import inspection_status as status_svc
from ..services import inspection_store as store
from .inspections import tree_out

# Unauthenticated: the path token is the only credential. Every route resolves
# it first and scopes all lookups to the token's inspection.
router = APIRouter(prefix="/access", tags=["inspector-access"])


@router.get("/{token}", response_model=InspectionTreeOut)
def portal_view(token: str, db: Session = Depends(get_db)):
    row = access_tokens.validate_access_token(db, token)
    return tree_out(store.load_inspection_tree(db, row.inspection_id))


@router.post("/{token}/start", response_model=InspectionOut)
def portal_start(token: str, db: Session = Depends(get_db)):
    row = access_tokens.validate_access_token(db, token)
    insp = status_svc.start_inspection(
        db, actor=access_tokens.token_actor(row), inspection_id=row.inspection_id, scope_inspection_id=row.inspection_id
    )
    return InspectionOut.model_validate(insp)


@router.put("/{token}/items/{item_id}/rating", response_model=ItemOut)
def portal_rate_item(token: str, item_id: int, payload: ItemRating, db: Session = Depends(get_db)):
    row = access_tokens.validate_access_token(db, token)
    item = store.rate_item(
        db,
        actor=access_tokens.token_actor(row),
        item_id=item_id,
        condition=payload.condition,
        notes=payload.notes,
        action_required=payload.action_required,
        action_description=payload.action_description,
        estimated_cost=payload.estimated_cost,
        if_unmodified_since=payload.if_unmodified_since,
        scope_inspection_id=row.inspection_id,
    )
    return ItemOut.model_validate(item)


@router.post("/{token}/rooms/{room_id}/complete", response_model=RoomOut)
def portal_complete_room(token: str, room_id: int, payload: RoomCompletion, db: Session = Depends(get_db)):
    row = access_tokens.validate_access_token(db, token)
    room = store.complete_room(
        db,
        actor=access_tokens.token_actor(row),
        room_id=room_id,
        overall_condition=payload.overall_condition,
        notes=payload.notes,
        scope_inspection_id=row.inspection_id,
    )
    return RoomOut.model_validate(room)


@router.post("/{token}/images", response_model=ImageOut)
def portal_attach_image(token: str, payload: ImageCreate, db: Session = Depends(get_db)):
    row = access_tokens.validate_access_token(db, token)
    img = store.attach_image(
        db,
        actor=access_tokens.token_actor(row),
        inspection_id=row.inspection_id,
        scope_inspection_id=row.inspection_id,
        **payload.model_dump(),
    )
    return ImageOut.model_validate(img)


@router.post("/{token}/voice-notes", response_model=VoiceNoteOut)
def portal_attach_voice_note(token: str, payload: VoiceNoteCreate, db: Session = Depends(get_db)):
    row = access_tokens.validate_access_token(db, token)
    note = store.attach_voice_note(
        db,
        actor=access_tokens.token_actor(row),
        inspection_id=row.inspection_id,
        scope_inspection_id=row.inspection_id,
        **payload.model_dump(),
    )
    return VoiceNoteOut.model_validate(note)


@router.post("/{token}/submit", response_model=TokenOut)
def portal_submit(token: str, payload: PortalSubmit, db: Session = Depends(get_db)):
    row = access_tokens.submit_inspection(
        db,
        token,
        overall_condition=payload.overall_condition,
        summary_notes=payload.summary_notes,
        action_items=payload.action_items,
        override_incomplete=payload.override_incomplete,
    )
    return TokenOut.model_validate(row)
