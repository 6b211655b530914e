# inspection_engine/schemas.py
from __future__ import annotations

import json
from datetime import date, datetime, time
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# -------------------- Scheduling / inspections --------------------

class InspectionCreate(BaseModel):
    property_id: int
    inspector_id: str
    inspection_type: str
    scheduled_date: str
    scheduled_time: Optional[time] = None
    tenancy_id: Optional[int] = None
    compare_to_inspection_id: Optional[int] = None
    summary_notes: Optional[str] = None


class InspectionOut(BaseModel):
    id: int
    property_id: int
    tenancy_id: Optional[int] = None
    inspector_id: str
    inspection_type: str
    scheduled_date: date
    scheduled_time: Optional[time] = None
    actual_date: Optional[date] = None
    actual_time: Optional[time] = None
    duration_minutes: Optional[int] = None
    status: str
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    compare_to_inspection_id: Optional[int] = None

    overall_condition: Optional[str] = None
    summary_notes: Optional[str] = None
    action_items: list[str] = Field(default_factory=list)

    tenant_acknowledged: bool = False
    tenant_acknowledged_at: Optional[datetime] = None
    tenant_signature_url: Optional[str] = None
    tenant_disputes: Optional[str] = None
    owner_signature_url: Optional[str] = None
    owner_signed_at: Optional[datetime] = None

    report_url: Optional[str] = None
    report_generated_at: Optional[datetime] = None

    is_outsourced: bool = False
    outsource_mode: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="before")
    @classmethod
    def _unpack_action_items(cls, data: Any) -> Any:
        raw = getattr(data, "action_items_json", None)
        if raw is None:
            return data
        try:
            items = json.loads(raw)
        except ValueError:
            items = []
        payload = {k: getattr(data, k) for k in cls.model_fields if k != "action_items" and hasattr(data, k)}
        payload["action_items"] = [str(x) for x in items] if isinstance(items, list) else []
        return payload


class ItemOut(BaseModel):
    id: int
    room_id: int
    name: str
    display_order: int
    condition: Optional[str] = None
    notes: Optional[str] = None
    action_required: bool = False
    action_description: Optional[str] = None
    estimated_cost: Optional[float] = None
    entry_condition: Optional[str] = None
    condition_changed: bool = False
    checked_at: Optional[datetime] = None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoomOut(BaseModel):
    id: int
    inspection_id: int
    name: str
    display_order: int
    overall_condition: Optional[str] = None
    notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    tenant_reviewed_at: Optional[datetime] = None
    owner_review_completed_at: Optional[datetime] = None
    items: List[ItemOut] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class ImageOut(BaseModel):
    id: int
    inspection_id: int
    room_id: Optional[int] = None
    item_id: Optional[int] = None
    storage_path: str
    url: str
    thumbnail_url: Optional[str] = None
    caption: Optional[str] = None
    compass_bearing: Optional[float] = None
    device_pitch: Optional[float] = None
    device_roll: Optional[float] = None
    capture_sequence: Optional[int] = None
    is_wide_shot: bool = False
    is_closeup: bool = False
    taken_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VoiceNoteOut(BaseModel):
    id: int
    inspection_id: int
    room_id: Optional[int] = None
    item_id: Optional[int] = None
    storage_path: str
    url: str
    duration_seconds: int
    transcript: Optional[str] = None
    transcribed_at: Optional[datetime] = None
    recorded_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InspectionTreeOut(BaseModel):
    inspection: InspectionOut
    rooms: List[RoomOut]
    images: List[ImageOut] = Field(default_factory=list)
    voice_notes: List[VoiceNoteOut] = Field(default_factory=list)


class RoomCreate(BaseModel):
    name: str
    display_order: Optional[int] = None


class ItemCreate(BaseModel):
    name: str
    display_order: Optional[int] = None


class ItemRating(BaseModel):
    condition: str
    notes: Optional[str] = None
    action_required: Optional[bool] = None
    action_description: Optional[str] = None
    estimated_cost: Optional[float] = None
    # last value of checked_at the client saw; a newer one is logged as a conflict
    if_unmodified_since: Optional[datetime] = None


class RoomCompletion(BaseModel):
    overall_condition: Optional[str] = None
    notes: Optional[str] = None


class ImageCreate(BaseModel):
    storage_path: str
    url: str
    room_id: Optional[int] = None
    item_id: Optional[int] = None
    thumbnail_url: Optional[str] = None
    caption: Optional[str] = None
    taken_at: Optional[datetime] = None
    compass_bearing: Optional[float] = None
    device_pitch: Optional[float] = None
    device_roll: Optional[float] = None
    capture_sequence: Optional[int] = None
    is_wide_shot: bool = False
    is_closeup: bool = False


class VoiceNoteCreate(BaseModel):
    storage_path: str
    url: str
    duration_seconds: int
    room_id: Optional[int] = None
    item_id: Optional[int] = None
    transcript: Optional[str] = None


class ReportRecord(BaseModel):
    report_url: str


# -------------------- Status actions --------------------

class CompleteRequest(BaseModel):
    overall_condition: Optional[str] = None
    summary_notes: Optional[str] = None
    action_items: Optional[List[str]] = None
    override_incomplete: bool = False


class SignatureRequest(BaseModel):
    signature_url: str


class ItemDisputeCreate(BaseModel):
    item_id: int
    reason: str
    proposed_condition: Optional[str] = None


class DisputeRequest(BaseModel):
    dispute_text: str
    items: List[ItemDisputeCreate] = Field(default_factory=list)


class CancelRequest(BaseModel):
    reason: Optional[str] = None


# -------------------- Templates --------------------

class TemplateRoomIn(BaseModel):
    name: str
    items: List[str] = Field(default_factory=list)


class TemplateCreate(BaseModel):
    name: str
    description: Optional[str] = None
    rooms: List[TemplateRoomIn]


class TemplateRoomOut(BaseModel):
    id: int
    name: str
    display_order: int
    items: List[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="before")
    @classmethod
    def _unpack_items(cls, data: Any) -> Any:
        raw = getattr(data, "items_json", None)
        if raw is None:
            return data
        try:
            items = json.loads(raw)
        except ValueError:
            items = []
        return {
            "id": data.id,
            "name": data.name,
            "display_order": data.display_order,
            "items": [str(x) for x in items] if isinstance(items, list) else [],
        }


class TemplateOut(BaseModel):
    id: int
    owner_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    is_default: bool = False
    rooms: List[TemplateRoomOut] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class ExpandTemplateRequest(BaseModel):
    template_id: Optional[int] = None
    rooms: Optional[List[TemplateRoomIn]] = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "ExpandTemplateRequest":
        if (self.template_id is None) == (self.rooms is None):
            raise ValueError("give exactly one of template_id or rooms")
        return self


# -------------------- Outsourcing --------------------

class AssignmentCreate(BaseModel):
    inspector_id: str
    inspector_email: Optional[str] = None
    fee_amount: float = Field(ge=0)
    proposed_date: Optional[date] = None
    proposed_time_start: Optional[time] = None
    proposed_time_end: Optional[time] = None


class AssignmentAccept(BaseModel):
    confirmed_date: date
    confirmed_time: time


class AssignmentDecline(BaseModel):
    reason: str


class AssignmentRating(BaseModel):
    rating: int
    review_text: Optional[str] = None


class AssignmentOut(BaseModel):
    id: int
    inspection_id: int
    inspector_id: str
    inspector_email: Optional[str] = None
    assigned_at: datetime
    assigned_by: str
    accepted: Optional[bool] = None
    accepted_at: Optional[datetime] = None
    declined_reason: Optional[str] = None
    responded_at: Optional[datetime] = None
    proposed_date: Optional[date] = None
    proposed_time_start: Optional[time] = None
    proposed_time_end: Optional[time] = None
    confirmed_date: Optional[date] = None
    confirmed_time: Optional[time] = None
    completed_at: Optional[datetime] = None
    fee_amount: float
    fee_paid: bool = False
    rating: Optional[int] = None
    review_text: Optional[str] = None
    superseded_by_id: Optional[int] = None
    superseded_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TokenCreate(BaseModel):
    assignment_id: int
    email: str

    @field_validator("email")
    @classmethod
    def _email_lower(cls, v: str) -> str:
        return (v or "").strip().lower()


class TokenOut(BaseModel):
    id: int
    inspection_id: int
    assignment_id: int
    email: str
    created_at: datetime
    expires_at: datetime
    used_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    revoked: bool = False
    revoked_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TokenIssuedOut(TokenOut):
    # only returned once, to the issuer
    token: str
    link: str


class PortalSubmit(BaseModel):
    overall_condition: Optional[str] = None
    summary_notes: Optional[str] = None
    action_items: Optional[List[str]] = None
    override_incomplete: bool = False


# -------------------- Comparison --------------------

class ComparisonRequest(BaseModel):
    entry_inspection_id: int
    exit_inspection_id: int
    reset: bool = False


class IssueOut(BaseModel):
    id: int
    comparison_id: int
    room_id: Optional[int] = None
    item_id: Optional[int] = None
    room_name: str
    item_name: str
    entry_condition: Optional[str] = None
    exit_condition: Optional[str] = None
    description: str
    severity: str
    change_type: str
    is_tenant_responsible: bool
    confidence: float
    estimated_cost: float
    evidence_notes: Optional[str] = None
    requires_manual_review: bool = False
    entry_image_id: Optional[int] = None
    exit_image_id: Optional[int] = None

    owner_agreed: Optional[bool] = None
    owner_notes: Optional[str] = None
    override_change_type: Optional[str] = None
    override_is_tenant_responsible: Optional[bool] = None
    override_estimated_cost: Optional[float] = None
    overridden_by: Optional[str] = None
    overridden_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ComparisonOut(BaseModel):
    id: int
    entry_inspection_id: int
    exit_inspection_id: int
    property_id: int
    total_issues: int
    tenant_responsible_count: int
    wear_and_tear_count: int
    total_estimated_cost: float
    bond_deduction_amount: float
    bond_deduction_recommended: float
    bond_deduction_reasoning: Optional[str] = None
    summary: Optional[str] = None
    status: str
    error_message: Optional[str] = None
    run_count: int
    started_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    issues: List[IssueOut] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class IssueOverride(BaseModel):
    owner_agreed: bool
    owner_notes: Optional[str] = None
    change_type: Optional[str] = None
    is_tenant_responsible: Optional[bool] = None
    estimated_cost: Optional[float] = Field(default=None, ge=0)


# -------------------- Disputes --------------------

class DisputeRaise(BaseModel):
    item_id: int
    reason: str
    proposed_condition: Optional[str] = None


class DisputeResponse(BaseModel):
    response: str
    resolved_condition: Optional[str] = None
    resolution_notes: Optional[str] = None


class DisputeEscalate(BaseModel):
    notes: Optional[str] = None


class DisputeOut(BaseModel):
    id: int
    inspection_id: int
    item_id: int
    raised_by: Optional[str] = None
    dispute_reason: str
    proposed_condition: Optional[str] = None
    status: str
    owner_response: Optional[str] = None
    resolution_notes: Optional[str] = None
    resolved_condition: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# -------------------- Tenant review --------------------

class TenantSubmissionCreate(BaseModel):
    room_id: int
    submission_type: str
    item_id: Optional[int] = None
    description: Optional[str] = None
    original_description: Optional[str] = None
    image_url: Optional[str] = None
    storage_path: Optional[str] = None


class TenantSubmissionReview(BaseModel):
    status: str
    reviewer_notes: Optional[str] = None


class TenantSubmissionOut(BaseModel):
    id: int
    inspection_id: int
    room_id: int
    item_id: Optional[int] = None
    submitted_by: str
    submission_type: str
    description: Optional[str] = None
    original_description: Optional[str] = None
    image_url: Optional[str] = None
    status: str
    reviewer_notes: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoomAcknowledgeRequest(BaseModel):
    signature_url: Optional[str] = None


class RoomAcknowledgmentOut(BaseModel):
    id: int
    inspection_id: int
    room_id: int
    acknowledged_by: str
    role: str
    signature_url: Optional[str] = None
    acknowledged_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReviewProgressOut(BaseModel):
    inspection_id: int
    total_rooms: int
    tenant_reviewed_rooms: int
    owner_reviewed_rooms: int
    pending_submissions: int

    model_config = ConfigDict(from_attributes=True)
