# inspection_engine/models.py
from __future__ import annotations

from datetime import date, datetime, time
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


# -----------------------------
# External collaborators (referential presence only)
# -----------------------------
class Property(Base):
    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    state: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)

    # routine inspection cadence; last/next are maintained as inspections complete
    inspection_interval_months: Mapped[int] = mapped_column(Integer, nullable=False, default=6)
    last_inspection_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    next_inspection_due: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    inspections: Mapped[List["Inspection"]] = relationship(back_populates="property")


class Tenancy(Base):
    __tablename__ = "tenancies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    tenant_user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Audit trail
# -----------------------------
class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor_user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    actor_role: Mapped[str] = mapped_column(String(20), nullable=False)

    action: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(80), nullable=False, index=True)

    before_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    after_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Inspections
# -----------------------------
class Inspection(Base):
    __tablename__ = "inspections"
    __table_args__ = (Index("ix_inspections_property_status", "property_id", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    property_id: Mapped[int] = mapped_column(ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)
    tenancy_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("tenancies.id", ondelete="SET NULL"), nullable=True, index=True
    )
    inspector_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    created_by_user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    inspection_type: Mapped[str] = mapped_column(String(20), nullable=False)  # InspectionKind
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    scheduled_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    actual_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    actual_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled")
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    compare_to_inspection_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("inspections.id", ondelete="SET NULL"), nullable=True
    )

    overall_condition: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    summary_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    action_items_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    tenant_acknowledged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tenant_acknowledged_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    tenant_signature_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tenant_disputes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    owner_signature_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    owner_signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    report_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    report_generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    is_outsourced: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    outsource_mode: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)  # self|professional|auto_managed

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    property: Mapped["Property"] = relationship(back_populates="inspections")
    rooms: Mapped[List["InspectionRoom"]] = relationship(
        back_populates="inspection",
        cascade="all, delete-orphan",
        order_by="InspectionRoom.display_order, InspectionRoom.id",
    )
    images: Mapped[List["InspectionImage"]] = relationship(
        back_populates="inspection", cascade="all, delete-orphan", order_by="InspectionImage.id"
    )
    voice_notes: Mapped[List["InspectionVoiceNote"]] = relationship(
        back_populates="inspection", cascade="all, delete-orphan", order_by="InspectionVoiceNote.id"
    )


class InspectionRoom(Base):
    __tablename__ = "inspection_rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    inspection_id: Mapped[int] = mapped_column(
        ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True
    )

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overall_condition: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    tenant_reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    owner_review_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    inspection: Mapped["Inspection"] = relationship(back_populates="rooms")
    items: Mapped[List["InspectionItem"]] = relationship(
        back_populates="room",
        cascade="all, delete-orphan",
        order_by="InspectionItem.display_order, InspectionItem.id",
    )


class InspectionItem(Base):
    __tablename__ = "inspection_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    room_id: Mapped[int] = mapped_column(ForeignKey("inspection_rooms.id", ondelete="CASCADE"), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    condition: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    action_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    action_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    estimated_cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # exit inspections: snapshot of the entry rating
    entry_condition: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    condition_changed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    checked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    room: Mapped["InspectionRoom"] = relationship(back_populates="items")


class InspectionImage(Base):
    __tablename__ = "inspection_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    inspection_id: Mapped[int] = mapped_column(
        ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    room_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("inspection_rooms.id", ondelete="SET NULL"), nullable=True, index=True
    )
    item_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("inspection_items.id", ondelete="SET NULL"), nullable=True, index=True
    )

    storage_path: Mapped[str] = mapped_column(String(500), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    caption: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    compass_bearing: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    device_pitch: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    device_roll: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    capture_sequence: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_wide_shot: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_closeup: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    taken_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    inspection: Mapped["Inspection"] = relationship(back_populates="images")


class InspectionVoiceNote(Base):
    __tablename__ = "inspection_voice_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    inspection_id: Mapped[int] = mapped_column(
        ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    room_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("inspection_rooms.id", ondelete="SET NULL"), nullable=True
    )
    item_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("inspection_items.id", ondelete="SET NULL"), nullable=True
    )

    storage_path: Mapped[str] = mapped_column(String(500), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False)

    transcript: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    transcribed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    recorded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    inspection: Mapped["Inspection"] = relationship(back_populates="voice_notes")


# -----------------------------
# Templates (blueprints, no condition state)
# -----------------------------
class InspectionTemplate(Base):
    __tablename__ = "inspection_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)  # NULL = system
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    rooms: Mapped[List["InspectionTemplateRoom"]] = relationship(
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="InspectionTemplateRoom.display_order, InspectionTemplateRoom.id",
    )


class InspectionTemplateRoom(Base):
    __tablename__ = "inspection_template_rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    template_id: Mapped[int] = mapped_column(
        ForeignKey("inspection_templates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")

    template: Mapped["InspectionTemplate"] = relationship(back_populates="rooms")


# -----------------------------
# Outsourcing
# -----------------------------
class InspectionAssignment(Base):
    __tablename__ = "inspection_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    inspection_id: Mapped[int] = mapped_column(
        ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    inspector_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    inspector_email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    assigned_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    assigned_by: Mapped[str] = mapped_column(String(10), nullable=False, default="agent")  # agent|owner

    # None = awaiting response
    accepted: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    declined_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    responded_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    proposed_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    proposed_time_start: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    proposed_time_end: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    confirmed_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    confirmed_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)

    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    fee_amount: Mapped[float] = mapped_column(Float, nullable=False)
    fee_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    review_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # historical once superseded; never mutated afterwards
    superseded_by_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("inspection_assignments.id", ondelete="SET NULL"), nullable=True
    )
    superseded_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class InspectorAccessToken(Base):
    __tablename__ = "inspector_access_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    inspection_id: Mapped[int] = mapped_column(
        ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assignment_id: Mapped[int] = mapped_column(
        ForeignKey("inspection_assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )

    token: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)
    email: Mapped[str] = mapped_column(String(200), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


# -----------------------------
# Entry/exit comparison
# -----------------------------
class AIComparison(Base):
    __tablename__ = "inspection_ai_comparisons"
    __table_args__ = (
        UniqueConstraint("entry_inspection_id", "exit_inspection_id", name="uq_ai_comparison_pair"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entry_inspection_id: Mapped[int] = mapped_column(
        ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    exit_inspection_id: Mapped[int] = mapped_column(
        ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    property_id: Mapped[int] = mapped_column(ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)

    total_issues: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tenant_responsible_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wear_and_tear_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_estimated_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    bond_deduction_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    bond_deduction_recommended: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    bond_deduction_reasoning: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="processing")
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    run_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    issues: Mapped[List["AIIssue"]] = relationship(
        back_populates="comparison",
        cascade="all, delete-orphan",
        order_by="AIIssue.display_order, AIIssue.id",
    )


class AIIssue(Base):
    __tablename__ = "inspection_ai_issues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    comparison_id: Mapped[int] = mapped_column(
        ForeignKey("inspection_ai_comparisons.id", ondelete="CASCADE"), nullable=False, index=True
    )
    room_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("inspection_rooms.id", ondelete="SET NULL"), nullable=True
    )
    item_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("inspection_items.id", ondelete="SET NULL"), nullable=True
    )

    room_name: Mapped[str] = mapped_column(String(120), nullable=False)
    item_name: Mapped[str] = mapped_column(String(120), nullable=False)
    entry_condition: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    exit_condition: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    severity: Mapped[str] = mapped_column(String(10), nullable=False)  # minor|moderate|major
    change_type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_tenant_responsible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    estimated_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    evidence_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    requires_manual_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    entry_image_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("inspection_images.id", ondelete="SET NULL"), nullable=True
    )
    exit_image_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("inspection_images.id", ondelete="SET NULL"), nullable=True
    )

    # owner override; machine columns above are never rewritten by it
    owner_agreed: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    owner_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    override_change_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    override_is_tenant_responsible: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    override_estimated_cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    overridden_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    overridden_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    comparison: Mapped["AIComparison"] = relationship(back_populates="issues")


# -----------------------------
# Disputes
# -----------------------------
class ItemDispute(Base):
    __tablename__ = "inspection_item_disputes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    inspection_id: Mapped[int] = mapped_column(
        ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_id: Mapped[int] = mapped_column(ForeignKey("inspection_items.id", ondelete="CASCADE"), nullable=False)
    raised_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    dispute_reason: Mapped[str] = mapped_column(Text, nullable=False)
    proposed_condition: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")
    owner_response: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolution_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolved_condition: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )


# -----------------------------
# Tenant review
# -----------------------------
class TenantSubmission(Base):
    """A photo, correction, missing item or question the tenant adds while reviewing."""

    __tablename__ = "inspection_tenant_submissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    inspection_id: Mapped[int] = mapped_column(
        ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    room_id: Mapped[int] = mapped_column(ForeignKey("inspection_rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id: Mapped[Optional[int]] = mapped_column(ForeignKey("inspection_items.id", ondelete="SET NULL"), nullable=True)
    submitted_by: Mapped[str] = mapped_column(String(64), nullable=False)

    submission_type: Mapped[str] = mapped_column(String(30), nullable=False)  # SubmissionType

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    original_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    storage_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    reviewer_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class RoomAcknowledgment(Base):
    __tablename__ = "inspection_room_acknowledgments"
    __table_args__ = (UniqueConstraint("room_id", "acknowledged_by", name="uq_room_ack_party"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    inspection_id: Mapped[int] = mapped_column(
        ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    room_id: Mapped[int] = mapped_column(ForeignKey("inspection_rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    acknowledged_by: Mapped[str] = mapped_column(String(64), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)  # tenant|owner
    signature_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    acknowledged_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
