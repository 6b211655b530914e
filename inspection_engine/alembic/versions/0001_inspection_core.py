"""inspection core schema

Revision ID: 0001_inspection_core
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

revision = "0001_inspection_core"
down_revision = None
branch_labels = None
depends_on = None


def _insp():
    return inspect(op.get_bind())


def _has_table(name: str) -> bool:
    return name in _insp().get_table_names()


def _timestamps() -> list[sa.Column]:
    return [sa.Column("created_at", sa.DateTime(), nullable=False)]


def upgrade() -> None:
    if not _has_table("properties"):
        op.create_table(
            "properties",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("owner_user_id", sa.String(64), nullable=False, index=True),
            sa.Column("address", sa.String(255), nullable=False),
            sa.Column("state", sa.String(8), nullable=True),
            *_timestamps(),
        )

    if not _has_table("tenancies"):
        op.create_table(
            "tenancies",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("tenant_user_id", sa.String(64), nullable=False, index=True),
            *_timestamps(),
        )

    if not _has_table("audit_events"):
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("actor_user_id", sa.String(64), nullable=True),
            sa.Column("actor_role", sa.String(20), nullable=False),
            sa.Column("action", sa.String(80), nullable=False, index=True),
            sa.Column("entity_type", sa.String(80), nullable=False),
            sa.Column("entity_id", sa.String(80), nullable=False, index=True),
            sa.Column("before_json", sa.Text(), nullable=True),
            sa.Column("after_json", sa.Text(), nullable=True),
            *_timestamps(),
        )

    if not _has_table("inspections"):
        op.create_table(
            "inspections",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False),
            sa.Column("tenancy_id", sa.Integer(), sa.ForeignKey("tenancies.id", ondelete="SET NULL"), nullable=True, index=True),
            sa.Column("inspector_id", sa.String(64), nullable=False, index=True),
            sa.Column("created_by_user_id", sa.String(64), nullable=True),
            sa.Column("inspection_type", sa.String(20), nullable=False),
            sa.Column("scheduled_date", sa.Date(), nullable=False, index=True),
            sa.Column("scheduled_time", sa.Time(), nullable=True),
            sa.Column("actual_date", sa.Date(), nullable=True),
            sa.Column("actual_time", sa.Time(), nullable=True),
            sa.Column("duration_minutes", sa.Integer(), nullable=True),
            sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
            sa.Column("completed_at", sa.DateTime(), nullable=True),
            sa.Column("cancelled_at", sa.DateTime(), nullable=True),
            sa.Column("compare_to_inspection_id", sa.Integer(), sa.ForeignKey("inspections.id", ondelete="SET NULL"), nullable=True),
            sa.Column("overall_condition", sa.String(20), nullable=True),
            sa.Column("summary_notes", sa.Text(), nullable=True),
            sa.Column("action_items_json", sa.Text(), nullable=True),
            sa.Column("tenant_acknowledged", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("tenant_acknowledged_at", sa.DateTime(), nullable=True),
            sa.Column("tenant_signature_url", sa.Text(), nullable=True),
            sa.Column("tenant_disputes", sa.Text(), nullable=True),
            sa.Column("owner_signature_url", sa.Text(), nullable=True),
            sa.Column("owner_signed_at", sa.DateTime(), nullable=True),
            sa.Column("report_url", sa.Text(), nullable=True),
            sa.Column("report_generated_at", sa.DateTime(), nullable=True),
            sa.Column("is_outsourced", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("outsource_mode", sa.String(20), nullable=True),
            *_timestamps(),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_inspections_property_status", "inspections", ["property_id", "status"])

    if not _has_table("inspection_rooms"):
        op.create_table(
            "inspection_rooms",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("inspection_id", sa.Integer(), sa.ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("name", sa.String(120), nullable=False),
            sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("overall_condition", sa.String(20), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("completed_at", sa.DateTime(), nullable=True),
        )

    if not _has_table("inspection_items"):
        op.create_table(
            "inspection_items",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("room_id", sa.Integer(), sa.ForeignKey("inspection_rooms.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("name", sa.String(120), nullable=False),
            sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("condition", sa.String(20), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("action_required", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("action_description", sa.Text(), nullable=True),
            sa.Column("estimated_cost", sa.Float(), nullable=True),
            sa.Column("entry_condition", sa.String(20), nullable=True),
            sa.Column("condition_changed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("checked_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        )

    if not _has_table("inspection_images"):
        op.create_table(
            "inspection_images",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("inspection_id", sa.Integer(), sa.ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("room_id", sa.Integer(), sa.ForeignKey("inspection_rooms.id", ondelete="SET NULL"), nullable=True, index=True),
            sa.Column("item_id", sa.Integer(), sa.ForeignKey("inspection_items.id", ondelete="SET NULL"), nullable=True, index=True),
            sa.Column("storage_path", sa.String(500), nullable=False),
            sa.Column("url", sa.Text(), nullable=False),
            sa.Column("thumbnail_url", sa.Text(), nullable=True),
            sa.Column("caption", sa.Text(), nullable=True),
            sa.Column("compass_bearing", sa.Float(), nullable=True),
            sa.Column("device_pitch", sa.Float(), nullable=True),
            sa.Column("device_roll", sa.Float(), nullable=True),
            sa.Column("capture_sequence", sa.Integer(), nullable=True),
            sa.Column("is_wide_shot", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("is_closeup", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("taken_at", sa.DateTime(), nullable=False),
            *_timestamps(),
        )

    if not _has_table("inspection_voice_notes"):
        op.create_table(
            "inspection_voice_notes",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("inspection_id", sa.Integer(), sa.ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("room_id", sa.Integer(), sa.ForeignKey("inspection_rooms.id", ondelete="SET NULL"), nullable=True),
            sa.Column("item_id", sa.Integer(), sa.ForeignKey("inspection_items.id", ondelete="SET NULL"), nullable=True),
            sa.Column("storage_path", sa.String(500), nullable=False),
            sa.Column("url", sa.Text(), nullable=False),
            sa.Column("duration_seconds", sa.Integer(), nullable=False),
            sa.Column("transcript", sa.Text(), nullable=True),
            sa.Column("transcribed_at", sa.DateTime(), nullable=True),
            sa.Column("recorded_at", sa.DateTime(), nullable=False),
        )

    if not _has_table("inspection_templates"):
        op.create_table(
            "inspection_templates",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("owner_id", sa.String(64), nullable=True, index=True),
            sa.Column("name", sa.String(160), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            *_timestamps(),
        )

    if not _has_table("inspection_template_rooms"):
        op.create_table(
            "inspection_template_rooms",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("template_id", sa.Integer(), sa.ForeignKey("inspection_templates.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("name", sa.String(120), nullable=False),
            sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("items_json", sa.Text(), nullable=False, server_default="[]"),
        )

    if not _has_table("inspection_assignments"):
        op.create_table(
            "inspection_assignments",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("inspection_id", sa.Integer(), sa.ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("inspector_id", sa.String(64), nullable=False, index=True),
            sa.Column("inspector_email", sa.String(200), nullable=True),
            sa.Column("assigned_at", sa.DateTime(), nullable=False),
            sa.Column("assigned_by", sa.String(10), nullable=False, server_default="agent"),
            sa.Column("accepted", sa.Boolean(), nullable=True),
            sa.Column("accepted_at", sa.DateTime(), nullable=True),
            sa.Column("declined_reason", sa.Text(), nullable=True),
            sa.Column("responded_at", sa.DateTime(), nullable=True),
            sa.Column("proposed_date", sa.Date(), nullable=True),
            sa.Column("proposed_time_start", sa.Time(), nullable=True),
            sa.Column("proposed_time_end", sa.Time(), nullable=True),
            sa.Column("confirmed_date", sa.Date(), nullable=True),
            sa.Column("confirmed_time", sa.Time(), nullable=True),
            sa.Column("completed_at", sa.DateTime(), nullable=True),
            sa.Column("fee_amount", sa.Float(), nullable=False),
            sa.Column("fee_paid", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("rating", sa.Integer(), nullable=True),
            sa.Column("review_text", sa.Text(), nullable=True),
            sa.Column("superseded_by_id", sa.Integer(), sa.ForeignKey("inspection_assignments.id", ondelete="SET NULL"), nullable=True),
            sa.Column("superseded_at", sa.DateTime(), nullable=True),
            *_timestamps(),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        )

    if not _has_table("inspector_access_tokens"):
        op.create_table(
            "inspector_access_tokens",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("inspection_id", sa.Integer(), sa.ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("assignment_id", sa.Integer(), sa.ForeignKey("inspection_assignments.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("token", sa.String(32), nullable=False),
            sa.Column("email", sa.String(200), nullable=False),
            *_timestamps(),
            sa.Column("expires_at", sa.DateTime(), nullable=False),
            sa.Column("used_at", sa.DateTime(), nullable=True),
            sa.Column("completed_at", sa.DateTime(), nullable=True),
            sa.Column("revoked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("revoked_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_inspector_access_tokens_token", "inspector_access_tokens", ["token"], unique=True)

    if not _has_table("inspection_ai_comparisons"):
        op.create_table(
            "inspection_ai_comparisons",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("entry_inspection_id", sa.Integer(), sa.ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("exit_inspection_id", sa.Integer(), sa.ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False),
            sa.Column("total_issues", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("tenant_responsible_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("wear_and_tear_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("total_estimated_cost", sa.Float(), nullable=False, server_default="0"),
            sa.Column("bond_deduction_amount", sa.Float(), nullable=False, server_default="0"),
            sa.Column("bond_deduction_recommended", sa.Float(), nullable=False, server_default="0"),
            sa.Column("bond_deduction_reasoning", sa.Text(), nullable=True),
            sa.Column("summary", sa.Text(), nullable=True),
            sa.Column("status", sa.String(20), nullable=False, server_default="processing"),
            sa.Column("error_message", sa.Text(), nullable=True),
            sa.Column("run_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("started_at", sa.DateTime(), nullable=True),
            sa.Column("processed_at", sa.DateTime(), nullable=True),
            *_timestamps(),
            sa.UniqueConstraint("entry_inspection_id", "exit_inspection_id", name="uq_ai_comparison_pair"),
        )

    if not _has_table("inspection_ai_issues"):
        op.create_table(
            "inspection_ai_issues",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("comparison_id", sa.Integer(), sa.ForeignKey("inspection_ai_comparisons.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("room_id", sa.Integer(), sa.ForeignKey("inspection_rooms.id", ondelete="SET NULL"), nullable=True),
            sa.Column("item_id", sa.Integer(), sa.ForeignKey("inspection_items.id", ondelete="SET NULL"), nullable=True),
            sa.Column("room_name", sa.String(120), nullable=False),
            sa.Column("item_name", sa.String(120), nullable=False),
            sa.Column("entry_condition", sa.String(20), nullable=True),
            sa.Column("exit_condition", sa.String(20), nullable=True),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("severity", sa.String(10), nullable=False),
            sa.Column("change_type", sa.String(20), nullable=False),
            sa.Column("is_tenant_responsible", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("confidence", sa.Float(), nullable=False),
            sa.Column("estimated_cost", sa.Float(), nullable=False, server_default="0"),
            sa.Column("evidence_notes", sa.Text(), nullable=True),
            sa.Column("requires_manual_review", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("entry_image_id", sa.Integer(), sa.ForeignKey("inspection_images.id", ondelete="SET NULL"), nullable=True),
            sa.Column("exit_image_id", sa.Integer(), sa.ForeignKey("inspection_images.id", ondelete="SET NULL"), nullable=True),
            sa.Column("owner_agreed", sa.Boolean(), nullable=True),
            sa.Column("owner_notes", sa.Text(), nullable=True),
            sa.Column("override_change_type", sa.String(20), nullable=True),
            sa.Column("override_is_tenant_responsible", sa.Boolean(), nullable=True),
            sa.Column("override_estimated_cost", sa.Float(), nullable=True),
            sa.Column("overridden_by", sa.String(64), nullable=True),
            sa.Column("overridden_at", sa.DateTime(), nullable=True),
            *_timestamps(),
        )

    if not _has_table("inspection_item_disputes"):
        op.create_table(
            "inspection_item_disputes",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("inspection_id", sa.Integer(), sa.ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("item_id", sa.Integer(), sa.ForeignKey("inspection_items.id", ondelete="CASCADE"), nullable=False),
            sa.Column("raised_by", sa.String(64), nullable=True),
            sa.Column("dispute_reason", sa.Text(), nullable=False),
            sa.Column("proposed_condition", sa.String(20), nullable=True),
            sa.Column("status", sa.String(20), nullable=False, server_default="open"),
            sa.Column("owner_response", sa.Text(), nullable=True),
            sa.Column("resolution_notes", sa.Text(), nullable=True),
            sa.Column("resolved_condition", sa.String(20), nullable=True),
            sa.Column("resolved_at", sa.DateTime(), nullable=True),
            *_timestamps(),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        )


_TABLES_REVERSED = (
    "inspection_item_disputes",
    "inspection_ai_issues",
    "inspection_ai_comparisons",
    "inspector_access_tokens",
    "inspection_assignments",
    "inspection_template_rooms",
    "inspection_templates",
    "inspection_voice_notes",
    "inspection_images",
    "inspection_items",
    "inspection_rooms",
    "inspections",
    "audit_events",
    "tenancies",
    "properties",
)


def downgrade() -> None:
    for name in _TABLES_REVERSED:
        if _has_table(name):
            op.drop_table(name)
