"""tenant review: submissions, per-room acknowledgments, property inspection cadence

Revision ID: 0002_tenant_review
Revises: 0001_inspection_core
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

revision = "0002_tenant_review"
down_revision = "0001_inspection_core"
branch_labels = None
depends_on = None


def _insp():
    return inspect(op.get_bind())


def _has_table(name: str) -> bool:
    return name in _insp().get_table_names()


def _cols(table: str) -> set[str]:
    if not _has_table(table):
        return set()
    return {c["name"] for c in _insp().get_columns(table)}


def upgrade() -> None:
    prop_cols = _cols("properties")
    if "inspection_interval_months" not in prop_cols:
        op.add_column(
            "properties",
            sa.Column("inspection_interval_months", sa.Integer(), nullable=False, server_default="6"),
        )
    if "last_inspection_at" not in prop_cols:
        op.add_column("properties", sa.Column("last_inspection_at", sa.DateTime(), nullable=True))
    if "next_inspection_due" not in prop_cols:
        op.add_column("properties", sa.Column("next_inspection_due", sa.Date(), nullable=True))
        op.create_index("ix_properties_next_inspection_due", "properties", ["next_inspection_due"])

    room_cols = _cols("inspection_rooms")
    if "tenant_reviewed_at" not in room_cols:
        op.add_column("inspection_rooms", sa.Column("tenant_reviewed_at", sa.DateTime(), nullable=True))
    if "owner_review_completed_at" not in room_cols:
        op.add_column("inspection_rooms", sa.Column("owner_review_completed_at", sa.DateTime(), nullable=True))

    if not _has_table("inspection_tenant_submissions"):
        op.create_table(
            "inspection_tenant_submissions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("inspection_id", sa.Integer(), sa.ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("room_id", sa.Integer(), sa.ForeignKey("inspection_rooms.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("item_id", sa.Integer(), sa.ForeignKey("inspection_items.id", ondelete="SET NULL"), nullable=True),
            sa.Column("submitted_by", sa.String(64), nullable=False),
            sa.Column("submission_type", sa.String(30), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("original_description", sa.Text(), nullable=True),
            sa.Column("image_url", sa.Text(), nullable=True),
            sa.Column("storage_path", sa.Text(), nullable=True),
            sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
            sa.Column("reviewer_notes", sa.Text(), nullable=True),
            sa.Column("reviewed_at", sa.DateTime(), nullable=True),
            sa.Column("reviewed_by", sa.String(64), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )

    if not _has_table("inspection_room_acknowledgments"):
        op.create_table(
            "inspection_room_acknowledgments",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("inspection_id", sa.Integer(), sa.ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("room_id", sa.Integer(), sa.ForeignKey("inspection_rooms.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("acknowledged_by", sa.String(64), nullable=False),
            sa.Column("role", sa.String(20), nullable=False),
            sa.Column("signature_url", sa.Text(), nullable=True),
            sa.Column("acknowledged_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("room_id", "acknowledged_by", name="uq_room_ack_party"),
        )


def downgrade() -> None:
    for name in ("inspection_room_acknowledgments", "inspection_tenant_submissions"):
        if _has_table(name):
            op.drop_table(name)

    room_cols = _cols("inspection_rooms")
    for col in ("owner_review_completed_at", "tenant_reviewed_at"):
        if col in room_cols:
            op.drop_column("inspection_rooms", col)

    prop_cols = _cols("properties")
    if "next_inspection_due" in prop_cols:
        op.drop_index("ix_properties_next_inspection_due", table_name="properties")
    for col in ("next_inspection_due", "last_inspection_at", "inspection_interval_months"):
        if col in prop_cols:
            op.drop_column("properties", col)
