"""Initial schema

Revision ID: 001
Revises: None
Create Date: 2025-06-01 00:00:00.000000+00:00

What:  Creates every table of the rewards backend: the CMS-maintained users
       and magazines, pickups, rider reviews and scans, BTL coin awards, the
       earnings ledger, notifications and the side-effect task queue.

Rollback: downgrade() drops all tables (destructive).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def upgrade() -> None:
    # ── Reference tables (CMS) ────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("first_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("email", sa.String(255), nullable=True, unique=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="driver"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "magazines",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("edition_number", sa.Integer(), nullable=True),
        sa.Column("barcode", sa.String(128), nullable=False),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        *_timestamps(),
    )
    op.create_index("ix_magazines_barcode", "magazines", ["barcode"], unique=True)

    # ── Pickups ───────────────────────────────────────────────────────────
    op.create_table(
        "magazine_pickups",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("driver_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("magazine_id", sa.Uuid(), sa.ForeignKey("magazines.id", ondelete="CASCADE"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("location_name", sa.String(255), nullable=True),
        sa.Column("location_address", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="requested"),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("qr_code", sa.String(64), nullable=True, unique=True),
        sa.Column("verification_code", sa.String(6), nullable=True),
        sa.Column("activation_barcode", sa.String(128), nullable=True),
        sa.Column("rider_scans", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("btl_coins_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("return_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("picked_up_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("activated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_return_date", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("quantity >= 1", name="ck_pickups_quantity_positive"),
        *_timestamps(),
    )
    op.create_index("idx_pickups_driver_magazine", "magazine_pickups", ["driver_id", "magazine_id"])
    op.create_index("idx_pickups_activation_barcode", "magazine_pickups", ["activation_barcode", "status"])

    # ── Rider reviews and scans ───────────────────────────────────────────
    op.create_table(
        "driver_ratings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("driver_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rater_name", sa.String(255), nullable=False),
        sa.Column("rater_email", sa.String(255), nullable=True),
        sa.Column("rater_phone", sa.String(32), nullable=True),
        sa.Column("device_fingerprint", sa.String(255), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("review", sa.Text(), nullable=False, server_default=""),
        sa.Column("category", sa.String(32), nullable=False, server_default="overall"),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("magazine_barcode", sa.String(128), nullable=False),
        sa.Column("scan_timestamp", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("btl_coin_awarded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_ratings_rating_range"),
        sa.UniqueConstraint("driver_id", "magazine_barcode", "device_fingerprint",
                            name="uq_ratings_driver_barcode_device"),
        sa.UniqueConstraint("driver_id", "magazine_barcode", "rater_email",
                            name="uq_ratings_driver_barcode_email"),
        *_timestamps(),
    )
    op.create_index("idx_ratings_driver_created", "driver_ratings", ["driver_id", "created_at"])

    op.create_table(
        "rider_scans",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("driver_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("magazine_id", sa.Uuid(), sa.ForeignKey("magazines.id", ondelete="CASCADE"), nullable=False),
        sa.Column("magazine_barcode", sa.String(128), nullable=False),
        sa.Column("device_fingerprint", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "idx_scans_cooldown", "rider_scans",
        ["driver_id", "magazine_barcode", "device_fingerprint", "created_at"],
    )

    # ── Rewards ───────────────────────────────────────────────────────────
    op.create_table(
        "driver_earnings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("driver_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("scans", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="NGN"),
        sa.Column("type", sa.String(32), nullable=False, server_default="bonus"),
        sa.Column("source", sa.String(32), nullable=False, server_default="btl_coin"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("description", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_driver_earnings_driver_id", "driver_earnings", ["driver_id"])

    op.create_table(
        "btl_coin_awards",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("driver_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("magazine_id", sa.Uuid(), sa.ForeignKey("magazines.id", ondelete="CASCADE"), nullable=False),
        sa.Column("magazine_barcode", sa.String(128), nullable=False),
        sa.Column("review_id", sa.Uuid(), sa.ForeignKey("driver_ratings.id", ondelete="CASCADE"),
                  nullable=False, unique=True),
        sa.Column("rider_device_id", sa.String(255), nullable=True),
        sa.Column("rider_name", sa.String(255), nullable=True),
        sa.Column("amount", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("earning_record_id", sa.Uuid(), sa.ForeignKey("driver_earnings.id", ondelete="SET NULL"),
                  nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="awarded"),
        sa.Column("awarded_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text("CURRENT_TIMESTAMP")),
        *_timestamps(),
    )
    op.create_index("idx_awards_driver_awarded_at", "btl_coin_awards", ["driver_id", "awarded_at"])

    # ── Notifications ─────────────────────────────────────────────────────
    op.create_table(
        "driver_notifications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("driver_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(32), nullable=False, server_default="general"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("priority", sa.String(10), nullable=False, server_default="medium"),
        *_timestamps(),
    )
    op.create_index("idx_driver_notifications_driver_read", "driver_notifications", ["driver_id", "is_read"])

    op.create_table(
        "admin_notifications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("type", sa.String(32), nullable=False, server_default="system"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("priority", sa.String(10), nullable=False, server_default="low"),
        sa.Column("event_metadata", sa.JSON(), nullable=True),
        *_timestamps(),
    )

    # ── Side-effect queue ─────────────────────────────────────────────────
    op.create_table(
        "side_effect_tasks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("kind", sa.String(64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_tasks_status_next_attempt", "side_effect_tasks", ["status", "next_attempt_at"])


def downgrade() -> None:
    op.drop_table("side_effect_tasks")
    op.drop_table("admin_notifications")
    op.drop_table("driver_notifications")
    op.drop_table("btl_coin_awards")
    op.drop_table("driver_earnings")
    op.drop_table("rider_scans")
    op.drop_table("driver_ratings")
    op.drop_table("magazine_pickups")
    op.drop_table("magazines")
    op.drop_table("users")
