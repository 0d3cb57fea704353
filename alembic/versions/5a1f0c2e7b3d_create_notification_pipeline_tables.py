"""Create notification pipeline tables.

Revision ID: 5a1f0c2e7b3d
Revises:
Create Date: 2026-03-02
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

from bandnotify.core.migration_guards import guarded_create_index, guarded_create_table, guarded_drop_index, guarded_drop_table

revision = "5a1f0c2e7b3d"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  """Upgrade schema."""
  guarded_create_table(
    "band_members",
    sa.Column("band_id", sa.Uuid(), nullable=False),
    sa.Column("user_id", sa.Uuid(), nullable=False),
    sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
    sa.PrimaryKeyConstraint("band_id", "user_id"),
  )
  guarded_create_index(op.f("ix_band_members_user_id"), "band_members", ["user_id"], unique=False)

  guarded_create_table(
    "notifications",
    sa.Column("id", sa.Uuid(), nullable=False),
    sa.Column("band_id", sa.Uuid(), nullable=False),
    sa.Column("recipient_id", sa.Uuid(), nullable=False),
    sa.Column("actor_id", sa.Uuid(), nullable=True),
    sa.Column("type", sa.String(length=64), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("body", sa.Text(), nullable=False),
    sa.Column("metadata", sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql"), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
    sa.CheckConstraint("actor_id IS NULL OR actor_id <> recipient_id", name="ck_notifications_actor_not_recipient"),
    sa.PrimaryKeyConstraint("id"),
  )
  guarded_create_index(op.f("ix_notifications_band_id"), "notifications", ["band_id"], unique=False)
  guarded_create_index("ix_notifications_recipient_created_at", "notifications", ["recipient_id", "created_at"], unique=False)
  # Partial index keeps the oldest-pending scan proportional to the backlog, not the history.
  guarded_create_index("ix_notifications_pending_created_at", "notifications", ["created_at"], unique=False, postgresql_where=sa.text("sent_at IS NULL"), sqlite_where=sa.text("sent_at IS NULL"))

  guarded_create_table(
    "device_tokens",
    sa.Column("id", sa.Uuid(), nullable=False),
    sa.Column("token", sa.Text(), nullable=False),
    sa.Column("recipient_id", sa.Uuid(), nullable=False),
    sa.Column("platform", sa.String(length=16), nullable=False),
    sa.Column("device_name", sa.String(length=255), nullable=True),
    sa.Column("last_seen", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    sa.CheckConstraint("platform IN ('ios', 'android', 'web', 'macos')", name="ck_device_tokens_platform"),
    sa.PrimaryKeyConstraint("id"),
  )
  guarded_create_index("ux_device_tokens_token", "device_tokens", ["token"], unique=True)
  guarded_create_index(op.f("ix_device_tokens_recipient_id"), "device_tokens", ["recipient_id"], unique=False)

  guarded_create_table(
    "notification_preferences",
    sa.Column("user_id", sa.Uuid(), nullable=False),
    sa.Column("notifications_enabled", sa.Boolean(), server_default=sa.true(), nullable=False),
    sa.Column("gigs_enabled", sa.Boolean(), server_default=sa.true(), nullable=False),
    sa.Column("potential_gigs_enabled", sa.Boolean(), server_default=sa.true(), nullable=False),
    sa.Column("rehearsals_enabled", sa.Boolean(), server_default=sa.true(), nullable=False),
    sa.Column("blockouts_enabled", sa.Boolean(), server_default=sa.true(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    sa.PrimaryKeyConstraint("user_id"),
  )


def downgrade() -> None:
  """Downgrade schema."""
  guarded_drop_table("notification_preferences")
  guarded_drop_index(op.f("ix_device_tokens_recipient_id"), table_name="device_tokens")
  guarded_drop_index("ux_device_tokens_token", table_name="device_tokens")
  guarded_drop_table("device_tokens")
  guarded_drop_index("ix_notifications_pending_created_at", table_name="notifications")
  guarded_drop_index("ix_notifications_recipient_created_at", table_name="notifications")
  guarded_drop_index(op.f("ix_notifications_band_id"), table_name="notifications")
  guarded_drop_table("notifications")
  guarded_drop_index(op.f("ix_band_members_user_id"), table_name="band_members")
  guarded_drop_table("band_members")
