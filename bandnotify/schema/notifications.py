"""SQLAlchemy model for queued notifications."""

from __future__ import annotations

import datetime
import enum
import uuid

from sqlalchemy import JSON, CheckConstraint, DateTime, Index, String, Text, Uuid, func, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from bandnotify.core.database import Base


class NotificationType(enum.StrEnum):
  """Event types that can produce a notification."""

  GIG_CREATED = "gig_created"
  GIG_UPDATED = "gig_updated"
  GIG_CANCELLED = "gig_cancelled"
  GIG_CONFIRMED = "gig_confirmed"
  POTENTIAL_GIG_CREATED = "potential_gig_created"
  REHEARSAL_CREATED = "rehearsal_created"
  REHEARSAL_UPDATED = "rehearsal_updated"
  REHEARSAL_CANCELLED = "rehearsal_cancelled"
  BLOCKOUT_CREATED = "blockout_created"
  SETLIST_UPDATED = "setlist_updated"
  AVAILABILITY_REQUEST = "availability_request"
  AVAILABILITY_RESPONSE = "availability_response"
  MEMBER_JOINED = "member_joined"
  MEMBER_LEFT = "member_left"
  ROLE_CHANGED = "role_changed"
  BAND_INVITATION = "band_invitation"


class Notification(Base):
  """One alert to one recipient; doubles as the delivery queue row and the feed entry."""

  __tablename__ = "notifications"
  __table_args__ = (
    CheckConstraint("actor_id IS NULL OR actor_id <> recipient_id", name="ck_notifications_actor_not_recipient"),
    # Pending rows are scanned oldest-first on every cycle.
    Index("ix_notifications_pending_created_at", "created_at", postgresql_where=text("sent_at IS NULL"), sqlite_where=text("sent_at IS NULL")),
    Index("ix_notifications_recipient_created_at", "recipient_id", "created_at"),
  )

  id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
  band_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
  recipient_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
  actor_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
  type: Mapped[str] = mapped_column(String(64), nullable=False)
  title: Mapped[str] = mapped_column(String, nullable=False)
  body: Mapped[str] = mapped_column(Text, nullable=False)
  metadata_json: Mapped[dict] = mapped_column("metadata", JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  claimed_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  sent_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  read_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
