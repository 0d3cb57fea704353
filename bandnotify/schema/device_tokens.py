"""SQLAlchemy model for push-capable device tokens."""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import CheckConstraint, DateTime, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from bandnotify.core.database import Base

PLATFORMS = ("ios", "android", "web", "macos")


class DeviceToken(Base):
  """Persist a single installed client able to receive push, owned by one recipient at a time."""

  __tablename__ = "device_tokens"
  __table_args__ = (
    Index("ux_device_tokens_token", "token", unique=True),
    CheckConstraint("platform IN ('ios', 'android', 'web', 'macos')", name="ck_device_tokens_platform"),
  )

  id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
  token: Mapped[str] = mapped_column(Text, nullable=False)
  recipient_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
  platform: Mapped[str] = mapped_column(String(16), nullable=False)
  device_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
  last_seen: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
