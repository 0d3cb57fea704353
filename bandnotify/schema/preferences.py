"""SQLAlchemy model for per-user notification preferences."""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import Boolean, DateTime, Uuid, func, true
from sqlalchemy.orm import Mapped, mapped_column

from bandnotify.core.database import Base


class NotificationPreference(Base):
  """Master switch plus one toggle per event category; a missing row means everything is enabled."""

  __tablename__ = "notification_preferences"

  user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
  notifications_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
  gigs_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
  potential_gigs_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
  rehearsals_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
  blockouts_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
