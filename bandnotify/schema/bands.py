"""Read-only roster projection used when fanning out band events."""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Uuid, true
from sqlalchemy.orm import Mapped, mapped_column

from bandnotify.core.database import Base


class BandMember(Base):
  """Membership row maintained by the roster feature."""

  __tablename__ = "band_members"

  band_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
  user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, index=True)
  is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
