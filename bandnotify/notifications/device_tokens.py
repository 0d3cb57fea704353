"""Repository helpers for push device token persistence."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bandnotify.core.clock import Clock, SystemClock
from bandnotify.core.database import dialect_insert, require_session_factory
from bandnotify.schema.device_tokens import PLATFORMS, DeviceToken

logger = logging.getLogger(__name__)


class DeviceTokenStore:
  """Persist push tokens; a token belongs to whichever recipient registered it last."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None, *, clock: Clock | None = None) -> None:
    self._session_factory = session_factory or require_session_factory()
    self._clock = clock or SystemClock()

  async def register(self, recipient_id: uuid.UUID, token: str, platform: str, device_name: str | None = None) -> None:
    """Insert or reassign a token and refresh its last_seen."""
    token = token.strip()
    if not token:
      raise ValueError("Device token must not be empty.")
    if platform not in PLATFORMS:
      raise ValueError(f"Unsupported platform {platform!r}; expected one of {', '.join(PLATFORMS)}.")

    now = self._clock.now()
    async with self._session_factory() as session:
      insert = dialect_insert(session)
      stmt = insert(DeviceToken).values(id=uuid.uuid4(), token=token, recipient_id=recipient_id, platform=platform, device_name=device_name, last_seen=now, created_at=now)
      # Keyed by token so a device that changes hands moves to the new owner.
      stmt = stmt.on_conflict_do_update(index_elements=["token"], set_={"recipient_id": recipient_id, "platform": platform, "device_name": device_name, "last_seen": now})
      await session.execute(stmt)
      await session.commit()
    logger.debug("Registered device token recipient_id=%s platform=%s", recipient_id, platform)

  async def unregister(self, token: str) -> bool:
    """Delete a token; returns whether a row existed."""
    async with self._session_factory() as session:
      result = await session.execute(delete(DeviceToken).where(DeviceToken.token == token))
      await session.commit()
      return bool(result.rowcount)

  async def tokens_for(self, recipient_id: uuid.UUID) -> set[str]:
    async with self._session_factory() as session:
      result = await session.execute(select(DeviceToken.token).where(DeviceToken.recipient_id == recipient_id))
      return set(result.scalars().all())

  async def prune(self, tokens: Iterable[str]) -> int:
    """Remove tokens the gateway rejected; deleting an already-removed token is a no-op."""
    unique_tokens = sorted(set(tokens))
    if not unique_tokens:
      return 0
    async with self._session_factory() as session:
      result = await session.execute(delete(DeviceToken).where(DeviceToken.token.in_(unique_tokens)))
      await session.commit()
      removed = int(result.rowcount or 0)
    logger.info("Pruned %d invalid device tokens", removed)
    return removed
