"""Repository helpers for notification preferences."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import fields

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bandnotify.core.database import dialect_insert, require_session_factory
from bandnotify.notifications.preferences import PreferenceFlags
from bandnotify.schema.preferences import NotificationPreference

_FLAG_NAMES = tuple(flag.name for flag in fields(PreferenceFlags))


def to_flags(row: NotificationPreference) -> PreferenceFlags:
  return PreferenceFlags(**{name: bool(getattr(row, name)) for name in _FLAG_NAMES})


async def load_preferences(session: AsyncSession, user_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, PreferenceFlags]:
  """Fetch preference rows for many users in one query; users without a row are absent from the result."""
  ids = list(user_ids)
  if not ids:
    return {}
  result = await session.execute(select(NotificationPreference).where(NotificationPreference.user_id.in_(ids)))
  return {row.user_id: to_flags(row) for row in result.scalars().all()}


class PreferenceRepository:
  """Read and update per-user preferences, creating default rows lazily."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or require_session_factory()

  async def get_or_create(self, user_id: uuid.UUID) -> PreferenceFlags:
    """Return the user's preferences, inserting an all-enabled row on first read."""
    async with self._session_factory() as session:
      row = await self._get_or_create_with_session(session=session, user_id=user_id)
      await session.commit()
      return to_flags(row)

  async def update(self, user_id: uuid.UUID, **changes: bool) -> PreferenceFlags:
    """Apply partial toggle changes and return the resulting preferences."""
    unknown = sorted(set(changes) - set(_FLAG_NAMES))
    if unknown:
      raise ValueError(f"Unknown preference fields: {', '.join(unknown)}")

    async with self._session_factory() as session:
      row = await self._get_or_create_with_session(session=session, user_id=user_id)
      for name, value in changes.items():
        setattr(row, name, bool(value))
      await session.commit()
      await session.refresh(row)
      return to_flags(row)

  async def _get_or_create_with_session(self, *, session: AsyncSession, user_id: uuid.UUID) -> NotificationPreference:
    row = await session.get(NotificationPreference, user_id)
    if row is not None:
      return row
    # A concurrent first read may insert the same user; keep whichever row landed.
    insert = dialect_insert(session)
    await session.execute(insert(NotificationPreference).values(user_id=user_id, **{name: True for name in _FLAG_NAMES}).on_conflict_do_nothing(index_elements=["user_id"]))
    row = await session.get(NotificationPreference, user_id, populate_existing=True)
    if row is None:
      raise RuntimeError(f"Notification preferences for {user_id} could not be created.")
    return row
