from __future__ import annotations

import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from bandnotify.notifications.preference_repo import PreferenceRepository, load_preferences
from bandnotify.notifications.preferences import PreferenceFlags


@pytest.mark.anyio
async def test_first_read_creates_all_enabled_row(session_factory):
  repo = PreferenceRepository(session_factory)
  user_id = uuid.uuid4()

  assert await repo.get_or_create(user_id) == PreferenceFlags()
  async with session_factory() as session:
    assert await load_preferences(session, [user_id]) == {user_id: PreferenceFlags()}


@pytest.mark.anyio
async def test_partial_update_keeps_other_toggles(session_factory):
  repo = PreferenceRepository(session_factory)
  user_id = uuid.uuid4()

  await repo.update(user_id, rehearsals_enabled=False)
  flags = await repo.update(user_id, notifications_enabled=False)

  assert flags == PreferenceFlags(notifications_enabled=False, rehearsals_enabled=False)


@pytest.mark.anyio
async def test_update_rejects_unknown_fields(session_factory):
  repo = PreferenceRepository(session_factory)

  with pytest.raises(ValueError):
    await repo.update(uuid.uuid4(), setlists_enabled=False)


@pytest.mark.anyio
async def test_users_without_rows_are_absent(session_factory):
  async with session_factory() as session:
    assert await load_preferences(session, [uuid.uuid4()]) == {}
    assert await load_preferences(session, []) == {}


@pytest.mark.anyio
async def test_first_read_keeps_row_inserted_by_concurrent_reader(session_factory, monkeypatch):
  repo = PreferenceRepository(session_factory)
  user_id = uuid.uuid4()
  await repo.update(user_id, gigs_enabled=False)

  # The first lookup misses as if another request inserted the row right after it.
  original_get = AsyncSession.get
  lookups = []

  async def _late_get(self, entity, ident, **kwargs):
    lookups.append(ident)
    if len(lookups) == 1:
      return None
    return await original_get(self, entity, ident, **kwargs)

  monkeypatch.setattr(AsyncSession, "get", _late_get)

  assert await repo.get_or_create(user_id) == PreferenceFlags(gigs_enabled=False)
  assert len(lookups) == 2
