from __future__ import annotations

import datetime
import uuid

import pytest
from sqlalchemy import select

from bandnotify.notifications.device_tokens import DeviceTokenStore
from bandnotify.schema.device_tokens import DeviceToken


@pytest.mark.anyio
async def test_last_registrant_wins(session_factory, clock):
  store = DeviceTokenStore(session_factory, clock=clock)
  first_owner, second_owner = uuid.uuid4(), uuid.uuid4()

  await store.register(first_owner, "shared-device", "android")
  clock.advance(datetime.timedelta(hours=1))
  await store.register(second_owner, "shared-device", "android", device_name="Pixel")

  assert await store.tokens_for(first_owner) == set()
  assert await store.tokens_for(second_owner) == {"shared-device"}
  async with session_factory() as session:
    rows = (await session.execute(select(DeviceToken))).scalars().all()
  assert len(rows) == 1
  assert rows[0].device_name == "Pixel"
  assert rows[0].last_seen.replace(tzinfo=datetime.UTC) == clock.now()


@pytest.mark.anyio
async def test_register_validates_input(session_factory, clock):
  store = DeviceTokenStore(session_factory, clock=clock)

  with pytest.raises(ValueError):
    await store.register(uuid.uuid4(), "   ", "ios")
  with pytest.raises(ValueError):
    await store.register(uuid.uuid4(), "token", "windows-phone")


@pytest.mark.anyio
async def test_prune_is_idempotent(session_factory, clock):
  store = DeviceTokenStore(session_factory, clock=clock)
  recipient = uuid.uuid4()
  await store.register(recipient, "keep", "ios")
  await store.register(recipient, "drop", "web")

  assert await store.prune(["drop"]) == 1
  assert await store.prune(["drop"]) == 0
  assert await store.prune([]) == 0
  assert await store.tokens_for(recipient) == {"keep"}


@pytest.mark.anyio
async def test_unregister_reports_whether_token_existed(session_factory, clock):
  store = DeviceTokenStore(session_factory, clock=clock)
  await store.register(uuid.uuid4(), "token", "macos")

  assert await store.unregister("token") is True
  assert await store.unregister("token") is False
