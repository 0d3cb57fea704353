from __future__ import annotations

import asyncio
import datetime
import uuid

import pytest
from sqlalchemy import select

from bandnotify.notifications.queue import NotificationQueue, decode_cursor, encode_cursor
from bandnotify.schema.notifications import Notification

TTL = datetime.timedelta(minutes=5)


@pytest.mark.anyio
async def test_claim_returns_oldest_first_and_respects_limit(session_factory, seed_notifications, clock):
  ids = await seed_notifications(5, start=clock.now() - datetime.timedelta(hours=1))
  queue = NotificationQueue(session_factory, clock=clock)

  batch = await queue.claim_batch(limit=3, claim_ttl=TTL, now=clock.now())

  assert [record.id for record in batch] == ids[:3]
  assert all(record.claimed_at == clock.now() for record in batch)
  assert all(record.sent_at is None for record in batch)


@pytest.mark.anyio
async def test_claimed_rows_are_not_reclaimed_before_ttl(session_factory, seed_notifications, clock):
  ids = await seed_notifications(3, start=clock.now() - datetime.timedelta(hours=1))
  queue = NotificationQueue(session_factory, clock=clock)

  first = await queue.claim_batch(limit=10, claim_ttl=TTL, now=clock.now())
  clock.advance(datetime.timedelta(minutes=4))
  second = await queue.claim_batch(limit=10, claim_ttl=TTL, now=clock.now())
  clock.advance(datetime.timedelta(minutes=2))
  third = await queue.claim_batch(limit=10, claim_ttl=TTL, now=clock.now())

  assert [record.id for record in first] == ids
  assert second == []
  # The aborted batch becomes claimable again once its claim has expired.
  assert [record.id for record in third] == ids


@pytest.mark.anyio
async def test_sent_rows_are_never_selected_again(session_factory, seed_notifications, clock):
  ids = await seed_notifications(4, start=clock.now() - datetime.timedelta(hours=1))
  queue = NotificationQueue(session_factory, clock=clock)

  batch = await queue.claim_batch(limit=2, claim_ttl=TTL, now=clock.now())
  assert await queue.mark_sent([record.id for record in batch], now=clock.now()) == 2

  clock.advance(TTL * 3)
  later = await queue.claim_batch(limit=10, claim_ttl=TTL, now=clock.now())

  assert [record.id for record in later] == ids[2:]
  assert await queue.pending_count() == 2


@pytest.mark.anyio
async def test_mark_sent_never_overwrites_sent_at(session_factory, seed_notifications, clock):
  ids = await seed_notifications(2, start=clock.now() - datetime.timedelta(hours=1))
  queue = NotificationQueue(session_factory, clock=clock)
  first_sent_at = clock.now()

  assert await queue.mark_sent(ids, now=first_sent_at) == 2
  clock.advance(datetime.timedelta(minutes=10))
  assert await queue.mark_sent(ids, now=clock.now()) == 0
  assert await queue.mark_sent([], now=clock.now()) == 0

  async with session_factory() as session:
    rows = (await session.execute(select(Notification.sent_at))).scalars().all()
  assert {row.replace(tzinfo=datetime.UTC) for row in rows} == {first_sent_at}


@pytest.mark.anyio
async def test_concurrent_claims_are_disjoint(session_factory, seed_notifications, clock):
  ids = await seed_notifications(30, start=clock.now() - datetime.timedelta(hours=1))
  first_queue = NotificationQueue(session_factory, clock=clock)
  second_queue = NotificationQueue(session_factory, clock=clock)

  first, second = await asyncio.gather(first_queue.claim_batch(limit=20, claim_ttl=TTL, now=clock.now()), second_queue.claim_batch(limit=20, claim_ttl=TTL, now=clock.now()))

  first_ids = {record.id for record in first}
  second_ids = {record.id for record in second}
  assert first_ids.isdisjoint(second_ids)
  assert first_ids | second_ids == set(ids)


@pytest.mark.anyio
async def test_feed_pages_newest_first_and_tracks_reads(session_factory, seed_notifications, clock):
  recipient = uuid.uuid4()
  other = uuid.uuid4()
  ids = await seed_notifications(5, start=clock.now() - datetime.timedelta(hours=1), recipient_ids=[recipient])
  await seed_notifications(2, start=clock.now() - datetime.timedelta(hours=1), recipient_ids=[other])
  queue = NotificationQueue(session_factory, clock=clock)

  first_page = await queue.list_for_recipient(recipient, limit=2)
  second_page = await queue.list_for_recipient(recipient, cursor=first_page.next_cursor, limit=2)
  last_page = await queue.list_for_recipient(recipient, cursor=second_page.next_cursor, limit=2)

  assert [item.id for item in first_page.items] == [ids[4], ids[3]]
  assert [item.id for item in second_page.items] == [ids[2], ids[1]]
  assert [item.id for item in last_page.items] == [ids[0]]
  assert last_page.next_cursor is None

  assert await queue.unread_count(recipient) == 5
  assert await queue.mark_read(ids[0], recipient) is True
  # Reading twice is fine; reading someone else's notification is not.
  assert await queue.mark_read(ids[0], recipient) is True
  assert await queue.mark_read(ids[1], other) is False
  assert await queue.unread_count(recipient) == 4
  assert await queue.mark_all_read(recipient) == 4
  assert await queue.unread_count(recipient) == 0
  assert await queue.unread_count(other) == 2


def test_cursor_round_trip_and_rejection():
  created_at = datetime.datetime(2026, 3, 1, 12, 0, tzinfo=datetime.UTC)
  notification_id = uuid.uuid4()

  assert decode_cursor(encode_cursor(created_at, notification_id)) == (created_at, notification_id)
  with pytest.raises(ValueError):
    decode_cursor("not-a-cursor")
