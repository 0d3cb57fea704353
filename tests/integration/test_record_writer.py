from __future__ import annotations

import datetime
import uuid

import pytest
from sqlalchemy import func, select

from bandnotify.notifications.templates import gig_created
from bandnotify.notifications.writer import create_event_notifications, create_notifications
from bandnotify.schema.bands import BandMember
from bandnotify.schema.notifications import Notification
from bandnotify.schema.preferences import NotificationPreference


async def _seed_band(session_factory, *, band_id: uuid.UUID, members: list[uuid.UUID], inactive: list[uuid.UUID] | None = None) -> None:
  async with session_factory() as session:
    session.add_all([BandMember(band_id=band_id, user_id=user_id, is_active=True) for user_id in members])
    session.add_all([BandMember(band_id=band_id, user_id=user_id, is_active=False) for user_id in inactive or []])
    await session.commit()


@pytest.mark.anyio
async def test_three_member_band_with_one_opted_out_creates_one_row(session_factory, clock):
  band_id = uuid.uuid4()
  actor, muted, listener = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
  await _seed_band(session_factory, band_id=band_id, members=[actor, muted, listener])
  async with session_factory() as session:
    session.add(NotificationPreference(user_id=muted, gigs_enabled=False))
    await session.commit()
  event = gig_created(gig_id=uuid.uuid4(), gig_name="Blue Note", gig_date=datetime.date(2026, 3, 17), actor_name="Sam")

  async with session_factory() as session:
    created = await create_event_notifications(session, band_id=band_id, actor_id=actor, event=event, clock=clock)
    await session.commit()

  async with session_factory() as session:
    rows = (await session.execute(select(Notification))).scalars().all()
  assert created == 1
  assert len(rows) == 1
  assert rows[0].recipient_id == listener
  assert rows[0].title == "Blue Note"
  assert rows[0].body == "Sam created a gig for MAR 17, 2026"
  assert rows[0].metadata_json == event.metadata
  assert rows[0].sent_at is None
  assert rows[0].claimed_at is None


@pytest.mark.anyio
async def test_rows_roll_back_with_the_producer_transaction(session_factory, clock):
  band_id = uuid.uuid4()
  await _seed_band(session_factory, band_id=band_id, members=[uuid.uuid4(), uuid.uuid4()])

  async with session_factory() as session:
    created = await create_notifications(session, band_id=band_id, actor_id=None, event_type="member_joined", title="New member", body="Jo joined the band", clock=clock)
    await session.rollback()

  async with session_factory() as session:
    count = (await session.execute(select(func.count()).select_from(Notification))).scalar_one()
  assert created == 2
  assert count == 0


@pytest.mark.anyio
async def test_inactive_members_and_other_bands_are_ignored(session_factory, clock):
  band_id = uuid.uuid4()
  active = uuid.uuid4()
  await _seed_band(session_factory, band_id=band_id, members=[active], inactive=[uuid.uuid4()])
  await _seed_band(session_factory, band_id=uuid.uuid4(), members=[uuid.uuid4()])

  async with session_factory() as session:
    created = await create_notifications(session, band_id=band_id, actor_id=None, event_type="setlist_updated", title="Setlist", body="Setlist changed", clock=clock)
    await session.commit()

  async with session_factory() as session:
    recipients = (await session.execute(select(Notification.recipient_id))).scalars().all()
  assert created == 1
  assert recipients == [active]


@pytest.mark.anyio
async def test_unknown_event_type_inserts_nothing(session_factory, clock):
  band_id = uuid.uuid4()
  await _seed_band(session_factory, band_id=band_id, members=[uuid.uuid4()])

  async with session_factory() as session:
    with pytest.raises(ValueError):
      await create_notifications(session, band_id=band_id, actor_id=None, event_type="gig_exploded", title="t", body="b", clock=clock)
    await session.commit()

  async with session_factory() as session:
    count = (await session.execute(select(func.count()).select_from(Notification))).scalar_one()
  assert count == 0
