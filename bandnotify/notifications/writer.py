"""Notification record writer: enqueue fan-out rows inside the producer's own transaction."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bandnotify.core.clock import Clock, SystemClock
from bandnotify.notifications.preference_repo import load_preferences
from bandnotify.notifications.preferences import BandMemberView, eligible_recipients
from bandnotify.notifications.templates import EventNotification
from bandnotify.schema.bands import BandMember
from bandnotify.schema.notifications import Notification, NotificationType

logger = logging.getLogger(__name__)

_DEFAULT_CLOCK = SystemClock()


async def load_band_members(session: AsyncSession, band_id: uuid.UUID) -> list[BandMemberView]:
  """Read the active roster of a band with each member's stored preferences attached."""
  result = await session.execute(select(BandMember.user_id, BandMember.is_active).where(BandMember.band_id == band_id, BandMember.is_active.is_(True)))
  rows = result.all()
  preferences = await load_preferences(session, [row.user_id for row in rows])
  return [BandMemberView(user_id=row.user_id, is_active=bool(row.is_active), preferences=preferences.get(row.user_id)) for row in rows]


async def create_notifications(
  session: AsyncSession, *, band_id: uuid.UUID, actor_id: uuid.UUID | None, event_type: NotificationType | str, title: str, body: str, metadata: dict[str, Any] | None = None, clock: Clock | None = None
) -> int:
  """
  Insert one pending notification per eligible band member and return how many were queued.

  The rows are flushed but never committed here: the caller's transaction that
  writes the source event owns the commit, so the event and its notifications
  land or vanish together.
  """
  # Reject unknown types before touching the session so the producer sees a clean ValueError.
  notification_type = NotificationType(event_type)
  members = await load_band_members(session, band_id)
  recipients = eligible_recipients(members, actor_id, notification_type)
  if not recipients:
    logger.debug("No eligible recipients band_id=%s type=%s", band_id, notification_type)
    return 0

  created_at = (clock or _DEFAULT_CLOCK).now()
  payload = dict(metadata or {})
  # Sorted for a stable insert order; delivery order is decided by created_at alone.
  rows = [
    Notification(band_id=band_id, recipient_id=recipient_id, actor_id=actor_id, type=notification_type.value, title=title, body=body, metadata_json=payload, created_at=created_at)
    for recipient_id in sorted(recipients)
  ]
  session.add_all(rows)
  await session.flush()
  logger.info("Queued %d notifications band_id=%s type=%s", len(rows), band_id, notification_type)
  return len(rows)


async def create_event_notifications(session: AsyncSession, *, band_id: uuid.UUID, actor_id: uuid.UUID | None, event: EventNotification, clock: Clock | None = None) -> int:
  """Queue notifications for a rendered event template."""
  return await create_notifications(session, band_id=band_id, actor_id=actor_id, event_type=event.event_type, title=event.title, body=event.body, metadata=event.metadata, clock=clock)
