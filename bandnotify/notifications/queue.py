"""Notification queue: claim, mark-sent and feed reads over the notifications table."""

from __future__ import annotations

import base64
import binascii
import datetime
import json
import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.engine import Row
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bandnotify.core.clock import Clock, SystemClock, ensure_utc
from bandnotify.core.database import require_session_factory
from bandnotify.notifications.contracts import QueuedNotification, QueueIOError
from bandnotify.schema.notifications import Notification
from bandnotify.utils.db_retry import execute_with_retry

logger = logging.getLogger(__name__)

_RECORD_COLUMNS = (
  Notification.id,
  Notification.band_id,
  Notification.recipient_id,
  Notification.actor_id,
  Notification.type,
  Notification.title,
  Notification.body,
  Notification.metadata_json.label("metadata"),
  Notification.created_at,
  Notification.claimed_at,
  Notification.sent_at,
  Notification.read_at,
)

MAX_FEED_PAGE_SIZE = 100


@dataclass(frozen=True)
class FeedPage:
  """One page of a recipient's feed, newest first."""

  items: list[QueuedNotification]
  next_cursor: str | None


def _optional_utc(value: datetime.datetime | None) -> datetime.datetime | None:
  return ensure_utc(value) if value is not None else None


def _to_record(row: Row) -> QueuedNotification:
  data = row._mapping
  return QueuedNotification(
    id=data["id"],
    band_id=data["band_id"],
    recipient_id=data["recipient_id"],
    actor_id=data["actor_id"],
    type=data["type"],
    title=data["title"],
    body=data["body"],
    metadata=dict(data["metadata"] or {}),
    created_at=_optional_utc(data["created_at"]),
    claimed_at=_optional_utc(data["claimed_at"]),
    sent_at=_optional_utc(data["sent_at"]),
    read_at=_optional_utc(data["read_at"]),
  )


def encode_cursor(created_at: datetime.datetime, notification_id: uuid.UUID) -> str:
  payload = json.dumps({"created_at": ensure_utc(created_at).isoformat(), "id": str(notification_id)}, separators=(",", ":"))
  return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> tuple[datetime.datetime, uuid.UUID]:
  """Parse an opaque feed cursor; raises ValueError when it was not produced by encode_cursor."""
  try:
    payload = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
    return ensure_utc(datetime.datetime.fromisoformat(payload["created_at"])), uuid.UUID(payload["id"])
  except (binascii.Error, UnicodeError, json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
    raise ValueError("Invalid feed cursor.") from exc


class NotificationQueue:
  """Durable delivery queue backed by the notifications table."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None, *, clock: Clock | None = None) -> None:
    self._session_factory = session_factory or require_session_factory()
    self._clock = clock or SystemClock()

  async def claim_batch(self, *, limit: int, claim_ttl: datetime.timedelta, now: datetime.datetime) -> list[QueuedNotification]:
    """
    Atomically claim up to `limit` of the oldest unsent notifications.

    A row is claimable when it has never been claimed or its claim is older than
    `claim_ttl`. Selection and the claimed_at update happen in one statement, so
    concurrent callers always receive disjoint batches. Returned oldest first.
    """
    if limit <= 0:
      return []
    cutoff = now - claim_ttl
    candidates = (
      select(Notification.id)
      .where(Notification.sent_at.is_(None), or_(Notification.claimed_at.is_(None), Notification.claimed_at < cutoff))
      .order_by(Notification.created_at, Notification.id)
      .limit(limit)
      .with_for_update(skip_locked=True)
    )
    statement = update(Notification).where(Notification.id.in_(candidates)).values(claimed_at=now).returning(*_RECORD_COLUMNS).execution_options(synchronize_session=False)
    try:
      async with self._session_factory() as session:
        async with session.begin():
          result = await session.execute(statement)
          rows = result.all()
    except SQLAlchemyError as exc:
      raise QueueIOError(f"Failed to claim notifications: {exc}") from exc

    # RETURNING order is unspecified.
    records = sorted((_to_record(row) for row in rows), key=lambda record: (record.created_at, str(record.id)))
    logger.debug("Claimed %d notifications (limit=%d)", len(records), limit)
    return records

  async def mark_sent(self, ids: Sequence[uuid.UUID], *, now: datetime.datetime) -> int:
    """Set sent_at on every still-unsent id in one statement; sent_at is never overwritten."""
    unique_ids = list(dict.fromkeys(ids))
    if not unique_ids:
      return 0

    async def _mark() -> int:
      async with self._session_factory() as session:
        async with session.begin():
          statement = update(Notification).where(Notification.id.in_(unique_ids), Notification.sent_at.is_(None)).values(sent_at=now).execution_options(synchronize_session=False)
          result = await session.execute(statement)
          return int(result.rowcount or 0)

    try:
      return await execute_with_retry(operation_name="notifications_mark_sent", func=_mark)
    except SQLAlchemyError as exc:
      raise QueueIOError(f"Failed to mark notifications sent: {exc}") from exc

  async def pending_count(self) -> int:
    """Count notifications that have not been sent yet."""
    try:
      async with self._session_factory() as session:
        result = await session.execute(select(func.count()).select_from(Notification).where(Notification.sent_at.is_(None)))
        return int(result.scalar_one())
    except SQLAlchemyError as exc:
      raise QueueIOError(f"Failed to count pending notifications: {exc}") from exc

  async def list_for_recipient(self, recipient_id: uuid.UUID, *, cursor: str | None = None, limit: int = 20) -> FeedPage:
    """Return a page of the recipient's notifications, newest first, with a cursor for the next page."""
    limit = max(1, min(limit, MAX_FEED_PAGE_SIZE))
    statement = select(*_RECORD_COLUMNS).where(Notification.recipient_id == recipient_id)
    if cursor:
      cursor_created_at, cursor_id = decode_cursor(cursor)
      statement = statement.where(
        or_(Notification.created_at < cursor_created_at, and_(Notification.created_at == cursor_created_at, Notification.id < cursor_id))
      )
    statement = statement.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit + 1)

    try:
      async with self._session_factory() as session:
        rows = (await session.execute(statement)).all()
    except SQLAlchemyError as exc:
      raise QueueIOError(f"Failed to read notification feed: {exc}") from exc

    items = [_to_record(row) for row in rows[:limit]]
    next_cursor = None
    if len(rows) > limit and items:
      last = items[-1]
      next_cursor = encode_cursor(last.created_at, last.id)
    return FeedPage(items=items, next_cursor=next_cursor)

  async def mark_read(self, notification_id: uuid.UUID, recipient_id: uuid.UUID) -> bool:
    """Mark one notification read; returns False when it does not belong to the recipient."""
    now = self._clock.now()
    try:
      async with self._session_factory() as session:
        async with session.begin():
          statement = (
            update(Notification)
            .where(Notification.id == notification_id, Notification.recipient_id == recipient_id, Notification.read_at.is_(None))
            .values(read_at=now)
            .execution_options(synchronize_session=False)
          )
          result = await session.execute(statement)
          if result.rowcount:
            return True
          # Already read counts as success as long as the row is the recipient's.
          existing = await session.execute(select(Notification.id).where(Notification.id == notification_id, Notification.recipient_id == recipient_id))
          return existing.scalar_one_or_none() is not None
    except SQLAlchemyError as exc:
      raise QueueIOError(f"Failed to mark notification read: {exc}") from exc

  async def mark_all_read(self, recipient_id: uuid.UUID) -> int:
    now = self._clock.now()
    try:
      async with self._session_factory() as session:
        async with session.begin():
          statement = update(Notification).where(Notification.recipient_id == recipient_id, Notification.read_at.is_(None)).values(read_at=now).execution_options(synchronize_session=False)
          result = await session.execute(statement)
          return int(result.rowcount or 0)
    except SQLAlchemyError as exc:
      raise QueueIOError(f"Failed to mark notifications read: {exc}") from exc

  async def unread_count(self, recipient_id: uuid.UUID) -> int:
    try:
      async with self._session_factory() as session:
        result = await session.execute(select(func.count()).select_from(Notification).where(Notification.recipient_id == recipient_id, Notification.read_at.is_(None)))
        return int(result.scalar_one())
    except SQLAlchemyError as exc:
      raise QueueIOError(f"Failed to count unread notifications: {exc}") from exc
