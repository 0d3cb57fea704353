"""Title/body/metadata builders for the band events that producers enqueue."""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field
from typing import Any

from bandnotify.schema.notifications import NotificationType

_MONTHS = ("JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC")
_RANGE_DASH = "–"


@dataclass(frozen=True)
class EventNotification:
  """Rendered content for one event, ready to hand to create_notifications."""

  event_type: NotificationType
  title: str
  body: str
  metadata: dict[str, Any] = field(default_factory=dict)


def format_event_date(value: datetime.date) -> str:
  """Format as 'MAR 17, 2026'."""
  return f"{_MONTHS[value.month - 1]} {value.day}, {value.year}"


def format_date_range(start: datetime.date, end: datetime.date) -> str:
  """Format as 'MAY 3 – 5, 2026' within one month or 'MAY 3 – JUN 5, 2026' across months."""
  if end < start:
    raise ValueError("Date range end must not precede its start.")
  start_month = _MONTHS[start.month - 1]
  end_month = _MONTHS[end.month - 1]
  if (start.year, start.month) == (end.year, end.month):
    return f"{start_month} {start.day} {_RANGE_DASH} {end.day}, {end.year}"
  return f"{start_month} {start.day} {_RANGE_DASH} {end_month} {end.day}, {end.year}"


def gig_created(*, gig_id: uuid.UUID, gig_name: str, gig_date: datetime.date, actor_name: str, is_potential: bool = False) -> EventNotification:
  if is_potential:
    event_type = NotificationType.POTENTIAL_GIG_CREATED
    body = f"{actor_name} created a potential gig for {format_event_date(gig_date)}"
  else:
    event_type = NotificationType.GIG_CREATED
    body = f"{actor_name} created a gig for {format_event_date(gig_date)}"
  return EventNotification(event_type=event_type, title=gig_name, body=body, metadata={"gig_id": str(gig_id), "gig_date": gig_date.isoformat()})


def rehearsal_created(*, rehearsal_id: uuid.UUID, rehearsal_date: datetime.date, actor_name: str) -> EventNotification:
  body = f"{actor_name} scheduled a rehearsal for {format_event_date(rehearsal_date)}"
  return EventNotification(event_type=NotificationType.REHEARSAL_CREATED, title="Rehearsal Scheduled", body=body, metadata={"rehearsal_id": str(rehearsal_id), "rehearsal_date": rehearsal_date.isoformat()})


def blockout_created(*, blockout_id: uuid.UUID, start_date: datetime.date, end_date: datetime.date | None, actor_name: str) -> EventNotification:
  """Single days read 'is unavailable on APR 18, 2026'; spans read 'is unavailable MAY 3 – JUN 5, 2026'."""
  if end_date is not None and end_date != start_date:
    body = f"{actor_name} is unavailable {format_date_range(start_date, end_date)}"
  else:
    body = f"{actor_name} is unavailable on {format_event_date(start_date)}"
  metadata = {"blockout_id": str(blockout_id), "start_date": start_date.isoformat(), "end_date": end_date.isoformat() if end_date else None}
  return EventNotification(event_type=NotificationType.BLOCKOUT_CREATED, title="Member Unavailable", body=body, metadata=metadata)
