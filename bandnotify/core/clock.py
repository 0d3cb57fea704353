"""Time sources used by the delivery pipeline."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
  """Source of the current time; always timezone-aware UTC."""

  def now(self) -> datetime:
    """Return the current instant."""


class SystemClock:
  """Wall-clock time."""

  def now(self) -> datetime:
    return datetime.now(UTC)


class ManualClock:
  """Clock that only moves when told to, so cycles can be driven deterministically."""

  def __init__(self, start: datetime | None = None) -> None:
    self._now = ensure_utc(start) if start is not None else datetime(2026, 1, 1, tzinfo=UTC)

  def now(self) -> datetime:
    return self._now

  def advance(self, delta: timedelta) -> datetime:
    """Move the clock forward and return the new instant."""
    if delta < timedelta(0):
      raise ValueError("ManualClock cannot move backwards.")
    self._now = self._now + delta
    return self._now

  def set(self, instant: datetime) -> None:
    self._now = ensure_utc(instant)


def ensure_utc(value: datetime) -> datetime:
  """Attach UTC to naive datetimes (SQLite drops tzinfo) and normalize aware ones."""
  if value.tzinfo is None:
    return value.replace(tzinfo=UTC)
  return value.astimezone(UTC)
