"""Contracts shared by the delivery pipeline: queue records, gateway results and the error taxonomy."""

from __future__ import annotations

import datetime
import enum
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class QueuedNotification:
  """Detached snapshot of a notification row as seen by the worker or the feed."""

  id: uuid.UUID
  band_id: uuid.UUID
  recipient_id: uuid.UUID
  actor_id: uuid.UUID | None
  type: str
  title: str
  body: str
  metadata: dict = field(default_factory=dict)
  created_at: datetime.datetime | None = None
  claimed_at: datetime.datetime | None = None
  sent_at: datetime.datetime | None = None
  read_at: datetime.datetime | None = None


class TokenOutcome(enum.StrEnum):
  """Per-token verdict returned by a push gateway."""

  DELIVERED = "delivered"
  INVALID_TOKEN = "invalid_token"
  TRANSIENT_ERROR = "transient_error"


@dataclass(frozen=True)
class PerTokenResult:
  """Outcome of one token inside a multicast send."""

  token: str
  outcome: TokenOutcome
  detail: str | None = None


class NotificationError(Exception):
  """Base class for all notification pipeline failures."""


class TransientGatewayError(NotificationError):
  """Network or 5xx failure talking to the push gateway; the attempt is logged and not retried."""


class PermanentTokenError(NotificationError):
  """The gateway reported a token as permanently unregistered or invalid."""

  def __init__(self, token: str, reason: str | None = None) -> None:
    super().__init__(f"Device token is no longer valid: {reason or 'unregistered'}")
    self.token = token
    self.reason = reason


class QueueIOError(NotificationError):
  """Reading or writing the notification queue failed; the cycle aborts before mutating sent_at."""


class ConfigurationError(NotificationError):
  """Required delivery configuration is missing or invalid."""


class PushGatewayNotConfiguredError(ConfigurationError, TransientGatewayError):
  """Push credentials are missing, so every dispatch degrades to a transient gateway failure."""


class PushGateway(Protocol):
  """Delivery contract for a multicast push provider."""

  def send_multicast(self, tokens: Sequence[str], *, title: str, body: str, data: dict[str, str]) -> list[PerTokenResult]:
    """Send one message to every token and return one result per token."""
