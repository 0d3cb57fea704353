"""Delivery worker: one claim-dispatch-mark-prune cycle over the notification queue."""

from __future__ import annotations

import asyncio
import datetime
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from starlette.concurrency import run_in_threadpool

from bandnotify.core.clock import Clock
from bandnotify.notifications.contracts import PermanentTokenError, PushGateway, QueuedNotification, QueueIOError, TokenOutcome, TransientGatewayError
from bandnotify.notifications.device_tokens import DeviceTokenStore
from bandnotify.notifications.queue import NotificationQueue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryCycleReport:
  """Summary returned by every cycle; status is always ok because failures are absorbed."""

  processed: int = 0
  sent: int = 0
  pruned_tokens: int = 0
  status: str = "ok"

  def as_dict(self) -> dict[str, Any]:
    return {"status": self.status, "processed": self.processed, "sent": self.sent, "pruned_tokens": self.pruned_tokens}


@dataclass
class _RecipientOutcome:
  delivered_ids: set[uuid.UUID] = field(default_factory=set)
  invalid_tokens: list[PermanentTokenError] = field(default_factory=list)


# FCM rejects the whole message when a data key is reserved.
_RESERVED_DATA_KEYS = frozenset({"from", "message_type", "notification", "collapse_key"})
_RESERVED_DATA_PREFIXES = ("google.", "gcm.")


def _is_reserved_data_key(key: str) -> bool:
  lowered = key.lower()
  return lowered in _RESERVED_DATA_KEYS or lowered.startswith(_RESERVED_DATA_PREFIXES)


def build_push_data(notification: QueuedNotification) -> dict[str, str]:
  """FCM data payloads only carry strings; None values and reserved keys are dropped."""
  data = {str(key): str(value) for key, value in notification.metadata.items() if value is not None and not _is_reserved_data_key(str(key))}
  data.update({"notification_id": str(notification.id), "type": notification.type, "band_id": str(notification.band_id)})
  return data


class DeliveryWorker:
  """Run delivery cycles; each cycle attempts every claimed notification at most once."""

  def __init__(
    self, *, queue: NotificationQueue, token_store: DeviceTokenStore, gateway: PushGateway, clock: Clock, batch_size: int, claim_ttl: datetime.timedelta, dispatch_concurrency: int
  ) -> None:
    if batch_size <= 0:
      raise ValueError("batch_size must be positive.")
    if dispatch_concurrency <= 0:
      raise ValueError("dispatch_concurrency must be positive.")
    self._queue = queue
    self._token_store = token_store
    self._gateway = gateway
    self._clock = clock
    self._batch_size = batch_size
    self._claim_ttl = claim_ttl
    self._dispatch_concurrency = dispatch_concurrency

  async def run_cycle(self) -> DeliveryCycleReport:
    """Claim a batch, dispatch per recipient, mark everything sent, prune rejected tokens."""
    try:
      batch = await self._queue.claim_batch(limit=self._batch_size, claim_ttl=self._claim_ttl, now=self._clock.now())
    except QueueIOError as exc:
      logger.error("Delivery cycle aborted: claim failed: %s", exc, exc_info=True)
      return DeliveryCycleReport()

    if not batch:
      logger.debug("Delivery cycle found no pending notifications")
      return DeliveryCycleReport()

    by_recipient: dict[uuid.UUID, list[QueuedNotification]] = defaultdict(list)
    for notification in batch:
      by_recipient[notification.recipient_id].append(notification)

    # One isolated task per recipient; the semaphore caps concurrent gateway work.
    semaphore = asyncio.Semaphore(self._dispatch_concurrency)
    outcomes = await asyncio.gather(*(self._deliver_to_recipient(recipient_id, notifications, semaphore) for recipient_id, notifications in by_recipient.items()))

    delivered_ids: set[uuid.UUID] = set()
    invalid: list[PermanentTokenError] = []
    for outcome in outcomes:
      delivered_ids |= outcome.delivered_ids
      invalid.extend(outcome.invalid_tokens)

    # Attempted counts as sent whatever the dispatch outcome was.
    marked = True
    try:
      await self._queue.mark_sent([notification.id for notification in batch], now=self._clock.now())
    except QueueIOError as exc:
      marked = False
      logger.error("Delivery cycle could not mark %d notifications sent; they become claimable after the TTL: %s", len(batch), exc, exc_info=True)

    # Pruning does not depend on the mark above.
    pruned = await self._prune(invalid)
    if not marked:
      return DeliveryCycleReport(processed=len(batch), pruned_tokens=pruned)

    report = DeliveryCycleReport(processed=len(batch), sent=len(delivered_ids), pruned_tokens=pruned)
    logger.info("Delivery cycle finished processed=%d sent=%d pruned_tokens=%d recipients=%d", report.processed, report.sent, report.pruned_tokens, len(by_recipient))
    return report

  async def _prune(self, invalid: list[PermanentTokenError]) -> int:
    if not invalid:
      return 0
    try:
      return await self._token_store.prune([error.token for error in invalid])
    except Exception as exc:  # noqa: BLE001
      logger.error("Pruning %d invalid device tokens failed: %s", len(invalid), exc, exc_info=True)
      return 0

  async def _deliver_to_recipient(self, recipient_id: uuid.UUID, notifications: list[QueuedNotification], semaphore: asyncio.Semaphore) -> _RecipientOutcome:
    outcome = _RecipientOutcome()
    try:
      async with semaphore:
        live_tokens = await self._token_store.tokens_for(recipient_id)
        if not live_tokens:
          logger.debug("Recipient %s has no device tokens; skipping %d notifications", recipient_id, len(notifications))
          return outcome

        for notification in notifications:
          if not live_tokens:
            break
          tokens = sorted(live_tokens)
          try:
            results = await run_in_threadpool(self._gateway.send_multicast, tokens, title=notification.title, body=notification.body, data=build_push_data(notification))
          except TransientGatewayError as exc:
            logger.warning("Push dispatch failed recipient_id=%s notification_id=%s: %s", recipient_id, notification.id, exc)
            continue

          for result in results:
            if result.outcome is TokenOutcome.DELIVERED:
              outcome.delivered_ids.add(notification.id)
            elif result.outcome is TokenOutcome.INVALID_TOKEN:
              outcome.invalid_tokens.append(PermanentTokenError(result.token, result.detail))
              live_tokens.discard(result.token)
            else:
              logger.warning("Push token failed transiently recipient_id=%s notification_id=%s detail=%s", recipient_id, notification.id, result.detail)
    except Exception as exc:  # noqa: BLE001
      logger.error("Delivery to recipient %s failed: %s", recipient_id, exc, exc_info=True)
    return outcome
