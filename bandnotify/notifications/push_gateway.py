"""Push gateway implementations."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from bandnotify.notifications.contracts import PerTokenResult, PushGateway, PushGatewayNotConfiguredError, TokenOutcome, TransientGatewayError

logger = logging.getLogger(__name__)

# FCM rejects multicast messages with more tokens than this.
FCM_MULTICAST_LIMIT = 500

# INVALID_ARGUMENT is also raised for malformed messages (reserved data keys, oversized
# payloads), so it stays a transient outcome and never prunes a token.
_INVALID_TOKEN_ERRORS = (messaging.UnregisteredError, messaging.SenderIdMismatchError)



def _classify(token: str, response: messaging.SendResponse) -> PerTokenResult:
  if response.success:
    return PerTokenResult(token=token, outcome=TokenOutcome.DELIVERED)
  error = response.exception
  detail = f"{type(error).__name__}: {error}" if error is not None else None
  if isinstance(error, _INVALID_TOKEN_ERRORS):
    return PerTokenResult(token=token, outcome=TokenOutcome.INVALID_TOKEN, detail=detail)
  return PerTokenResult(token=token, outcome=TokenOutcome.TRANSIENT_ERROR, detail=detail)


class FirebasePushGateway(PushGateway):
  """Firebase Cloud Messaging sender mapping per-token errors to outcomes."""

  def __init__(self, *, app=None, dry_run: bool = False) -> None:
    self._app = app
    self._dry_run = dry_run

  def send_multicast(self, tokens: Sequence[str], *, title: str, body: str, data: dict[str, str]) -> list[PerTokenResult]:
    """Send one notification to every token, chunked to the FCM limit."""
    results: list[PerTokenResult] = []
    token_list = list(tokens)
    for start in range(0, len(token_list), FCM_MULTICAST_LIMIT):
      chunk = token_list[start : start + FCM_MULTICAST_LIMIT]
      message = messaging.MulticastMessage(tokens=chunk, notification=messaging.Notification(title=title, body=body), data=data)
      try:
        batch = messaging.send_each_for_multicast(message, dry_run=self._dry_run, app=self._app)
      except firebase_exceptions.FirebaseError as exc:
        raise TransientGatewayError(f"FCM multicast failed: {exc}") from exc

      # Responses come back in the same order as the tokens.
      results.extend(_classify(token, response) for token, response in zip(chunk, batch.responses, strict=True))
      if batch.failure_count:
        logger.debug("FCM multicast chunk had %d failures of %d", batch.failure_count, len(chunk))
    return results


class UnconfiguredPushGateway(PushGateway):
  """Gateway used when push is disabled or credentials are missing; every send fails transiently."""

  def __init__(self, reason: str = "Push gateway is not configured.") -> None:
    self._reason = reason

  def send_multicast(self, tokens: Sequence[str], *, title: str, body: str, data: dict[str, str]) -> list[PerTokenResult]:
    raise PushGatewayNotConfiguredError(self._reason)
