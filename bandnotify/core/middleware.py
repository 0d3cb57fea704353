import logging
import time
import uuid

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger("bandnotify.core.middleware")

REQUEST_ID_HEADER = "x-request-id"


class RequestLoggingMiddleware:
  """Assign a request id, echo it back, and log one line per request."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    headers = {key.decode("latin-1").lower(): value.decode("latin-1") for key, value in scope.get("headers", [])}
    request_id = headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    scope.setdefault("state", {})["request_id"] = request_id
    started = time.perf_counter()
    status_code = 500

    async def send_with_request_id(message: Message) -> None:
      nonlocal status_code
      if message["type"] == "http.response.start":
        status_code = message["status"]
        MutableHeaders(scope=message)[REQUEST_ID_HEADER] = request_id
      await send(message)

    try:
      await self.app(scope, receive, send_with_request_id)
    finally:
      elapsed_ms = (time.perf_counter() - started) * 1000
      logger.info("%s %s -> %s (%.1fms) request_id=%s", scope.get("method"), scope.get("path"), status_code, elapsed_ms, request_id)
