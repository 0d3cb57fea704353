"""Shared FastAPI dependencies for caller identity and pipeline components."""

from __future__ import annotations

import logging
import uuid

from fastapi import Header, HTTPException, Request, status

from bandnotify.notifications.device_tokens import DeviceTokenStore
from bandnotify.notifications.preference_repo import PreferenceRepository
from bandnotify.notifications.queue import NotificationQueue
from bandnotify.notifications.worker import DeliveryWorker

logger = logging.getLogger(__name__)


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> uuid.UUID:
  """Resolve the caller from the identity header set by the upstream auth layer."""
  if not x_user_id:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user identity.")
  try:
    return uuid.UUID(x_user_id)
  except ValueError as exc:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user identity.") from exc


def get_notification_queue() -> NotificationQueue:
  return NotificationQueue()


def get_device_token_store() -> DeviceTokenStore:
  return DeviceTokenStore()


def get_preference_repository() -> PreferenceRepository:
  return PreferenceRepository()


def get_delivery_worker(request: Request) -> DeliveryWorker:
  """Return the worker built at startup; unavailable when the database is not configured."""
  worker = getattr(request.app.state, "delivery_worker", None)
  if worker is None:
    logger.error("Delivery worker requested but not configured")
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Delivery worker is not configured.")
  return worker
