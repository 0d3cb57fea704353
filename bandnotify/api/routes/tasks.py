from __future__ import annotations

import logging
import secrets
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, HTTPException, status

from bandnotify.api.deps import get_delivery_worker, get_notification_queue
from bandnotify.config import Settings, get_settings
from bandnotify.notifications.queue import NotificationQueue
from bandnotify.notifications.scheduler import invoke_delivery_cycle
from bandnotify.notifications.worker import DeliveryWorker

router = APIRouter(prefix="/tasks", tags=["tasks"])
logger = logging.getLogger(__name__)


def require_task_secret(
  settings: Annotated[Settings, Depends(get_settings)], authorization: str | None = Header(default=None), x_bandnotify_task_secret: str | None = Header(default=None)
) -> None:
  """Reject callers that do not present the shared task secret."""
  # Secure-by-default: an unset secret disables the internal endpoints entirely.
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")
  expected_auth = f"Bearer {settings.task_secret}"
  shared_secret_valid = secrets.compare_digest((x_bandnotify_task_secret or ""), settings.task_secret)
  bearer_valid = secrets.compare_digest((authorization or ""), expected_auth)
  if not shared_secret_valid and not bearer_valid:
    logger.warning("Unauthorized access attempt to internal task endpoint")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid task secret.")


@router.post("/deliver-notifications", status_code=status.HTTP_200_OK, dependencies=[Depends(require_task_secret)])
async def deliver_notifications(worker: Annotated[DeliveryWorker, Depends(get_delivery_worker)], settings: Annotated[Settings, Depends(get_settings)]) -> dict[str, Any]:
  """
  Run one delivery cycle synchronously and return its report.

  Meant for an external cron; always answers 200 with status "ok" because every
  failure inside the cycle is logged and absorbed.
  """
  report = await invoke_delivery_cycle(worker, timeout_seconds=settings.cycle_timeout_seconds)
  return report.as_dict()


@router.get("/notification-queue", dependencies=[Depends(require_task_secret)])
async def notification_queue_stats(queue: Annotated[NotificationQueue, Depends(get_notification_queue)]) -> dict[str, int]:
  """Report how many notifications are still waiting to be sent."""
  return {"pending": await queue.pending_count()}
