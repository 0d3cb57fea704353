from __future__ import annotations

import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from bandnotify.api.deps import get_current_user_id, get_notification_queue
from bandnotify.notifications.contracts import QueuedNotification
from bandnotify.notifications.queue import NotificationQueue

router = APIRouter()


def _to_payload(notification: QueuedNotification) -> dict[str, Any]:
  return {
    "id": str(notification.id),
    "band_id": str(notification.band_id),
    "actor_id": str(notification.actor_id) if notification.actor_id else None,
    "type": notification.type,
    "title": notification.title,
    "body": notification.body,
    "metadata": notification.metadata,
    "created_at": notification.created_at.isoformat() if notification.created_at else None,
    "read": notification.read_at is not None,
  }


@router.get("")
async def list_notifications(
  user_id: Annotated[uuid.UUID, Depends(get_current_user_id)],
  queue: Annotated[NotificationQueue, Depends(get_notification_queue)],
  cursor: str | None = Query(None),  # noqa: B008
  limit: int = Query(20, ge=1, le=100),  # noqa: B008
) -> dict[str, Any]:
  """
  Page through the caller's notifications, newest first.

  - **cursor**: Opaque value from the previous page's `next_cursor`.
  - **limit**: Max number of notifications to return.
  """
  try:
    page = await queue.list_for_recipient(user_id, cursor=cursor, limit=limit)
  except ValueError as exc:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid cursor.") from exc
  return {"items": [_to_payload(item) for item in page.items], "next_cursor": page.next_cursor}


@router.get("/unread-count")
async def unread_count(user_id: Annotated[uuid.UUID, Depends(get_current_user_id)], queue: Annotated[NotificationQueue, Depends(get_notification_queue)]) -> dict[str, int]:
  return {"unread": await queue.unread_count(user_id)}


@router.post("/read-all")
async def mark_all_read(user_id: Annotated[uuid.UUID, Depends(get_current_user_id)], queue: Annotated[NotificationQueue, Depends(get_notification_queue)]) -> dict[str, int]:
  return {"updated": await queue.mark_all_read(user_id)}


@router.post("/{notification_id}/read")
async def mark_read(notification_id: uuid.UUID, user_id: Annotated[uuid.UUID, Depends(get_current_user_id)], queue: Annotated[NotificationQueue, Depends(get_notification_queue)]) -> dict[str, str]:
  if not await queue.mark_read(notification_id, user_id):
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found.")
  return {"status": "ok"}
