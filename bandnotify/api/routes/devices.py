"""Routes for push device token registration."""

from __future__ import annotations

import uuid
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, ConfigDict, Field, field_validator

from bandnotify.api.deps import get_current_user_id, get_device_token_store
from bandnotify.notifications.device_tokens import DeviceTokenStore

router = APIRouter()


class DeviceTokenRegisterRequest(BaseModel):
  """Token issued to an installed client by the push vendor."""

  token: str = Field(min_length=1, max_length=4096)
  platform: Literal["ios", "android", "web", "macos"]
  device_name: str | None = Field(default=None, max_length=255)
  model_config = ConfigDict(extra="forbid")

  @field_validator("token")
  @classmethod
  def strip_token(cls, value: str) -> str:
    normalized = value.strip()
    if not normalized:
      raise ValueError("token must not be blank.")
    return normalized


class DeviceTokenUnregisterRequest(BaseModel):
  token: str = Field(min_length=1, max_length=4096)
  model_config = ConfigDict(extra="forbid")


@router.post("/tokens", status_code=status.HTTP_204_NO_CONTENT)
async def register_device_token(
  request: DeviceTokenRegisterRequest, user_id: Annotated[uuid.UUID, Depends(get_current_user_id)], store: Annotated[DeviceTokenStore, Depends(get_device_token_store)]
) -> Response:
  """Register or re-assign a device token to the caller."""
  await store.register(user_id, request.token, request.platform, request.device_name)
  return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/tokens", status_code=status.HTTP_204_NO_CONTENT)
async def unregister_device_token(
  request: DeviceTokenUnregisterRequest, user_id: Annotated[uuid.UUID, Depends(get_current_user_id)], store: Annotated[DeviceTokenStore, Depends(get_device_token_store)]
) -> Response:
  """Remove a device token, e.g. on sign-out. Unknown tokens are ignored."""
  await store.unregister(request.token.strip())
  return Response(status_code=status.HTTP_204_NO_CONTENT)
