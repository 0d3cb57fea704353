from __future__ import annotations

import uuid
from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from bandnotify.api.deps import get_current_user_id, get_preference_repository
from bandnotify.notifications.preference_repo import PreferenceRepository

router = APIRouter()


class PreferencesResponse(BaseModel):
  notifications_enabled: bool
  gigs_enabled: bool
  potential_gigs_enabled: bool
  rehearsals_enabled: bool
  blockouts_enabled: bool


class PreferencesUpdateRequest(BaseModel):
  """Partial update; omitted toggles keep their current value."""

  notifications_enabled: bool | None = None
  gigs_enabled: bool | None = None
  potential_gigs_enabled: bool | None = None
  rehearsals_enabled: bool | None = None
  blockouts_enabled: bool | None = None
  model_config = ConfigDict(extra="forbid")


@router.get("", response_model=PreferencesResponse)
async def get_preferences(user_id: Annotated[uuid.UUID, Depends(get_current_user_id)], repo: Annotated[PreferenceRepository, Depends(get_preference_repository)]) -> PreferencesResponse:
  flags = await repo.get_or_create(user_id)
  return PreferencesResponse(**asdict(flags))


@router.patch("", response_model=PreferencesResponse)
async def update_preferences(
  request: PreferencesUpdateRequest, user_id: Annotated[uuid.UUID, Depends(get_current_user_id)], repo: Annotated[PreferenceRepository, Depends(get_preference_repository)]
) -> PreferencesResponse:
  flags = await repo.update(user_id, **request.model_dump(exclude_none=True))
  return PreferencesResponse(**asdict(flags))
