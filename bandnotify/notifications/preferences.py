"""Preference gate: decide which band members should hear about an event."""

from __future__ import annotations

import enum
import uuid
from collections.abc import Iterable
from dataclasses import dataclass

from bandnotify.schema.notifications import NotificationType


class NotificationCategory(enum.StrEnum):
  """User-facing toggles; each maps to a boolean on the preference row."""

  GIGS = "gigs"
  POTENTIAL_GIGS = "potential_gigs"
  REHEARSALS = "rehearsals"
  BLOCKOUTS = "blockouts"


# Types without an entry are governed by the master switch alone.
CATEGORY_BY_TYPE: dict[NotificationType, NotificationCategory] = {
  NotificationType.GIG_CREATED: NotificationCategory.GIGS,
  NotificationType.GIG_CONFIRMED: NotificationCategory.GIGS,
  NotificationType.POTENTIAL_GIG_CREATED: NotificationCategory.POTENTIAL_GIGS,
  NotificationType.REHEARSAL_CREATED: NotificationCategory.REHEARSALS,
  NotificationType.BLOCKOUT_CREATED: NotificationCategory.BLOCKOUTS,
}


@dataclass(frozen=True)
class PreferenceFlags:
  """Snapshot of one user's preference row."""

  notifications_enabled: bool = True
  gigs_enabled: bool = True
  potential_gigs_enabled: bool = True
  rehearsals_enabled: bool = True
  blockouts_enabled: bool = True

  def allows(self, category: NotificationCategory | None) -> bool:
    if not self.notifications_enabled:
      return False
    if category is None:
      return True
    return bool(getattr(self, f"{category.value}_enabled"))


DEFAULT_PREFERENCES = PreferenceFlags()


@dataclass(frozen=True)
class BandMemberView:
  """A roster entry together with the preferences the caller already loaded (None means no row)."""

  user_id: uuid.UUID
  is_active: bool = True
  preferences: PreferenceFlags | None = None


def category_for(event_type: NotificationType | str) -> NotificationCategory | None:
  """Return the toggle governing an event type, or None when only the master switch applies."""
  return CATEGORY_BY_TYPE.get(NotificationType(event_type))


def eligible_recipients(band_members: Iterable[BandMemberView], actor_id: uuid.UUID | None, event_type: NotificationType | str) -> set[uuid.UUID]:
  """Return active members other than the actor whose preferences allow this event type."""
  category = category_for(event_type)
  recipients: set[uuid.UUID] = set()
  for member in band_members:
    if not member.is_active:
      continue
    if actor_id is not None and member.user_id == actor_id:
      continue
    flags = member.preferences or DEFAULT_PREFERENCES
    if flags.allows(category):
      recipients.add(member.user_id)
  return recipients
