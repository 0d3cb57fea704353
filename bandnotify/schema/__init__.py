"""Schema package exports."""

from .bands import BandMember
from .device_tokens import PLATFORMS, DeviceToken
from .notifications import Notification, NotificationType
from .preferences import NotificationPreference

__all__ = ["BandMember", "DeviceToken", "PLATFORMS", "Notification", "NotificationType", "NotificationPreference"]
