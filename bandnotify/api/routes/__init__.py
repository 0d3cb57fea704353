from . import devices, notifications, preferences, tasks

__all__ = ["devices", "notifications", "preferences", "tasks"]
