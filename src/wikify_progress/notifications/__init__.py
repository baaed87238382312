"""Notification gate, config models and loader exports."""

from .gate import NotificationGate
from .loader import NotificationConfigError, load_notification_config
from .models import NotificationConfig, NotificationPhase

__all__ = [
    "NotificationConfig",
    "NotificationConfigError",
    "NotificationGate",
    "NotificationPhase",
    "load_notification_config",
]
