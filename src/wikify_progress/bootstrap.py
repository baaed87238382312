"""Registry construction from runtime settings."""

from __future__ import annotations

import logging
from typing import Optional

from .config import ProgressSettings, get_settings
from .history import HistoryArchive
from .notifications import NotificationGate, load_notification_config
from .registry import ProgressRegistry


def configure_logging(level: str) -> None:
    """Configure root logging for processes embedding the registry."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def create_registry(settings: Optional[ProgressSettings] = None) -> ProgressRegistry:
    """Instantiate a registry sized and configured from ``settings``.

    Raises ``NotificationConfigError`` when a configured notification file
    cannot be loaded.
    """

    settings = settings or get_settings()

    gate = NotificationGate()
    if settings.notification_config_path is not None:
        gate = NotificationGate(load_notification_config(settings.notification_config_path))

    registry = ProgressRegistry(
        history=HistoryArchive(settings.history_limit),
        gate=gate,
    )
    logging.getLogger(__name__).debug(
        "Progress registry created",
        extra={
            "history_limit": settings.history_limit,
            "notification_config": str(settings.notification_config_path or ""),
        },
    )
    return registry


__all__ = ["configure_logging", "create_registry"]
