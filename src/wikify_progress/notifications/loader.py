"""Notification config loading utilities."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import NotificationConfig


class NotificationConfigError(RuntimeError):
    """Raised when a notification config file cannot be read or parsed."""


def load_notification_config(path: Path) -> NotificationConfig:
    """Load a :class:`NotificationConfig` from a YAML mapping on disk.

    An empty document yields the defaults.
    """

    path = Path(path)
    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise NotificationConfigError(f"Failed to read notification config {path}: {exc}") from exc
    except yaml.YAMLError as exc:  # pragma: no cover - library type
        raise NotificationConfigError(f"Failed to parse YAML in {path}: {exc}") from exc

    if document is None:
        return NotificationConfig()
    if not isinstance(document, dict):
        raise NotificationConfigError(f"Notification config in {path} must be a mapping")

    try:
        return NotificationConfig.model_validate(document)
    except ValidationError as exc:
        raise NotificationConfigError(f"Notification config validation error in {path}: {exc}") from exc


__all__ = ["NotificationConfigError", "load_notification_config"]
