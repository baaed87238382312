"""Decides whether operation events warrant a user-facing notification."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from ..records import BaseOperation, OperationStatus
from .models import NotificationConfig, NotificationPhase

logger = logging.getLogger(__name__)


class NotificationGate:
    """Holds notification configuration only; it never tracks operations.

    Throttling decisions take the caller's timestamps so that the gate stays
    free of per-operation state.
    """

    def __init__(self, config: NotificationConfig | None = None) -> None:
        self._config = config or NotificationConfig()

    @property
    def config(self) -> NotificationConfig:
        return self._config

    def update_config(self, **changes: Any) -> NotificationConfig:
        """Merge ``changes`` into the current config.

        Raises ``pydantic.ValidationError`` (a ``ValueError``) for unknown keys
        or invalid values, leaving the current config untouched.
        """

        merged = {**self._config.model_dump(), **changes}
        self._config = NotificationConfig.model_validate(merged)
        logger.debug("Notification config updated", extra={"changes": sorted(changes)})
        return self._config

    def allows(self, phase: NotificationPhase | str) -> bool:
        return self._config.phase_enabled(NotificationPhase(phase))

    def progress_due(self, last_notified_at: datetime | None, now: datetime) -> bool:
        """Return True when a progress notification may be shown at ``now``."""

        if not self.allows(NotificationPhase.PROGRESS):
            return False
        interval = self._config.progress_interval
        if last_notified_at is None or interval is None:
            return True
        return (now - last_notified_at).total_seconds() >= interval

    @staticmethod
    def phase_for(
        current: BaseOperation, previous: BaseOperation | None = None
    ) -> NotificationPhase | None:
        """Map a record change to the notification phase it represents.

        Cancellations are user-initiated and map to no phase.
        """

        status = OperationStatus(current.status)
        if status == OperationStatus.COMPLETED:
            return NotificationPhase.COMPLETE
        if status == OperationStatus.ERROR:
            return NotificationPhase.ERROR
        if status.is_active:
            return NotificationPhase.START if previous is None else NotificationPhase.PROGRESS
        return None


__all__ = ["NotificationGate"]
