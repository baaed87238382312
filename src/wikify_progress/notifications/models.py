"""Notification configuration models."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NotificationPhase(StrEnum):
    START = "start"
    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"


class NotificationConfig(BaseModel):
    """Controls which operation events should surface user-facing notifications."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = Field(default=True, description="Master switch for all notifications.")
    show_start: bool = Field(default=True, description="Notify when an operation starts.")
    show_progress: bool = Field(
        default=False,
        description="Notify on progress updates, throttled by progress_interval.",
    )
    show_complete: bool = Field(default=True, description="Notify when an operation completes.")
    show_error: bool = Field(default=True, description="Notify when an operation fails.")
    sound: bool = Field(default=True, description="Play a sound with the notification.")
    desktop: bool = Field(default=True, description="Raise a desktop notification.")
    progress_interval: float | None = Field(
        default=30.0,
        description="Minimum seconds between progress notifications for one operation.",
    )

    @field_validator("progress_interval")
    @classmethod
    def _validate_interval(cls, value: float | None) -> float | None:
        if value is not None and value < 0:
            raise ValueError("progress_interval must be >= 0")
        return value

    def phase_enabled(self, phase: NotificationPhase) -> bool:
        toggles = {
            NotificationPhase.START: self.show_start,
            NotificationPhase.PROGRESS: self.show_progress,
            NotificationPhase.COMPLETE: self.show_complete,
            NotificationPhase.ERROR: self.show_error,
        }
        return self.enabled and toggles[NotificationPhase(phase)]


__all__ = ["NotificationConfig", "NotificationPhase"]
