"""Bounded archive of operations that reached a terminal status."""

from __future__ import annotations

from collections import deque
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .records import BaseOperation, OperationStatus, OperationType

DEFAULT_HISTORY_LIMIT = 100


class HistoryEntry(BaseModel):
    """Immutable snapshot of an operation taken when it became terminal."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: OperationType
    repository_id: str | None = None
    start_time: datetime
    end_time: datetime
    duration_ms: float = Field(..., description="Milliseconds between start and end.")
    status: OperationStatus
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_operation(cls, operation: BaseOperation) -> "HistoryEntry":
        end_time = operation.end_time or operation.start_time
        duration = (end_time - operation.start_time).total_seconds() * 1000.0
        owner = operation.owning_resource
        return cls(
            id=operation.id,
            type=operation.type,
            repository_id=None if owner is None else str(owner),
            start_time=operation.start_time,
            end_time=end_time,
            duration_ms=duration,
            status=operation.status,
            error=operation.error,
            metadata=operation.history_metadata(),
        )


class HistoryArchive:
    """Newest-first record of finished operations, capped at ``limit`` entries."""

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        if limit < 1:
            raise ValueError("History limit must be >= 1")
        self._limit = limit
        self._entries: deque[HistoryEntry] = deque(maxlen=limit)

    @property
    def limit(self) -> int:
        return self._limit

    def record(self, operation: BaseOperation) -> HistoryEntry:
        """Prepend an entry for ``operation``; the oldest entry drops off when full."""

        entry = HistoryEntry.from_operation(operation)
        self._entries.appendleft(entry)
        return entry

    def entries(self) -> list[HistoryEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["DEFAULT_HISTORY_LIMIT", "HistoryArchive", "HistoryEntry"]
