"""In-memory registry of tracked operations."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable
from uuid import uuid4

from pydantic import ValidationError

from .history import HistoryArchive, HistoryEntry
from .notifications import NotificationConfig, NotificationGate
from .queries import ProgressStats, compute_stats, filter_by_owning_resource, filter_by_type
from .records import (
    OPERATION_VARIANTS,
    BaseOperation,
    OperationStatus,
    OperationType,
    can_transition,
    clamp_progress,
)
from .subscriptions import GlobalCallback, ProgressCallback, SubscriptionFanout

logger = logging.getLogger(__name__)

# Fields the registry owns; callers cannot supply them to start().
_ASSIGNED_AT_START = frozenset(
    {"id", "type", "status", "start_time", "end_time", "error", "result"}
)
# Fields only the registry's terminal actions may set.
_IMMUTABLE_ON_UPDATE = frozenset({"id", "type", "start_time", "end_time", "error", "result"})


class UnknownOperationTypeError(ValueError):
    """Raised when start() is given a type outside :class:`OperationType`."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_operation_id() -> str:
    return f"progress_{uuid4().hex}"


def _coerce_progress(value: Any, fallback: float) -> float:
    try:
        return clamp_progress(value)
    except (TypeError, ValueError):
        return fallback


class ProgressRegistry:
    """Tracks live operations and fans out every change to subscribers.

    Every mutation replaces the stored record with a new immutable snapshot,
    archives it if it just became terminal, and notifies subscribers before
    returning. Calls are serialized with a re-entrant lock so subscribers may
    read from the registry while being notified.

    Mutations addressed to unknown or already-finished operations are ignored
    rather than raised, since transports can deliver late or duplicate
    messages.
    """

    def __init__(
        self,
        *,
        history: HistoryArchive | None = None,
        gate: NotificationGate | None = None,
        fanout: SubscriptionFanout | None = None,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._operations: dict[str, BaseOperation] = {}
        self._history = history if history is not None else HistoryArchive()
        self._gate = gate if gate is not None else NotificationGate()
        self._fanout = fanout if fanout is not None else SubscriptionFanout()
        self._clock = clock or _utcnow
        self._id_factory = id_factory or _new_operation_id
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Mutations

    def start(self, operation_type: OperationType | str, **fields: Any) -> str:
        """Begin tracking a new operation and return its id.

        ``fields`` carries the variant's own fields (``repository_id``,
        ``total_files`` and so on). Only the type is checked; a payload that
        does not fit the variant is stored as given.
        """

        try:
            kind = OperationType(operation_type)
        except ValueError as exc:
            raise UnknownOperationTypeError(f"Unknown operation type '{operation_type}'") from exc

        payload = {name: value for name, value in fields.items() if name not in _ASSIGNED_AT_START}

        with self._lock:
            operation_id = self._id_factory()
            payload.update(
                id=operation_id,
                type=kind.value,
                status=OperationStatus.RUNNING,
                start_time=self._clock(),
            )
            record = self._build(kind, payload)
            self._operations[operation_id] = record
            logger.info(
                "Operation started",
                extra={
                    "operation_id": operation_id,
                    "operation_type": kind.value,
                    "resource": record.owning_resource,
                },
            )
            self._publish(record)
        return operation_id

    def update(self, operation_id: str, **fields: Any) -> BaseOperation | None:
        """Merge ``fields`` into an in-flight operation.

        Returns the new snapshot, or None when the id is unknown or the
        operation already finished.
        """

        with self._lock:
            current = self._operations.get(operation_id)
            if current is None or current.is_terminal:
                logger.debug(
                    "Ignoring update for unknown or finished operation",
                    extra={"operation_id": operation_id},
                )
                return None

            changes = self._accepted_changes(current, fields)
            updated = current.model_copy(update=changes) if changes else current
            self._operations[operation_id] = updated
            logger.debug(
                "Operation updated",
                extra={"operation_id": operation_id, "fields": sorted(changes)},
            )
            self._publish(updated)
            return updated

    def complete(self, operation_id: str, result: Any = None) -> BaseOperation | None:
        return self._finish(
            operation_id, OperationStatus.COMPLETED, progress=1.0, result=result
        )

    def error(self, operation_id: str, message: str) -> BaseOperation | None:
        return self._finish(operation_id, OperationStatus.ERROR, error=message)

    def cancel(self, operation_id: str) -> BaseOperation | None:
        """Mark an operation cancelled locally; the remote work is not stopped."""

        return self._finish(operation_id, OperationStatus.CANCELLED)

    def clear(self, operation_id: str) -> bool:
        """Drop one operation from the live set. History is left as is."""

        with self._lock:
            if self._operations.pop(operation_id, None) is None:
                return False
            logger.debug("Operation cleared", extra={"operation_id": operation_id})
            self._publish()
        return True

    def clear_all(self) -> int:
        with self._lock:
            removed = len(self._operations)
            self._operations.clear()
            logger.debug("All operations cleared", extra={"removed": removed})
            self._publish()
        return removed

    # ------------------------------------------------------------------
    # Queries

    def get(self, operation_id: str) -> BaseOperation | None:
        return self._operations.get(operation_id)

    def get_all(self) -> list[BaseOperation]:
        """All live operations. Ordering is not part of the contract."""

        with self._lock:
            return list(self._operations.values())

    def get_by_type(self, operation_type: OperationType | str) -> list[BaseOperation]:
        return filter_by_type(self.get_all(), operation_type)

    def get_by_owning_resource(self, resource_key: str) -> list[BaseOperation]:
        return filter_by_owning_resource(self.get_all(), resource_key)

    def get_stats(self) -> ProgressStats:
        return compute_stats(self.get_all())

    # ------------------------------------------------------------------
    # History

    @property
    def history(self) -> HistoryArchive:
        return self._history

    def get_history(self) -> list[HistoryEntry]:
        with self._lock:
            return self._history.entries()

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()

    # ------------------------------------------------------------------
    # Subscriptions

    def subscribe(self, callback: GlobalCallback) -> Callable[[], None]:
        return self._fanout.subscribe(callback)

    def subscribe_to_progress(
        self, operation_id: str, callback: ProgressCallback
    ) -> Callable[[], None]:
        return self._fanout.subscribe_to_progress(operation_id, callback)

    # ------------------------------------------------------------------
    # Notifications

    @property
    def notification_gate(self) -> NotificationGate:
        return self._gate

    def update_notification_config(self, **changes: Any) -> NotificationConfig:
        return self._gate.update_config(**changes)

    # ------------------------------------------------------------------
    # Internals

    def _build(self, kind: OperationType, payload: dict[str, Any]) -> BaseOperation:
        variant = OPERATION_VARIANTS[kind]
        try:
            return variant.model_validate(payload)
        except ValidationError as exc:
            logger.warning(
                "Accepting malformed operation payload",
                extra={
                    "operation_id": payload["id"],
                    "operation_type": kind.value,
                    "error_count": exc.error_count(),
                },
            )
        known = {name: value for name, value in payload.items() if name in variant.model_fields}
        if "progress" in known:
            known["progress"] = _coerce_progress(known["progress"], 0.0)
        return variant.model_construct(**known)

    def _accepted_changes(
        self, current: BaseOperation, fields: dict[str, Any]
    ) -> dict[str, Any]:
        declared = type(current).model_fields
        changes: dict[str, Any] = {}
        ignored: list[str] = []
        for name, value in fields.items():
            if name in _IMMUTABLE_ON_UPDATE or name not in declared:
                ignored.append(name)
                continue
            if name == "status":
                if value == current.status:
                    continue
                try:
                    target = OperationStatus(value)
                except ValueError:
                    ignored.append(name)
                    continue
                # Terminal statuses only via complete/error/cancel.
                if not target.is_active or not can_transition(current.status, target):
                    ignored.append(name)
                    continue
                value = target
            elif name == "progress":
                value = _coerce_progress(value, current.progress)
            changes[name] = value

        if ignored:
            logger.debug(
                "Ignoring fields on update",
                extra={"operation_id": current.id, "fields": sorted(ignored)},
            )
        return changes

    def _finish(
        self, operation_id: str, status: OperationStatus, **changes: Any
    ) -> BaseOperation | None:
        with self._lock:
            current = self._operations.get(operation_id)
            if current is None or current.is_terminal:
                logger.debug(
                    "Ignoring terminal transition for unknown or finished operation",
                    extra={"operation_id": operation_id, "status": status.value},
                )
                return None

            finished = current.model_copy(
                update={"status": status, "end_time": self._clock(), **changes}
            )
            self._operations[operation_id] = finished
            entry = self._history.record(finished)
            logger.info(
                "Operation finished",
                extra={
                    "operation_id": operation_id,
                    "status": status.value,
                    "duration_ms": entry.duration_ms,
                },
            )
            self._publish(finished)
            return finished

    def _publish(self, changed: BaseOperation | None = None) -> None:
        self._fanout.publish(self._snapshot, changed)

    def _snapshot(self) -> list[BaseOperation]:
        with self._lock:
            return list(self._operations.values())


__all__ = ["ProgressRegistry", "UnknownOperationTypeError"]
