"""Read-only helpers over collections of operation records."""

from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, Field

from .records import BaseOperation, OperationStatus, OperationType


class ProgressStats(BaseModel):
    """Aggregate counts over the live operations."""

    total: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0
    by_type: dict[OperationType, int] = Field(
        default_factory=lambda: {kind: 0 for kind in OperationType}
    )
    by_owning_resource: dict[str, int] = Field(default_factory=dict)


def filter_by_type(
    records: Iterable[BaseOperation], operation_type: OperationType | str
) -> list[BaseOperation]:
    wanted = OperationType(operation_type)
    return [record for record in records if record.type == wanted]


def filter_by_owning_resource(
    records: Iterable[BaseOperation], resource_key: str
) -> list[BaseOperation]:
    """Records whose owning-resource field equals ``resource_key``.

    Records without an owning-resource field never match.
    """

    return [
        record
        for record in records
        if record.owning_resource is not None and record.owning_resource == resource_key
    ]


def compute_stats(records: Iterable[BaseOperation]) -> ProgressStats:
    stats = ProgressStats()
    for record in records:
        stats.total += 1

        status = record.status
        if status in (OperationStatus.RUNNING, OperationStatus.CONNECTING):
            stats.running += 1
        elif status == OperationStatus.COMPLETED:
            stats.completed += 1
        elif status == OperationStatus.ERROR:
            stats.failed += 1
        elif status == OperationStatus.CANCELLED:
            stats.cancelled += 1

        stats.by_type[OperationType(record.type)] += 1

        resource = record.owning_resource
        if resource is not None:
            key = str(resource)
            stats.by_owning_resource[key] = stats.by_owning_resource.get(key, 0) + 1
    return stats


__all__ = [
    "ProgressStats",
    "compute_stats",
    "filter_by_owning_resource",
    "filter_by_type",
]
