"""Lifecycle tracking for long-running indexing, generation, query and research operations."""

from .history import HistoryArchive, HistoryEntry
from .notifications import NotificationConfig, NotificationGate, NotificationPhase
from .queries import ProgressStats
from .records import (
    BaseOperation,
    GenerationOperation,
    IndexingOperation,
    OperationStatus,
    OperationType,
    QueryOperation,
    ResearchOperation,
)
from .registry import ProgressRegistry, UnknownOperationTypeError

__version__ = "0.1.0"

__all__ = [
    "BaseOperation",
    "GenerationOperation",
    "HistoryArchive",
    "HistoryEntry",
    "IndexingOperation",
    "NotificationConfig",
    "NotificationGate",
    "NotificationPhase",
    "OperationStatus",
    "OperationType",
    "ProgressRegistry",
    "ProgressStats",
    "QueryOperation",
    "ResearchOperation",
    "UnknownOperationTypeError",
    "__version__",
]
