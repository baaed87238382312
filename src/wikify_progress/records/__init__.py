"""Operation record model exports."""

from .models import (
    OPERATION_VARIANTS,
    BaseOperation,
    GenerationOperation,
    IndexingOperation,
    OperationRecord,
    OperationStatus,
    OperationType,
    QueryOperation,
    QueryPhase,
    ResearchOperation,
    can_transition,
    clamp_progress,
    parse_record,
)

__all__ = [
    "BaseOperation",
    "GenerationOperation",
    "IndexingOperation",
    "OPERATION_VARIANTS",
    "OperationRecord",
    "OperationStatus",
    "OperationType",
    "QueryOperation",
    "QueryPhase",
    "ResearchOperation",
    "can_transition",
    "clamp_progress",
    "parse_record",
]
