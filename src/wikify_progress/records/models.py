"""Operation record models for tracked backend work."""

from __future__ import annotations

import math
from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, ClassVar, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class OperationType(StrEnum):
    INDEXING = "indexing"
    GENERATION = "generation"
    QUERY = "query"
    RESEARCH = "research"


class OperationStatus(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self in (OperationStatus.CONNECTING, OperationStatus.RUNNING)


_TERMINAL_STATUSES = frozenset(
    {OperationStatus.COMPLETED, OperationStatus.ERROR, OperationStatus.CANCELLED}
)

# Legal forward edges of the status machine. Terminal states have none.
_TRANSITIONS: dict[OperationStatus, frozenset[OperationStatus]] = {
    OperationStatus.IDLE: frozenset({OperationStatus.CONNECTING, OperationStatus.RUNNING}),
    OperationStatus.CONNECTING: frozenset({OperationStatus.RUNNING, *_TERMINAL_STATUSES}),
    OperationStatus.RUNNING: frozenset(_TERMINAL_STATUSES),
    OperationStatus.COMPLETED: frozenset(),
    OperationStatus.ERROR: frozenset(),
    OperationStatus.CANCELLED: frozenset(),
}


def can_transition(current: OperationStatus | str, target: OperationStatus | str) -> bool:
    """Return True when moving from ``current`` to ``target`` is a legal status change."""

    return OperationStatus(target) in _TRANSITIONS[OperationStatus(current)]


class QueryPhase(StrEnum):
    EMBEDDING = "embedding"
    RETRIEVAL = "retrieval"
    GENERATION = "generation"
    STREAMING = "streaming"


def clamp_progress(value: Any) -> float:
    """Coerce ``value`` to a float fraction in ``[0.0, 1.0]``.

    Raises ValueError for NaN, the same as for non-numeric strings.
    """

    number = float(value)
    if math.isnan(number):
        raise ValueError("progress must be a number, got NaN")
    return min(1.0, max(0.0, number))


class BaseOperation(BaseModel):
    """Fields shared by every tracked operation.

    Records are immutable snapshots; the registry replaces them wholesale
    on every mutation.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    OWNING_FIELD: ClassVar[str | None] = None

    id: str = Field(..., description="Opaque identifier assigned by the registry.")
    type: OperationType
    status: OperationStatus = OperationStatus.RUNNING
    progress: float = Field(default=0.0, description="Completion fraction between 0 and 1.")
    start_time: datetime
    end_time: datetime | None = None
    error: str | None = None
    result: Any = None

    @field_validator("progress", mode="before")
    @classmethod
    def _clamp_progress(cls, value: Any) -> float:
        if value is None:
            return 0.0
        return clamp_progress(value)

    @property
    def owning_resource(self) -> str | None:
        """Identifier of the resource this operation concerns, when the variant has one."""

        if self.OWNING_FIELD is None:
            return None
        return getattr(self, self.OWNING_FIELD, None)

    @property
    def is_terminal(self) -> bool:
        return OperationStatus(self.status).is_terminal

    def history_metadata(self) -> dict[str, Any]:
        """Snapshot of type-specific fields archived when the operation ends."""

        return {"progress": self.progress}

    def _pick(self, *names: str) -> dict[str, Any]:
        return {name: getattr(self, name, None) for name in names}


class IndexingOperation(BaseOperation):
    """Repository indexing run."""

    OWNING_FIELD: ClassVar[str | None] = "repository_id"

    type: Literal["indexing"] = "indexing"
    repository_id: str
    current_file: str | None = None
    files_processed: int = 0
    total_files: int = 0
    processing_rate: float | None = Field(default=None, description="Files per second.")

    def history_metadata(self) -> dict[str, Any]:
        return {**super().history_metadata(), **self._pick("files_processed", "total_files")}


class GenerationOperation(BaseOperation):
    """Documentation-set (wiki) generation run."""

    OWNING_FIELD: ClassVar[str | None] = "repository_id"

    type: Literal["generation"] = "generation"
    repository_id: str
    current_step: str = ""
    total_steps: int = 0
    completed_steps: int = 0
    step_details: str | None = None
    wiki_id: str | None = None
    pages_count: int | None = None
    sections_count: int | None = None

    def history_metadata(self) -> dict[str, Any]:
        return {
            **super().history_metadata(),
            **self._pick("completed_steps", "total_steps", "pages_count", "sections_count"),
        }


class QueryOperation(BaseOperation):
    """Retrieval-augmented query with streamed answer tokens."""

    OWNING_FIELD: ClassVar[str | None] = "repository_id"

    type: Literal["query"] = "query"
    repository_id: str
    query_id: str | None = None
    current_phase: QueryPhase = QueryPhase.EMBEDDING
    phase_details: str | None = None
    is_streaming: bool = False
    tokens_generated: int = 0

    def history_metadata(self) -> dict[str, Any]:
        return {**super().history_metadata(), **self._pick("current_phase", "tokens_generated")}


class ResearchOperation(BaseOperation):
    """Multi-iteration research session."""

    OWNING_FIELD: ClassVar[str | None] = "repository_id"

    type: Literal["research"] = "research"
    repository_id: str
    research_id: str | None = None
    current_stage: str = ""
    total_stages: int = 0
    completed_stages: int = 0
    stage_details: str | None = None
    documents_processed: int | None = None
    total_documents: int | None = None

    def history_metadata(self) -> dict[str, Any]:
        return {
            **super().history_metadata(),
            **self._pick("completed_stages", "total_stages", "documents_processed"),
        }


OperationRecord = Annotated[
    Union[IndexingOperation, GenerationOperation, QueryOperation, ResearchOperation],
    Field(discriminator="type"),
]

OPERATION_VARIANTS: dict[OperationType, type[BaseOperation]] = {
    OperationType.INDEXING: IndexingOperation,
    OperationType.GENERATION: GenerationOperation,
    OperationType.QUERY: QueryOperation,
    OperationType.RESEARCH: ResearchOperation,
}

_RECORD_ADAPTER: TypeAdapter[OperationRecord] = TypeAdapter(OperationRecord)


def parse_record(payload: Mapping[str, Any]) -> BaseOperation:
    """Validate a mapping into the operation variant named by its ``type``."""

    return _RECORD_ADAPTER.validate_python(dict(payload))


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
