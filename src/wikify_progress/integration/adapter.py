"""Maps transport progress messages onto registry mutations."""

from __future__ import annotations

import logging
from typing import Any, Callable
from uuid import uuid4

from ..records import OperationType, QueryPhase
from ..registry import ProgressRegistry
from .messages import (
    IndexCompleteMessage,
    IndexErrorMessage,
    IndexProgressMessage,
    IndexStartMessage,
    ResearchCompleteMessage,
    ResearchErrorMessage,
    ResearchProgressMessage,
    ResearchStartMessage,
    TransportMessage,
    WikiCompleteMessage,
    WikiErrorMessage,
    WikiProgressMessage,
)

logger = logging.getLogger(__name__)

_MANUAL_TYPES = frozenset({OperationType.QUERY, OperationType.RESEARCH})


def _index_key(repository_id: str) -> str:
    return f"{OperationType.INDEXING.value}:{repository_id}"


def _generation_key(repository_id: str) -> str:
    return f"{OperationType.GENERATION.value}:{repository_id}"


def _research_key(repository_id: str, research_id: str) -> str:
    return f"{OperationType.RESEARCH.value}:{repository_id}:{research_id}"


def _manual_key(operation_type: OperationType | str, repository_id: str) -> str:
    kind = OperationType(operation_type)
    if kind not in _MANUAL_TYPES:
        raise ValueError(f"Manual progress supports query and research operations, not '{kind}'")
    return f"{kind.value}:{repository_id}"


class ProgressIntegration:
    """Feeds typed transport messages into a :class:`ProgressRegistry`.

    Transport messages name a repository (and, for research, a research id)
    rather than an operation id, so the adapter remembers which operation is
    active for each such key. Keys are released once their operation ends.
    """

    def __init__(self, registry: ProgressRegistry) -> None:
        self._registry = registry
        self._active: dict[str, str] = {}
        self._handlers: dict[type[TransportMessage], Callable[[Any], str | None]] = {
            IndexStartMessage: self.handle_index_start,
            IndexProgressMessage: self.handle_index_progress,
            IndexCompleteMessage: self.handle_index_complete,
            IndexErrorMessage: self.handle_index_error,
            WikiProgressMessage: self.handle_wiki_progress,
            WikiCompleteMessage: self.handle_wiki_complete,
            WikiErrorMessage: self.handle_wiki_error,
            ResearchStartMessage: self.handle_research_start,
            ResearchProgressMessage: self.handle_research_progress,
            ResearchCompleteMessage: self.handle_research_complete,
            ResearchErrorMessage: self.handle_research_error,
        }

    @property
    def registry(self) -> ProgressRegistry:
        return self._registry

    @property
    def active_keys(self) -> dict[str, str]:
        return dict(self._active)

    def dispatch(self, message: TransportMessage) -> str | None:
        """Route ``message`` to its handler and return the affected operation id."""

        handler = self._handlers.get(type(message))
        if handler is None:
            raise TypeError(f"Unsupported progress message {type(message).__name__}")
        return handler(message)

    def reset(self) -> None:
        """Forget active keys. Registry contents are left untouched."""

        self._active.clear()

    # Indexing ---------------------------------------------------------

    def handle_index_start(self, message: IndexStartMessage) -> str:
        operation_id = self._registry.start(
            OperationType.INDEXING,
            repository_id=message.repository_id,
            progress=0.0,
            files_processed=0,
            total_files=message.total_files,
        )
        self._active[_index_key(message.repository_id)] = operation_id
        return operation_id

    def handle_index_progress(self, message: IndexProgressMessage) -> str:
        key = _index_key(message.repository_id)
        fields = {
            "progress": message.progress,
            "current_file": message.current_file,
            "files_processed": message.files_processed,
            "total_files": message.total_files,
            "processing_rate": message.processing_rate,
        }
        operation_id = self._active.get(key)
        if operation_id is None:
            operation_id = self._registry.start(
                OperationType.INDEXING, repository_id=message.repository_id, **fields
            )
            self._active[key] = operation_id
        else:
            self._registry.update(operation_id, **fields)

        if message.progress >= 1.0:
            self._registry.complete(operation_id)
            self._active.pop(key, None)
        return operation_id

    def handle_index_complete(self, message: IndexCompleteMessage) -> str | None:
        operation_id = self._release(_index_key(message.repository_id))
        if operation_id is None:
            return None
        if message.total_files is not None:
            self._registry.update(operation_id, total_files=message.total_files)
        self._registry.complete(
            operation_id,
            result={"total_chunks": message.total_chunks, "duration_ms": message.duration_ms},
        )
        return operation_id

    def handle_index_error(self, message: IndexErrorMessage) -> str | None:
        operation_id = self._release(_index_key(message.repository_id))
        if operation_id is not None:
            self._registry.error(operation_id, message.error)
        return operation_id

    # Documentation generation -----------------------------------------

    def handle_wiki_progress(self, message: WikiProgressMessage) -> str:
        key = _generation_key(message.repository_id)
        fields = {
            "progress": message.progress,
            "current_step": message.current_step,
            "total_steps": message.total_steps,
            "completed_steps": message.completed_steps,
            "step_details": message.step_details,
        }
        operation_id = self._active.get(key)
        if operation_id is None:
            operation_id = self._registry.start(
                OperationType.GENERATION, repository_id=message.repository_id, **fields
            )
            self._active[key] = operation_id
        else:
            self._registry.update(operation_id, **fields)
        return operation_id

    def handle_wiki_complete(self, message: WikiCompleteMessage) -> str | None:
        operation_id = self._release(_generation_key(message.repository_id))
        if operation_id is None:
            return None
        self._registry.update(
            operation_id,
            progress=1.0,
            wiki_id=message.wiki_id,
            pages_count=message.pages_count,
            sections_count=message.sections_count,
        )
        self._registry.complete(operation_id)
        return operation_id

    def handle_wiki_error(self, message: WikiErrorMessage) -> str | None:
        operation_id = self._release(_generation_key(message.repository_id))
        if operation_id is not None:
            self._registry.error(operation_id, message.error)
        return operation_id

    # Research ---------------------------------------------------------

    def handle_research_start(self, message: ResearchStartMessage) -> str:
        operation_id = self._registry.start(
            OperationType.RESEARCH,
            repository_id=message.repository_id,
            research_id=message.research_id,
            progress=0.0,
            current_stage="Starting research...",
            stage_details=message.query,
            total_stages=message.total_iterations,
            completed_stages=0,
            documents_processed=0,
        )
        self._active[_research_key(message.repository_id, message.research_id)] = operation_id
        return operation_id

    def handle_research_progress(self, message: ResearchProgressMessage) -> str:
        key = _research_key(message.repository_id, message.research_id)
        operation_id = self._active.get(key)
        if operation_id is None:
            operation_id = self.handle_research_start(
                ResearchStartMessage(
                    repository_id=message.repository_id,
                    research_id=message.research_id,
                    total_iterations=message.total_iterations,
                )
            )
        self._registry.update(
            operation_id,
            progress=message.progress,
            current_stage=message.current_focus,
            completed_stages=message.current_iteration,
            total_stages=message.total_iterations,
        )
        return operation_id

    def handle_research_complete(self, message: ResearchCompleteMessage) -> str | None:
        operation_id = self._release(_research_key(message.repository_id, message.research_id))
        if operation_id is not None:
            self._registry.complete(
                operation_id,
                result={
                    "conclusion": message.final_conclusion,
                    "findings": list(message.all_findings),
                },
            )
        return operation_id

    def handle_research_error(self, message: ResearchErrorMessage) -> str | None:
        operation_id = self._release(_research_key(message.repository_id, message.research_id))
        if operation_id is not None:
            self._registry.error(operation_id, message.error)
        return operation_id

    # Client-driven query and research ---------------------------------

    def start_manual(
        self, operation_type: OperationType | str, repository_id: str, **config: Any
    ) -> str:
        """Start a query or research operation driven by the client itself.

        Returns the already-active operation id when one exists for the
        repository.
        """

        key = _manual_key(operation_type, repository_id)
        existing = self._active.get(key)
        if existing is not None:
            return existing

        if OperationType(operation_type) == OperationType.QUERY:
            operation_id = self._registry.start(
                OperationType.QUERY,
                repository_id=repository_id,
                progress=0.0,
                query_id=config.get("query_id") or f"query_{uuid4().hex[:12]}",
                current_phase=QueryPhase.EMBEDDING,
                phase_details="Embedding query...",
                is_streaming=False,
                tokens_generated=0,
            )
        else:
            operation_id = self._registry.start(
                OperationType.RESEARCH,
                repository_id=repository_id,
                progress=0.0,
                research_id=config.get("research_id") or f"research_{uuid4().hex[:12]}",
                current_stage="Initializing research...",
                total_stages=config.get("total_stages", 5),
                completed_stages=0,
                documents_processed=0,
                total_documents=config.get("total_documents"),
            )
        self._active[key] = operation_id
        return operation_id

    def update_manual(
        self, operation_type: OperationType | str, repository_id: str, **updates: Any
    ) -> str | None:
        key = _manual_key(operation_type, repository_id)
        operation_id = self._active.get(key)
        if operation_id is None:
            return None
        self._registry.update(operation_id, **updates)
        progress = updates.get("progress")
        if progress is not None and progress >= 1.0:
            self._registry.complete(operation_id)
            self._active.pop(key, None)
        return operation_id

    def complete_manual(
        self, operation_type: OperationType | str, repository_id: str, result: Any = None
    ) -> str | None:
        operation_id = self._release(_manual_key(operation_type, repository_id))
        if operation_id is not None:
            self._registry.complete(operation_id, result)
        return operation_id

    def error_manual(
        self, operation_type: OperationType | str, repository_id: str, error: str
    ) -> str | None:
        operation_id = self._release(_manual_key(operation_type, repository_id))
        if operation_id is not None:
            self._registry.error(operation_id, error)
        return operation_id

    def _release(self, key: str) -> str | None:
        operation_id = self._active.pop(key, None)
        if operation_id is None:
            logger.debug("No active operation for progress key", extra={"key": key})
        return operation_id


__all__ = ["ProgressIntegration"]
