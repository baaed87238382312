from __future__ import annotations

from datetime import datetime, timedelta, timezone
import itertools

import pytest

from wikify_progress import (
    IndexingOperation,
    OperationStatus,
    ProgressRegistry,
    QueryOperation,
    UnknownOperationTypeError,
)


class StepClock:
    def __init__(self, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = datetime(2025, 1, 1, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


def make_registry(**kwargs) -> ProgressRegistry:
    return ProgressRegistry(clock=StepClock(), **kwargs)


def test_indexing_lifecycle_scenario() -> None:
    registry = make_registry()

    op_id = registry.start("indexing", repository_id="repoA", total_files=10)
    record = registry.get(op_id)
    assert isinstance(record, IndexingOperation)
    assert record.status == OperationStatus.RUNNING
    assert record.start_time == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert record.end_time is None

    registry.update(op_id, files_processed=5, progress=0.5)
    assert registry.get(op_id).progress == 0.5
    assert registry.get(op_id).files_processed == 5

    registry.complete(op_id)
    finished = registry.get(op_id)
    assert finished.status == OperationStatus.COMPLETED
    assert finished.progress == 1.0
    assert finished.end_time == datetime(2025, 1, 1, 0, 0, 1, tzinfo=timezone.utc)

    history = registry.get_history()
    assert history[0].id == op_id
    assert history[0].status == "completed"
    assert history[0].repository_id == "repoA"
    assert history[0].duration_ms == 1000.0
    assert history[0].metadata == {"progress": 1.0, "files_processed": 5, "total_files": 10}


def test_cancel_unknown_id_is_a_no_op() -> None:
    registry = make_registry()
    registry.start("query", repository_id="repo")

    assert registry.cancel("nonexistent-id") is None
    assert registry.update("nonexistent-id", progress=0.3) is None
    assert registry.complete("nonexistent-id") is None
    assert registry.error("nonexistent-id", "boom") is None
    assert len(registry.get_all()) == 1
    assert registry.get_history() == []


@pytest.mark.parametrize(
    "finish",
    [
        lambda registry, op_id: registry.complete(op_id),
        lambda registry, op_id: registry.error(op_id, "remote failure"),
        lambda registry, op_id: registry.cancel(op_id),
    ],
)
def test_terminal_records_ignore_further_mutations(finish) -> None:
    registry = make_registry()
    op_id = registry.start("research", repository_id="repo", total_stages=3)
    finish(registry, op_id)
    snapshot = registry.get(op_id)

    assert registry.update(op_id, progress=0.1, completed_stages=1) is None
    assert registry.complete(op_id, result="late") is None
    assert registry.error(op_id, "late error") is None
    assert registry.cancel(op_id) is None

    assert registry.get(op_id) is snapshot
    assert len(registry.get_history()) == 1


def test_error_records_message_and_archives() -> None:
    registry = make_registry()
    op_id = registry.start("generation", repository_id="repo", total_steps=4)
    registry.update(op_id, progress=0.25, completed_steps=1)

    failed = registry.error(op_id, "model timed out")

    assert failed.status == OperationStatus.ERROR
    assert failed.error == "model timed out"
    assert failed.progress == 0.25
    entry = registry.get_history()[0]
    assert entry.status == OperationStatus.ERROR
    assert entry.error == "model timed out"


def test_cancel_sets_end_time_without_touching_progress() -> None:
    registry = make_registry()
    op_id = registry.start("indexing", repository_id="repo", total_files=4)
    registry.update(op_id, progress=0.75)

    cancelled = registry.cancel(op_id)

    assert cancelled.status == OperationStatus.CANCELLED
    assert cancelled.progress == 0.75
    assert cancelled.end_time is not None
    assert cancelled.error is None


def test_complete_keeps_result_payload() -> None:
    registry = make_registry()
    op_id = registry.start("research", repository_id="repo")

    registry.complete(op_id, result={"conclusion": "done"})

    assert registry.get(op_id).result == {"conclusion": "done"}


def test_progress_is_clamped_to_unit_interval() -> None:
    registry = make_registry()
    op_id = registry.start("indexing", repository_id="repo", progress=1.5)
    assert registry.get(op_id).progress == 1.0

    registry.update(op_id, progress=-0.2)
    assert registry.get(op_id).progress == 0.0

    registry.update(op_id, progress=7)
    assert registry.get(op_id).progress == 1.0

    registry.update(op_id, progress="not a number")
    assert registry.get(op_id).progress == 1.0

    registry.update(op_id, progress=0.7)
    registry.update(op_id, progress=float("nan"))
    assert registry.get(op_id).progress == 0.7

    nan_id = registry.start("query", repository_id="repo", progress=float("nan"))
    assert registry.get(nan_id).progress == 0.0


def test_history_keeps_newest_hundred_queries() -> None:
    registry = make_registry()
    ids = [registry.start("query", repository_id="repo", query_id=f"q{n}") for n in range(101)]
    for op_id in ids:
        registry.complete(op_id)

    history = registry.get_history()
    assert len(history) == 100
    assert history[0].id == ids[-1]
    assert ids[0] not in {entry.id for entry in history}
    assert history[-1].id == ids[1]


def test_update_ignores_registry_owned_and_unknown_fields() -> None:
    registry = make_registry()
    op_id = registry.start("indexing", repository_id="repo")
    before = registry.get(op_id)

    updated = registry.update(
        op_id,
        id="hijacked",
        type="query",
        start_time=datetime(2000, 1, 1, tzinfo=timezone.utc),
        end_time=datetime(2000, 1, 2, tzinfo=timezone.utc),
        error="not yet",
        bogus=1,
        current_file="src/main.py",
    )

    assert updated.id == op_id
    assert updated.type == "indexing"
    assert updated.start_time == before.start_time
    assert updated.end_time is None
    assert updated.error is None
    assert not hasattr(updated, "bogus")
    assert updated.current_file == "src/main.py"


def test_update_cannot_reach_terminal_or_move_backwards() -> None:
    registry = make_registry()
    op_id = registry.start("query", repository_id="repo")

    registry.update(op_id, status="completed")
    registry.update(op_id, status="connecting")
    registry.update(op_id, status="no-such-status")

    assert registry.get(op_id).status == OperationStatus.RUNNING
    assert registry.get_history() == []


def test_records_are_replaced_not_mutated() -> None:
    registry = make_registry()
    op_id = registry.start("query", repository_id="repo")
    before = registry.get(op_id)

    registry.update(op_id, tokens_generated=12, is_streaming=True)

    after = registry.get(op_id)
    assert after is not before
    assert before.tokens_generated == 0
    assert after.tokens_generated == 12
    assert isinstance(after, QueryOperation)


def test_start_assigns_id_status_and_start_time() -> None:
    registry = make_registry()

    op_id = registry.start(
        "query",
        repository_id="repo",
        id="caller-id",
        status="completed",
        end_time=datetime(2000, 1, 1, tzinfo=timezone.utc),
        error="stale failure",
        result={"pages": 3},
    )

    record = registry.get(op_id)
    assert op_id != "caller-id"
    assert op_id.startswith("progress_")
    assert record.status == OperationStatus.RUNNING
    assert record.end_time is None
    assert record.error is None
    assert record.result is None

    registry.complete(op_id)
    assert registry.get_history()[0].error is None


def test_ids_are_unique() -> None:
    registry = make_registry()
    ids = {registry.start("query", repository_id="repo") for _ in range(50)}
    assert len(ids) == 50


def test_custom_id_factory() -> None:
    counter = itertools.count(1)
    registry = make_registry(id_factory=lambda: f"op-{next(counter)}")

    assert registry.start("indexing", repository_id="a") == "op-1"
    assert registry.start("indexing", repository_id="b") == "op-2"


def test_unknown_type_is_rejected() -> None:
    registry = make_registry()

    with pytest.raises(UnknownOperationTypeError):
        registry.start("compilation", repository_id="repo")
    with pytest.raises(ValueError):
        registry.start("", repository_id="repo")
    assert registry.get_all() == []


def test_malformed_start_payload_is_accepted(caplog) -> None:
    registry = make_registry()

    with caplog.at_level("WARNING"):
        op_id = registry.start("indexing", repository_id="repo", total_files="lots")

    record = registry.get(op_id)
    assert record.status == OperationStatus.RUNNING
    assert record.total_files == "lots"
    assert "Accepting malformed operation payload" in caplog.text

    registry.complete(op_id)
    assert registry.get_history()[0].metadata["total_files"] == "lots"


def test_clear_removes_live_record_but_keeps_history() -> None:
    registry = make_registry()
    op_id = registry.start("indexing", repository_id="repo")
    registry.complete(op_id)

    assert registry.clear(op_id) is True
    assert registry.get(op_id) is None
    assert registry.clear(op_id) is False
    assert registry.get_history()[0].id == op_id


def test_clear_all_returns_removed_count() -> None:
    registry = make_registry()
    first = registry.start("indexing", repository_id="repo")
    registry.start("query", repository_id="repo")
    registry.cancel(first)

    assert registry.clear_all() == 2
    assert registry.get_all() == []
    assert len(registry.get_history()) == 1


def test_clear_history_leaves_live_records() -> None:
    registry = make_registry()
    op_id = registry.start("indexing", repository_id="repo")
    registry.complete(op_id)

    registry.clear_history()

    assert registry.get_history() == []
    assert registry.get(op_id) is not None


def test_independent_registries_share_nothing() -> None:
    first = make_registry()
    second = make_registry()

    first.start("indexing", repository_id="repo")

    assert len(first.get_all()) == 1
    assert second.get_all() == []
