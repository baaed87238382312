from __future__ import annotations

import itertools
import logging

from wikify_progress import OperationStatus, ProgressRegistry
from wikify_progress.subscriptions import SubscriberRegistry, SubscriptionFanout


def make_registry() -> ProgressRegistry:
    counter = itertools.count(1)
    return ProgressRegistry(id_factory=lambda: f"op-{next(counter)}")


def test_global_subscriber_receives_post_mutation_snapshot() -> None:
    registry = make_registry()
    received: list[list] = []
    registry.subscribe(received.append)

    op_id = registry.start("indexing", repository_id="repo")
    registry.update(op_id, progress=0.4)
    registry.complete(op_id)

    assert len(received) == 3
    assert [len(states) for states in received] == [1, 1, 1]
    assert received[0][0].status == OperationStatus.RUNNING
    assert received[1][0].progress == 0.4
    assert received[2][0].status == OperationStatus.COMPLETED


def test_progress_subscriber_only_sees_its_operation() -> None:
    registry = make_registry()
    first = registry.start("indexing", repository_id="a")
    second = registry.start("indexing", repository_id="b")
    seen = []
    registry.subscribe_to_progress(first, seen.append)

    registry.update(second, progress=0.9)
    assert seen == []

    registry.update(first, progress=0.2)
    registry.error(first, "disk full")

    assert [record.id for record in seen] == [first, first]
    assert seen[-1].status == OperationStatus.ERROR


def test_subscription_to_future_id_fires_once_it_exists() -> None:
    registry = make_registry()
    seen = []
    registry.subscribe_to_progress("op-1", seen.append)
    assert seen == []

    registry.start("query", repository_id="repo")

    assert len(seen) == 1
    assert seen[0].id == "op-1"


def test_failing_subscriber_does_not_block_others(caplog) -> None:
    registry = make_registry()
    global_seen = []
    progress_seen = []

    def explode(_payload):
        raise RuntimeError("subscriber bug")

    registry.subscribe(explode)
    registry.subscribe(global_seen.append)
    registry.subscribe_to_progress("op-1", explode)
    registry.subscribe_to_progress("op-1", progress_seen.append)

    with caplog.at_level(logging.ERROR):
        op_id = registry.start("indexing", repository_id="repo")

    assert len(global_seen) == 1
    assert len(progress_seen) == 1
    assert registry.get(op_id).status == OperationStatus.RUNNING
    assert "Progress subscriber failed" in caplog.text


def test_unsubscribe_stops_delivery() -> None:
    registry = make_registry()
    global_seen = []
    progress_seen = []
    unsubscribe_global = registry.subscribe(global_seen.append)
    unsubscribe_progress = registry.subscribe_to_progress("op-1", progress_seen.append)

    op_id = registry.start("research", repository_id="repo")
    unsubscribe_global()
    unsubscribe_progress()
    unsubscribe_global()
    unsubscribe_progress()

    registry.update(op_id, progress=0.5)
    registry.complete(op_id)
    registry.clear_all()

    assert len(global_seen) == 1
    assert len(progress_seen) == 1


def test_clear_notifies_global_subscribers_only() -> None:
    registry = make_registry()
    op_id = registry.start("indexing", repository_id="repo")
    global_seen = []
    progress_seen = []
    registry.subscribe(global_seen.append)
    registry.subscribe_to_progress(op_id, progress_seen.append)

    registry.clear(op_id)
    registry.clear("op-unknown")

    assert global_seen == [[]]
    assert progress_seen == []


def test_subscriber_can_read_registry_during_notification() -> None:
    registry = make_registry()
    observed = []

    def on_change(record):
        observed.append(registry.get(record.id).status)

    registry.subscribe_to_progress("op-1", on_change)
    op_id = registry.start("query", repository_id="repo")
    registry.cancel(op_id)

    assert observed == [OperationStatus.RUNNING, OperationStatus.CANCELLED]


def test_removed_mid_notification_is_skipped() -> None:
    subscribers: SubscriberRegistry[str] = SubscriberRegistry("test")
    calls = []
    handles = {}

    def first(payload):
        calls.append(("first", payload))
        subscribers.remove(handles["second"])

    def second(payload):
        calls.append(("second", payload))

    handles["first"] = subscribers.add(first)
    handles["second"] = subscribers.add(second)

    failures = subscribers.notify_all("ping")

    assert failures == 0
    assert calls == [("first", "ping")]
    assert len(subscribers) == 1


def test_notify_all_counts_failures() -> None:
    subscribers: SubscriberRegistry[int] = SubscriberRegistry()

    def broken(_value):
        raise ValueError("nope")

    subscribers.add(broken)
    subscribers.add(broken)
    subscribers.add(lambda value: None)

    assert subscribers.notify_all(1) == 2


def test_same_callback_twice_gets_distinct_handles() -> None:
    subscribers: SubscriberRegistry[int] = SubscriberRegistry()
    calls = []

    first = subscribers.add(calls.append)
    second = subscribers.add(calls.append)
    assert first != second

    subscribers.remove(first)
    subscribers.notify_all(7)

    assert calls == [7]


def test_fanout_drops_empty_per_operation_registries() -> None:
    fanout = SubscriptionFanout()
    unsubscribe_a = fanout.subscribe_to_progress("op", lambda record: None)
    unsubscribe_b = fanout.subscribe_to_progress("op", lambda record: None)
    assert fanout.subscriber_count("op") == 2

    unsubscribe_a()
    assert fanout.subscriber_count("op") == 1
    unsubscribe_b()
    assert fanout.subscriber_count("op") == 0
    assert fanout.subscriber_count() == 0


def test_later_subscribers_see_changes_made_by_earlier_ones() -> None:
    registry = make_registry()
    seen: list[list[OperationStatus]] = []

    def auto_complete(states):
        for state in states:
            if state.status == OperationStatus.RUNNING:
                registry.complete(state.id)

    registry.subscribe(auto_complete)
    registry.subscribe(lambda states: seen.append([state.status for state in states]))

    op_id = registry.start("indexing", repository_id="repo")

    assert registry.get(op_id).status == OperationStatus.COMPLETED
    assert seen[-1] == [OperationStatus.COMPLETED]
    assert [OperationStatus.RUNNING] not in seen


def test_progress_subscribers_get_latest_record_after_reentrant_change() -> None:
    registry = make_registry()
    seen = []

    def auto_complete(record):
        if record.status == OperationStatus.RUNNING:
            registry.complete(record.id)

    registry.subscribe_to_progress("op-1", auto_complete)
    registry.subscribe_to_progress("op-1", lambda record: seen.append(record.status))

    registry.start("query", repository_id="repo")

    assert seen == [OperationStatus.COMPLETED, OperationStatus.COMPLETED]


def test_notify_each_builds_payload_per_callback() -> None:
    subscribers: SubscriberRegistry[int] = SubscriberRegistry()
    counter = itertools.count(1)
    calls = []
    subscribers.add(calls.append)
    subscribers.add(calls.append)

    assert subscribers.notify_each(lambda: next(counter)) == 0
    assert calls == [1, 2]
