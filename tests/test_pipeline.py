"""
Tests for the end-to-end pipeline run.
"""
import threading
from datetime import timedelta

import pytest

from job_notifier.pipeline import Pipeline, RunInProgressError, RunState
from job_notifier.seen_store import SeenStore

from conftest import NOW, FakeSource, RecordingNotifier, make_record


def _pipeline(sources, store, notifier, policy, **kwargs):
    kwargs.setdefault("max_dispatches", 5)
    return Pipeline(sources, store, notifier, policy, clock=lambda: NOW, **kwargs)


def test_worked_example(store, notifier, policy):
    record_a = make_record("1", title="Angular frontend dev", age=timedelta(minutes=30))
    record_b = make_record("2", title="React and Angular fullstack", age=timedelta(minutes=10))
    source = FakeSource("src", [record_a, record_b])

    first = _pipeline([source], store, notifier, policy).run()
    assert first.dispatched == 1
    assert first.rejected == 1
    assert len(notifier.sent) == 1
    assert "Angular frontend dev" in notifier.sent[0]

    reloaded = SeenStore(store.path)
    reloaded.load()
    second = _pipeline([source], reloaded, notifier, policy).run()
    assert second.dispatched == 0
    assert second.duplicates == 1
    assert len(notifier.sent) == 1


def test_seen_ids_are_never_notified_regardless_of_relevance(tmp_path, notifier, policy):
    store = SeenStore(tmp_path / "seen.json", ids=["src-1", "src-2"])
    source = FakeSource("src", [make_record("1"), make_record("2", title="Java")])
    report = _pipeline([source], store, notifier, policy).run()
    assert notifier.sent == []
    assert report.duplicates == 2


def test_cap_limits_dispatches_in_source_order(store, notifier, policy):
    records = [make_record(str(i), title=f"Angular role {i}") for i in range(8)]
    report = _pipeline([FakeSource("src", records)], store, notifier, policy, max_dispatches=3).run()

    assert report.dispatched == 3
    assert report.budget_exhausted
    assert [t.splitlines()[1] for t in notifier.sent] == [
        "*Angular role 0* at _Acme_",
        "*Angular role 1* at _Acme_",
        "*Angular role 2* at _Acme_",
    ]
    assert sorted(store.ids) == ["src-0", "src-1", "src-2"]


def test_cap_is_shared_across_sources(store, notifier, policy):
    sources = [
        FakeSource(name, [make_record(str(i), source=name) for i in range(4)])
        for name in ("a", "b", "c")
    ]
    report = _pipeline(sources, store, notifier, policy, max_dispatches=5).run()
    assert report.dispatched == 5
    assert len(notifier.sent) == 5


class BarrierSource(FakeSource):
    """Blocks in fetch until every source sharing the barrier has started."""

    def __init__(self, name, records, barrier):
        super().__init__(name, records)
        self.barrier = barrier

    def fetch(self):
        self.barrier.wait()
        return super().fetch()


def test_sources_are_fetched_concurrently(store, notifier, policy):
    barrier = threading.Barrier(2, timeout=2)
    sources = [
        BarrierSource(name, [make_record("1", source=name)], barrier)
        for name in ("a", "b")
    ]
    report = _pipeline(sources, store, notifier, policy).run()

    assert report.failed_sources == {}
    assert report.dispatched == 2
    assert store.contains("a-1") and store.contains("b-1")


def test_failing_source_does_not_block_others(store, notifier, policy):
    good = FakeSource("good", [make_record("1", source="good")])
    down = FakeSource("down", error="connection refused")
    crashing = FakeSource("crash", raises=RuntimeError("parser bug"))

    report = _pipeline([down, good, crashing], store, notifier, policy).run()

    assert report.dispatched == 1
    assert set(report.failed_sources) == {"down", "crash"}
    assert "parser bug" in report.failed_sources["crash"]
    assert store.contains("good-1")


def test_disabled_sources_are_not_fetched(store, notifier, policy):
    off = FakeSource("off", [make_record("1", source="off")], enabled=False)
    on = FakeSource("on", [make_record("2", source="on")])
    report = _pipeline([off, on], store, notifier, policy).run()
    assert off.calls == 0
    assert report.dispatched == 1


def test_record_error_is_isolated(store, policy):
    notifier = RecordingNotifier()
    records = [make_record("1"), make_record("2"), make_record("3")]
    pipeline = _pipeline([FakeSource("src", records)], store, notifier, policy)

    original = pipeline.gate.try_dispatch

    def flaky(record, budget):
        if record.id == "src-2":
            raise ValueError("unexpected")
        return original(record, budget)

    pipeline.gate.try_dispatch = flaky
    report = pipeline.run()

    assert report.record_errors == 1
    assert report.dispatched == 2
    assert not store.contains("src-2")


def test_failed_notification_is_retried_next_run(store, policy):
    record = make_record("1", title="Angular dev")
    source = FakeSource("src", [record])

    report = _pipeline([source], store, RecordingNotifier(fail_on=["Angular dev"]), policy).run()
    assert report.dispatched == 0
    assert report.failed_notifications == 1
    assert report.persisted is None

    retry_notifier = RecordingNotifier()
    report = _pipeline([source], store, retry_notifier, policy).run()
    assert report.dispatched == 1
    assert len(retry_notifier.sent) == 1


def test_persists_once_at_end_when_incremental_disabled(store, notifier, policy):
    records = [make_record("1"), make_record("2")]
    pipeline = _pipeline([FakeSource("src", records)], store, notifier, policy, persist_each_dispatch=False)
    report = pipeline.run()
    assert report.persisted is True
    assert SeenStore(store.path).load() == {"src-1", "src-2"}


def test_nothing_persisted_without_dispatch(store, notifier, policy):
    report = _pipeline([FakeSource("src", [make_record("1", title="Java")])], store, notifier, policy).run()
    assert report.persisted is None
    assert not store.path.exists()


def test_dry_run_does_not_write(store, notifier, policy):
    report = _pipeline([FakeSource("src", [make_record("1")])], store, notifier, policy, persist=False).run()
    assert report.dispatched == 1
    assert not store.path.exists()


def test_runs_do_not_overlap(store, policy):
    entered = threading.Event()
    release = threading.Event()

    class BlockingSource(FakeSource):
        def fetch(self):
            entered.set()
            release.wait(5)
            return super().fetch()

    pipeline = _pipeline([BlockingSource("slow")], store, RecordingNotifier(), policy)
    worker = threading.Thread(target=pipeline.run)
    worker.start()
    assert entered.wait(5)
    assert pipeline.state is RunState.FETCHING

    with pytest.raises(RunInProgressError):
        pipeline.run()

    release.set()
    worker.join(5)
    assert pipeline.state is RunState.IDLE
    pipeline.run()


def test_report_counts(store, notifier, policy):
    records = [
        make_record("1"),
        make_record("2", title="React dev"),
        make_record("3", age=timedelta(days=2)),
    ]
    report = _pipeline([FakeSource("src", records)], store, notifier, policy).run()
    data = report.as_dict()
    assert data["fetched"] == 3
    assert data["relevant"] == 1
    assert data["rejected"] == 2
    assert data["dispatched"] == 1
    assert data["finished_at"] is not None
