"""
Job notification pipeline.

Runs: fetch (parallel) → dedup → relevance → dispatch (capped) → persist seen ids.
"""
from __future__ import annotations

import enum
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Callable, Sequence

from job_notifier.dispatch import DispatchGate
from job_notifier.log import get_logger
from job_notifier.models import FetchResult, JobRecord, RunBudget, RunReport
from job_notifier.notifiers import Notifier
from job_notifier.relevance import RelevancePolicy, evaluate
from job_notifier.seen_store import SeenStore
from job_notifier.sources.base import JobSource, utcnow

log = get_logger(__name__)


class RunState(enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    DISPATCHING = "dispatching"
    PERSISTING = "persisting"


class RunInProgressError(RuntimeError):
    pass


def _fetch_source(source: JobSource) -> FetchResult:
    """Wrapper for parallel source fetching."""
    try:
        return source.fetch()
    except Exception as exc:
        log.error("[%s] FAILED: %s", source.name, exc)
        return FetchResult(source.name, error=f"{exc.__class__.__name__}: {exc}")


class Pipeline:
    def __init__(
        self,
        sources: Sequence[JobSource],
        store: SeenStore,
        notifier: Notifier,
        policy: RelevancePolicy,
        *,
        max_dispatches: int,
        max_per_source: int | None = None,
        persist: bool = True,
        persist_each_dispatch: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.sources = list(sources)
        self.store = store
        self.policy = policy
        self.max_dispatches = max_dispatches
        self.max_per_source = max_per_source
        self.persist = persist
        self.gate = DispatchGate(notifier, store, persist_each_dispatch=persist and persist_each_dispatch)
        self.clock = clock
        self.state = RunState.IDLE
        self._run_lock = threading.Lock()

    def run(self) -> RunReport:
        """One full pass. Raises RunInProgressError if another pass is running."""
        if not self._run_lock.acquire(blocking=False):
            raise RunInProgressError("a pipeline run is already in progress")
        try:
            return self._run()
        finally:
            self.state = RunState.IDLE
            self._run_lock.release()

    def _run(self) -> RunReport:
        report = RunReport(started_at=self.clock())
        budget = RunBudget(self.max_dispatches, max_per_source=self.max_per_source)

        # 1. Fetch — parallel across sources, wait for all to settle
        self.state = RunState.FETCHING
        results = self._fetch_all()

        # 2. Dedup, filter, dispatch — this thread is the only consumer
        self.state = RunState.DISPATCHING
        now = self.clock()
        for result in results:
            if result.error is not None:
                report.failed_sources[result.source] = result.error
            report.fetched += len(result.records)
            self._process_source(result, budget, now, report)

        report.budget_exhausted = budget.exhausted

        # 3. Persist
        self.state = RunState.PERSISTING
        if self.persist and report.dispatched:
            report.persisted = self.store.persist()

        report.finished_at = self.clock()
        log.info(
            "Run complete — fetched=%d, duplicates=%d, relevant=%d, dispatched=%d, failed_sources=%d",
            report.fetched, report.duplicates, report.relevant, report.dispatched,
            len(report.failed_sources),
        )
        return report

    def _fetch_all(self) -> list[FetchResult]:
        active = [s for s in self.sources if s.enabled]
        if not active:
            log.warning("No enabled sources")
            return []

        log.info("Fetching %d source(s) in parallel...", len(active))
        results: list[FetchResult] = []
        with ThreadPoolExecutor(max_workers=len(active)) as pool:
            futures = {pool.submit(_fetch_source, src): src for src in active}
            for future in as_completed(futures):
                results.append(future.result())
        return results

    def _process_source(self, result: FetchResult, budget: RunBudget, now: datetime, report: RunReport) -> None:
        for record in result.records:
            if budget.exhausted:
                log.info("Dispatch cap of %d reached, skipping remaining records", budget.max_dispatches)
                return
            if budget.source_exhausted(result.source):
                log.debug("[%s] per-source cap reached", result.source)
                return
            try:
                self._process_record(record, budget, now, report)
            except Exception as exc:
                report.record_errors += 1
                log.error("Error handling %s: %s", record.id, exc)

    def _process_record(self, record: JobRecord, budget: RunBudget, now: datetime, report: RunReport) -> None:
        if self.store.contains(record.id):
            report.duplicates += 1
            return

        verdict = evaluate(record, self.policy, now)
        if not verdict.relevant:
            report.rejected += 1
            log.debug("Rejected %s (%s %s)", record.id, verdict.reason, ", ".join(verdict.matched))
            return
        report.relevant += 1

        if self.gate.try_dispatch(record, budget):
            report.dispatched += 1
        else:
            report.failed_notifications += 1
