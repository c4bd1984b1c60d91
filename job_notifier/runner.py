"""
Poll job sources and send notifications for new relevant listings.

Usage:
    job-notifier                      # run every 30 minutes (config: schedule)
    job-notifier --once               # single pass, e.g. from cron
    job-notifier --once --dry-run     # log messages instead of sending them
    job-notifier --source remotive    # restrict to one source (repeatable)
"""
from __future__ import annotations

import argparse
import dataclasses
import sys

from job_notifier.config import ConfigError, Settings, load_settings
from job_notifier.log import get_logger
from job_notifier.models import RunReport
from job_notifier.notifiers import LogNotifier, build_notifier
from job_notifier.pipeline import Pipeline, RunInProgressError
from job_notifier.scheduler import run_forever
from job_notifier.seen_store import SeenStore
from job_notifier.sources import SOURCE_CLASSES, get_sources

log = get_logger(__name__)


def build_pipeline(settings: Settings, *, dry_run: bool = False) -> Pipeline:
    store = SeenStore(settings.seen_path)
    store.load()
    notifier = LogNotifier() if dry_run else build_notifier(settings)
    return Pipeline(
        get_sources(settings.sources, settings.retry),
        store,
        notifier,
        settings.policy,
        max_dispatches=settings.max_dispatches_per_run,
        max_per_source=settings.max_dispatches_per_source,
        persist=not dry_run,
        persist_each_dispatch=settings.persist_each_dispatch,
    )


def _log_report(report: RunReport) -> None:
    log.info("  Jobs fetched: %d", report.fetched)
    log.info("  Already notified: %d", report.duplicates)
    log.info("  Relevant: %d", report.relevant)
    log.info("  Dispatched: %d", report.dispatched)
    for name, error in report.failed_sources.items():
        log.warning("  Source %s failed: %s", name, error)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Remote job notifier")
    parser.add_argument("--once", action="store_true", help="run a single pass and exit")
    parser.add_argument("--dry-run", action="store_true", help="log notifications, do not send or persist")
    parser.add_argument(
        "--source", action="append", choices=sorted(SOURCE_CLASSES),
        help="only fetch from this source (repeatable)",
    )
    parser.add_argument("--config", help="path to notifier.yaml")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        settings = load_settings(args.config)
        if args.source:
            settings = dataclasses.replace(settings, sources=frozenset(args.source))
        pipeline = build_pipeline(settings, dry_run=args.dry_run)
    except ConfigError as exc:
        log.error("Configuration error: %s", exc)
        return 2

    def run_once() -> None:
        try:
            _log_report(pipeline.run())
        except RunInProgressError:
            log.warning("Previous run still in progress, skipping this tick")

    if args.once:
        run_once()
        return 0

    log.info("Scheduler: run every %g minutes", settings.interval_minutes)
    try:
        run_forever(
            run_once,
            interval_seconds=settings.interval_minutes * 60,
            initial_delay_seconds=settings.initial_delay_seconds,
        )
    except KeyboardInterrupt:
        log.info("Stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
