"""Run the pipeline every N minutes, one pass at a time."""
from __future__ import annotations

import time
from typing import Any, Callable

from job_notifier.log import get_logger

log = get_logger(__name__)


def run_forever(
    run_once: Callable[[], Any],
    *,
    interval_seconds: float,
    initial_delay_seconds: float = 60.0,
    sleep: Callable[[float], None] = time.sleep,
    monotonic: Callable[[], float] = time.monotonic,
    max_runs: int | None = None,
) -> int:
    """Call ``run_once`` on a fixed interval until ``max_runs`` (if set).

    Passes are strictly sequential: the next one starts only after the
    previous has returned, so a slow pass delays the schedule instead of
    overlapping it. Returns the number of passes made.
    """
    if initial_delay_seconds > 0:
        log.info("Initial startup delay of %.0fs to prevent flood...", initial_delay_seconds)
        sleep(initial_delay_seconds)

    runs = 0
    while max_runs is None or runs < max_runs:
        started = monotonic()
        log.info("Checking jobs...")
        try:
            run_once()
        except Exception as exc:
            log.error("Run failed: %s", exc)
        runs += 1
        if max_runs is not None and runs >= max_runs:
            break

        elapsed = monotonic() - started
        wait_secs = max(interval_seconds - elapsed, 0.0)
        log.info("Next run in %.1f minutes", wait_secs / 60)
        sleep(wait_secs)
    return runs
