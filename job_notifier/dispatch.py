"""Format job records and send them under the per-run budget."""
from __future__ import annotations

import re
import threading

from job_notifier.log import get_logger
from job_notifier.models import JobRecord, RunBudget
from job_notifier.notifiers import Notifier
from job_notifier.seen_store import SeenStore

log = get_logger(__name__)

SOURCE_LABELS: dict[str, tuple[str, str]] = {
    "remoteok": ("\U0001f525", "RemoteOK"),
    "remotive": ("\U0001f4bc", "Remotive"),
    "wwr": ("\U0001f30d", "WWR"),
    "mock": ("\U0001f9ea", "Sample"),
}
_DEFAULT_LABEL = ("\U0001f4e2", "")

_MD_SPECIAL = re.compile(r"([_*`\[])")


def escape_markdown(text: str) -> str:
    return _MD_SPECIAL.sub(r"\\\1", text)


def format_record(record: JobRecord) -> str:
    emoji, label = SOURCE_LABELS.get(record.source, _DEFAULT_LABEL)
    label = label or record.source
    title = escape_markdown(record.title or "Untitled")
    company = escape_markdown(record.company)
    url = escape_markdown(record.url)
    return f"{emoji} *{label} Job*\n*{title}* at _{company}_\n{url}"


class DispatchGate:
    """Sends a record only while the budget allows, then marks it as seen.

    Budget check, send, budget increment and seen-set insert happen under
    one lock, so concurrent callers can neither overshoot the cap nor
    notify the same id twice.
    """

    def __init__(self, notifier: Notifier, store: SeenStore, persist_each_dispatch: bool = True) -> None:
        self.notifier = notifier
        self.store = store
        self.persist_each_dispatch = persist_each_dispatch
        self._lock = threading.Lock()

    def try_dispatch(self, record: JobRecord, budget: RunBudget) -> bool:
        with self._lock:
            if not budget.allows(record.source):
                return False
            if self.store.contains(record.id):
                return False

            try:
                ok, detail = self.notifier.send(format_record(record))
            except Exception as exc:
                log.error("Notifier raised for %s: %s", record.id, exc)
                return False
            if not ok:
                log.warning("Notification for %s not delivered: %s", record.id, detail)
                return False

            budget.consume(record.source)
            self.store.record(record.id)
            if self.persist_each_dispatch:
                self.store.persist()
            log.info("Notified: %s @ %s [%s]", record.title, record.company, record.id)
            return True
