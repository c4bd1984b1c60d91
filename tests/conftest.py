import os
from datetime import datetime, timedelta, timezone

import pytest

os.environ.setdefault("NOTIFIER_LOG_FILE", "0")

from job_notifier.models import FetchResult, JobRecord
from job_notifier.notifiers import Notifier
from job_notifier.relevance import RelevancePolicy
from job_notifier.seen_store import SeenStore

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def make_record(
    native_id="1",
    source="src",
    title="Angular frontend dev",
    company="Acme",
    age=timedelta(minutes=30),
    **kwargs,
) -> JobRecord:
    posted_at = kwargs.pop("posted_at", NOW - age)
    return JobRecord(
        id=f"{source}-{native_id}",
        source=source,
        title=title,
        company=company,
        url=f"https://jobs.example.com/{source}/{native_id}",
        posted_at=posted_at,
        **kwargs,
    )


class FakeSource:
    """Stands in for a JobSource: fixed records, an error, or an exception."""

    def __init__(self, name, records=(), *, error=None, raises=None, enabled=True):
        self.name = name
        self.records = list(records)
        self.error = error
        self.raises = raises
        self.enabled = enabled
        self.calls = 0

    def fetch(self) -> FetchResult:
        self.calls += 1
        if self.raises is not None:
            raise self.raises
        if self.error is not None:
            return FetchResult(self.name, error=self.error)
        return FetchResult(self.name, list(self.records))


class RecordingNotifier(Notifier):
    def __init__(self, fail_on=(), raise_on=()):
        self.sent: list[str] = []
        self.fail_on = set(fail_on)
        self.raise_on = set(raise_on)

    def send(self, text):
        for marker in self.raise_on:
            if marker in text:
                raise RuntimeError("notifier exploded")
        for marker in self.fail_on:
            if marker in text:
                return False, "rejected"
        self.sent.append(text)
        return True, "sent"


@pytest.fixture
def policy():
    return RelevancePolicy.build(
        max_age=timedelta(minutes=90),
        required=["angular", "typescript"],
        excluded=["react"],
    )


@pytest.fixture
def store(tmp_path):
    return SeenStore(tmp_path / "seen.json")


@pytest.fixture
def notifier():
    return RecordingNotifier()
