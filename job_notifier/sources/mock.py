"""Offline sample source for dry runs and local testing."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Iterable

from job_notifier.log import get_logger
from job_notifier.models import JobRecord
from job_notifier.sources.base import JobSource

log = get_logger(__name__)

_SAMPLES: list[dict] = [
    {
        "id": "1",
        "title": "Senior Angular Developer",
        "company": "TechCorp",
        "tags": ["angular", "typescript", "rxjs"],
        "location": "Remote (UAE)",
        "age_minutes": 20,
    },
    {
        "id": "2",
        "title": "Frontend Engineer",
        "company": "CloudScale SaaS",
        "tags": ["frontend", "typescript"],
        "location": "Remote",
        "age_minutes": 45,
    },
    {
        "id": "3",
        "title": "Java Backend Engineer",
        "company": "Enterprise Platform Inc",
        "tags": ["java", "spring"],
        "location": "Berlin",
        "age_minutes": 10,
    },
]


class MockSource(JobSource):
    name = "mock"
    site_url = "https://example.com/"

    def _request(self) -> Any:
        log.info("MockSource generating sample jobs")
        return _SAMPLES

    def _entries(self, payload: Any) -> Iterable[Any]:
        return payload

    def _normalize(self, sample: dict, fetched_at: datetime) -> JobRecord | None:
        return self._record(
            sample["id"],
            title=sample["title"],
            company=sample["company"],
            url=f"/job/{sample['id']}",
            posted=fetched_at - timedelta(minutes=sample["age_minutes"]),
            fetched_at=fetched_at,
            tags=sample["tags"],
            location=sample["location"],
        )
