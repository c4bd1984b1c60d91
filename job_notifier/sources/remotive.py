"""Remotive — free API for remote tech jobs (no API key required).

Docs: https://remotive.com/api/remote-jobs
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from job_notifier.models import JobRecord
from job_notifier.sources.base import JobSource

API_URL = "https://remotive.com/api/remote-jobs"


class RemotiveSource(JobSource):
    name = "remotive"
    site_url = "https://remotive.com/"

    def _request(self) -> Any:
        return self._get(API_URL).json()

    def _entries(self, payload: Any) -> Iterable[Any]:
        if not isinstance(payload, dict):
            return []
        return [hit for hit in payload.get("jobs") or [] if isinstance(hit, dict)]

    def _normalize(self, hit: dict, fetched_at: datetime) -> JobRecord | None:
        return self._record(
            hit.get("id"),
            title=hit.get("title"),
            company=hit.get("company_name"),
            url=hit.get("url"),
            posted=hit.get("publication_date"),
            fetched_at=fetched_at,
            description=hit.get("description", ""),
            tags=hit.get("tags"),
            location=hit.get("candidate_required_location", ""),
        )
