"""RemoteOK — free JSON API for remote tech jobs (no API key required).

Docs: https://remoteok.com/api (first element of the array is a legal notice)
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from job_notifier.models import JobRecord
from job_notifier.sources.base import JobSource

API_URL = "https://remoteok.com/api"


class RemoteOKSource(JobSource):
    name = "remoteok"
    site_url = "https://remoteok.com/"

    def _request(self) -> Any:
        return self._get(API_URL, headers={"Accept": "application/json"}).json()

    def _entries(self, payload: Any) -> Iterable[Any]:
        if not isinstance(payload, list):
            return []
        # The first element is usually a legal notice, not a listing.
        return [hit for hit in payload if isinstance(hit, dict) and "legal" not in hit]

    def _normalize(self, hit: dict, fetched_at: datetime) -> JobRecord | None:
        return self._record(
            hit.get("id"),
            title=hit.get("position") or hit.get("title"),
            company=hit.get("company"),
            url=hit.get("url") or hit.get("apply_url"),
            posted=hit.get("date") or hit.get("epoch"),
            fetched_at=fetched_at,
            description=hit.get("description", ""),
            tags=hit.get("tags"),
            location=hit.get("location", ""),
        )
