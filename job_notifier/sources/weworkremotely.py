"""We Work Remotely — public RSS feed of programming jobs."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

import feedparser

from job_notifier.log import get_logger
from job_notifier.models import JobRecord
from job_notifier.sources.base import JobSource

log = get_logger(__name__)

FEED_URL = "https://weworkremotely.com/categories/remote-programming-jobs.rss"


def split_title(raw: str) -> tuple[str, str]:
    """WWR titles read "Company: Role". Returns (company, role)."""
    raw = (raw or "").strip()
    company, sep, role = raw.partition(": ")
    if not sep:
        return "", raw
    return company.strip(), role.strip()


class WeWorkRemotelySource(JobSource):
    name = "wwr"
    site_url = "https://weworkremotely.com/"

    def _request(self) -> Any:
        r = self._get(FEED_URL, headers={"Accept": "application/rss+xml, application/xml"})
        feed = feedparser.parse(r.content)
        if feed.bozo and not feed.entries:
            # Unparseable body on a 2xx response; worth another attempt.
            raise OSError(f"unparseable feed: {feed.get('bozo_exception')}")
        return feed

    def _entries(self, feed: Any) -> Iterable[Any]:
        return list(feed.entries)

    def _normalize(self, item: Any, fetched_at: datetime) -> JobRecord | None:
        link = item.get("link", "")
        company, title = split_title(item.get("title", ""))
        tags = [t.get("term", "") for t in item.get("tags", []) if isinstance(t, dict)]
        return self._record(
            link,
            title=title,
            company=company,
            url=link,
            posted=item.get("published_parsed") or item.get("published"),
            fetched_at=fetched_at,
            description=item.get("summary", ""),
            tags=tags,
            location=item.get("region", ""),
        )
