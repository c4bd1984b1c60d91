"""Common fetch/normalize machinery shared by every job source."""
from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable
from urllib.parse import urljoin

import requests
from dateutil import parser as date_parser

from job_notifier.log import get_logger
from job_notifier.models import FetchResult, JobRecord, UNKNOWN_COMPANY
from job_notifier.retry import call_with_retry

log = get_logger(__name__)

TRANSIENT_ERRORS = (requests.RequestException, OSError)
USER_AGENT = "Mozilla/5.0 (compatible; job-notifier/1.0)"


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    base_delay: float = 1.0
    timeout: float = 15.0
    max_delay: float | None = None

    @property
    def delay_cap(self) -> float:
        return self.max_delay if self.max_delay is not None else self.timeout


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_post_date(value: Any, default: datetime) -> datetime | None:
    """Normalize a source date to aware UTC.

    Missing values fall back to ``default``; values that cannot be parsed
    give None so the record fails the recency check.
    """
    if value is None or value == "":
        return default
    try:
        if isinstance(value, datetime):
            dt = value
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            dt = datetime.fromtimestamp(float(value), tz=timezone.utc)
        elif isinstance(value, time.struct_time):
            dt = datetime(*value[:6], tzinfo=timezone.utc)
        else:
            text = str(value).strip()
            if text.isdigit():
                dt = datetime.fromtimestamp(int(text), tz=timezone.utc)
            else:
                dt = date_parser.parse(text)
    except (ValueError, OverflowError, TypeError, OSError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def clean_tags(raw: Any) -> tuple[str, ...]:
    if not raw:
        return ()
    if isinstance(raw, str):
        raw = raw.split(",")
    return tuple(str(t).strip() for t in raw if str(t).strip())


class JobSource(ABC):
    """One remote listing provider.

    Subclasses implement ``_request`` (network, may raise transient errors)
    and ``_normalize`` (one native entry to a ``JobRecord`` or None).
    ``fetch`` never raises for transient failures; it reports them.
    """

    name: str = ""
    site_url: str = ""

    def __init__(
        self,
        retry_policy: RetryPolicy | None = None,
        enabled: bool = True,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.retry_policy = retry_policy or RetryPolicy()
        self.enabled = enabled
        self._sleep = sleep
        self._clock = clock

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(enabled={self.enabled})"

    @abstractmethod
    def _request(self) -> Any:
        """Perform one network round trip and return the decoded payload."""

    @abstractmethod
    def _entries(self, payload: Any) -> Iterable[Any]:
        pass

    @abstractmethod
    def _normalize(self, entry: Any, fetched_at: datetime) -> JobRecord | None:
        pass

    def _get(self, url: str, **kwargs: Any) -> requests.Response:
        headers = kwargs.pop("headers", {})
        headers.setdefault("User-Agent", USER_AGENT)
        r = requests.get(url, headers=headers, timeout=self.retry_policy.timeout, **kwargs)
        r.raise_for_status()
        return r

    def absolute_url(self, url: str) -> str:
        url = (url or "").strip()
        if not url:
            return ""
        return urljoin(self.site_url, url)

    def fetch(self) -> FetchResult:
        if not self.enabled:
            return FetchResult(self.name)

        policy = self.retry_policy
        try:
            payload = call_with_retry(
                self._request,
                max_attempts=policy.attempts,
                base_delay=policy.base_delay,
                max_delay=policy.delay_cap,
                retryable=TRANSIENT_ERRORS,
                sleep=self._sleep,
                label=f"[{self.name}] fetch",
            )
        except TRANSIENT_ERRORS as exc:
            log.warning("[%s] giving up after %d attempt(s): %s", self.name, policy.attempts, exc)
            return FetchResult(self.name, error=str(exc) or exc.__class__.__name__)

        fetched_at = self._clock()
        records: list[JobRecord] = []
        dropped = 0
        for entry in self._entries(payload):
            try:
                record = self._normalize(entry, fetched_at)
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                log.debug("[%s] malformed entry skipped: %s", self.name, exc)
                record = None
            if record is None:
                dropped += 1
                continue
            records.append(record)

        if dropped:
            log.debug("[%s] dropped %d malformed entr(ies)", self.name, dropped)
        log.info("[%s] returned %d jobs", self.name, len(records))
        return FetchResult(self.name, records)

    def _record(
        self,
        native_id: Any,
        *,
        title: Any,
        company: Any,
        url: Any,
        posted: Any,
        fetched_at: datetime,
        description: Any = "",
        tags: Any = None,
        location: Any = "",
    ) -> JobRecord | None:
        native = str(native_id).strip() if native_id is not None else ""
        link = self.absolute_url(str(url or ""))
        if not native or not link:
            return None
        return JobRecord(
            id=f"{self.name}-{native}",
            source=self.name,
            title=str(title or "").strip(),
            company=str(company or "").strip() or UNKNOWN_COMPANY,
            url=link,
            posted_at=parse_post_date(posted, fetched_at),
            description=str(description or ""),
            tags=clean_tags(tags),
            location=str(location or "").strip(),
        )
