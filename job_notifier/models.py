"""Data models for job records and pipeline runs."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime

UNKNOWN_COMPANY = "unknown"


@dataclass(frozen=True)
class JobRecord:
    id: str
    source: str
    title: str
    company: str
    url: str
    posted_at: datetime | None
    description: str = ""
    tags: tuple[str, ...] = ()
    location: str = ""

    @property
    def searchable_text(self) -> str:
        """Everything the relevance filter looks at, in one string."""
        parts = [self.title, self.company, " ".join(self.tags), self.description, self.location]
        return "\n".join(p for p in parts if p)


@dataclass
class FetchResult:
    source: str
    records: list[JobRecord] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RunBudget:
    """Per-run dispatch counter. Only ever incremented."""

    max_dispatches: int
    max_per_source: int | None = None
    dispatched: int = 0
    per_source: dict[str, int] = field(default_factory=dict)

    @property
    def exhausted(self) -> bool:
        return self.dispatched >= self.max_dispatches

    def source_exhausted(self, source: str) -> bool:
        if self.max_per_source is None:
            return False
        return self.per_source.get(source, 0) >= self.max_per_source

    def allows(self, source: str) -> bool:
        return not self.exhausted and not self.source_exhausted(source)

    def consume(self, source: str) -> None:
        self.dispatched += 1
        self.per_source[source] = self.per_source.get(source, 0) + 1


@dataclass
class RunReport:
    started_at: datetime
    finished_at: datetime | None = None
    fetched: int = 0
    duplicates: int = 0
    relevant: int = 0
    rejected: int = 0
    dispatched: int = 0
    failed_notifications: int = 0
    record_errors: int = 0
    failed_sources: dict[str, str] = field(default_factory=dict)
    budget_exhausted: bool = False
    persisted: bool | None = None

    def as_dict(self) -> dict:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        return data
