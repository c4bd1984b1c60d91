"""Decide whether a job record is worth a notification."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable

from job_notifier.models import JobRecord

REGEX_PREFIX = "re:"


@dataclass(frozen=True)
class Pattern:
    """A keyword (case-insensitive substring) or a ``re:``-prefixed regex."""

    source: str
    regex: re.Pattern = field(compare=False, repr=False)

    @classmethod
    def compile(cls, raw: str) -> "Pattern":
        raw = str(raw).strip()
        if not raw:
            raise ValueError("empty keyword pattern")
        if raw.startswith(REGEX_PREFIX):
            body = raw[len(REGEX_PREFIX):].strip()
            try:
                compiled = re.compile(body, re.IGNORECASE)
            except re.error as exc:
                raise ValueError(f"invalid regex {body!r}: {exc}") from exc
        else:
            compiled = re.compile(re.escape(raw), re.IGNORECASE)
        return cls(source=raw, regex=compiled)

    def search(self, text: str) -> bool:
        return self.regex.search(text) is not None

    def strip(self, text: str) -> str:
        return self.regex.sub(" ", text)


def compile_patterns(raw: Iterable[str] | None) -> tuple[Pattern, ...]:
    return tuple(Pattern.compile(p) for p in (raw or []))


@dataclass(frozen=True)
class RelevancePolicy:
    max_age: timedelta
    required: tuple[Pattern, ...] = ()
    excluded: tuple[Pattern, ...] = ()
    preferred: tuple[tuple[Pattern, float], ...] = ()
    threshold: float = 1.0
    # Compound terms (e.g. "full-stack") that may carry an excluded word
    # while still describing a wanted role, plus the signals that prove it.
    dual_role: tuple[Pattern, ...] = ()
    counter_signals: tuple[Pattern, ...] = ()

    @classmethod
    def build(
        cls,
        *,
        max_age: timedelta,
        required: Iterable[str] | None = None,
        excluded: Iterable[str] | None = None,
        preferred: dict[str, float] | None = None,
        threshold: float = 1.0,
        dual_role: Iterable[str] | None = None,
        counter_signals: Iterable[str] | None = None,
    ) -> "RelevancePolicy":
        return cls(
            max_age=max_age,
            required=compile_patterns(required),
            excluded=compile_patterns(excluded),
            preferred=tuple(
                (Pattern.compile(p), float(w)) for p, w in (preferred or {}).items()
            ),
            threshold=float(threshold),
            dual_role=compile_patterns(dual_role),
            counter_signals=compile_patterns(counter_signals),
        )


@dataclass(frozen=True)
class Verdict:
    relevant: bool
    reason: str
    score: float = 0.0
    matched: tuple[str, ...] = ()


def is_recent(posted_at: datetime | None, max_age: timedelta, now: datetime) -> bool:
    if posted_at is None:
        return False
    try:
        return now - posted_at <= max_age
    except TypeError:
        # naive vs aware datetimes; treat as unparseable
        return False


def _excluded_hit(text: str, policy: RelevancePolicy) -> str | None:
    hits = [p for p in policy.excluded if p.search(text)]
    if not hits:
        return None

    compounds = [p for p in policy.dual_role if p.search(text)]
    signals = policy.counter_signals or policy.required
    if compounds and any(s.search(text) for s in signals):
        stripped = text
        for p in compounds:
            stripped = p.strip(stripped)
        hits = [p for p in hits if p.search(stripped)]
        if not hits:
            return None

    return hits[0].source


def evaluate(record: JobRecord, policy: RelevancePolicy, now: datetime) -> Verdict:
    """Apply recency, exclusion, preferred-score and required checks in order."""
    if not is_recent(record.posted_at, policy.max_age, now):
        return Verdict(False, "stale")

    text = record.searchable_text

    vetoed_by = _excluded_hit(text, policy)
    if vetoed_by is not None:
        return Verdict(False, "excluded", matched=(vetoed_by,))

    score = 0.0
    preferred_hits: list[str] = []
    for pattern, weight in policy.preferred:
        if pattern.search(text):
            score += weight
            preferred_hits.append(pattern.source)
    if preferred_hits and score >= policy.threshold:
        return Verdict(True, "preferred", score=score, matched=tuple(preferred_hits))

    required_hits = tuple(p.source for p in policy.required if p.search(text))
    if required_hits:
        return Verdict(True, "required", score=score, matched=required_hits)

    return Verdict(False, "no-match", score=score)


def is_relevant(record: JobRecord, policy: RelevancePolicy, now: datetime) -> bool:
    return evaluate(record, policy, now).relevant
