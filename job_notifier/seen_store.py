"""Persist the ids of already-notified jobs (JSON list) with file locking."""
from __future__ import annotations

import fcntl
import json
import os
import tempfile
from pathlib import Path
from typing import Iterable

from job_notifier.log import get_logger

log = get_logger(__name__)


def _lock(f, exclusive: bool = True) -> None:
    """Advisory file lock (Unix fcntl)."""
    try:
        op = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        fcntl.flock(f.fileno(), op)
    except (OSError, AttributeError):
        pass


def _unlock(f) -> None:
    try:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
    except (OSError, AttributeError):
        pass


class SeenStore:
    """Set of dispatched job ids, loaded once and written back in full.

    Grows monotonically; nothing is ever evicted.
    """

    def __init__(self, path: Path, ids: Iterable[str] = ()) -> None:
        self.path = Path(path)
        self._ids: set[str] = set(ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._ids

    @property
    def ids(self) -> frozenset[str]:
        return frozenset(self._ids)

    def load(self) -> frozenset[str]:
        """Replace the in-memory set with what is on disk.

        A missing file is an empty set. An unreadable or malformed file is
        logged and also treated as empty so the run can go on.
        """
        if not self.path.exists():
            log.info("No seen-jobs file at %s, starting empty", self.path)
            self._ids = set()
            return self.ids
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                _lock(f, exclusive=False)
                try:
                    data = json.load(f)
                finally:
                    _unlock(f)
        except (OSError, ValueError) as exc:
            log.error("Error reading seen-jobs file %s: %s", self.path, exc)
            self._ids = set()
            return self.ids

        if not isinstance(data, list) or not all(isinstance(i, str) for i in data):
            log.error("Seen-jobs file %s is not a list of ids, ignoring it", self.path)
            self._ids = set()
            return self.ids

        self._ids = set(data)
        log.info("Loaded %d seen job id(s) from %s", len(self._ids), self.path.name)
        return self.ids

    def contains(self, job_id: str) -> bool:
        return job_id in self._ids

    def record(self, job_id: str) -> bool:
        """Add ``job_id``; returns False if it was already present."""
        if job_id in self._ids:
            return False
        self._ids.add(job_id)
        return True

    def persist(self) -> bool:
        """Overwrite the file with the full set. Failures are logged, not raised."""
        payload = json.dumps(sorted(self._ids), indent=2, ensure_ascii=False)
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                _lock(f)
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
                _unlock(f)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            log.error("Error saving seen-jobs file %s: %s", self.path, exc)
            if tmp_name and os.path.exists(tmp_name):
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
            return False
        log.debug("Saved %d seen job id(s) to %s", len(self._ids), self.path.name)
        return True
