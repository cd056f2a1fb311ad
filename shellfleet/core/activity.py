"""Process-wide per-session activity history.

Records are keyed by session display identity and outlive any single session
object: a new session that reuses an identifier inherits the old history.
Records are created lazily and never deleted; entries for closed sessions are
simply absent from the current view.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable

from shellfleet.core.models import ActivityRecord

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ActivityHistory:
    """Keyed store of first-visited / last-activity timestamps.

    Writers are serialized by one lock. Each write replaces the frozen record
    for its key in a single assignment, so readers see either the old or the
    new record, never a mix of the two.
    """

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._records: dict[str, ActivityRecord] = {}
        self._lock = threading.Lock()

    def record_visit(self, session_key: str) -> ActivityRecord:
        """Note that the operator navigated to a session. Never overwrites `first_visited`."""
        with self._lock:
            record = self._records.get(session_key)
            if record is None:
                record = ActivityRecord(first_visited=self._clock())
                self._records[session_key] = record
            elif record.first_visited is None:
                record = ActivityRecord(first_visited=self._clock(), last_activity=record.last_activity)
                self._records[session_key] = record
            return record

    def record_activity(self, session_key: str) -> ActivityRecord:
        """Note observed output. Advances `last_activity` and backfills `first_visited`."""
        with self._lock:
            now = self._clock()
            record = self._records.get(session_key)
            if record is None:
                record = ActivityRecord(first_visited=now, last_activity=now)
            else:
                last = record.last_activity
                # Never move backwards, even if the wall clock does.
                if last is not None and now < last:
                    now = last
                record = ActivityRecord(first_visited=record.first_visited or now, last_activity=now)
            self._records[session_key] = record
            return record

    def last_activity(self, session_key: str) -> datetime | None:
        record = self._records.get(session_key)
        return record.last_activity if record else None

    def get(self, session_key: str) -> ActivityRecord | None:
        return self._records.get(session_key)

    def __contains__(self, session_key: object) -> bool:
        return session_key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        """Drop all records. Only used at subsystem init and in tests."""
        with self._lock:
            self._records.clear()


# Created empty at import (dashboard subsystem init); lives for the whole process.
activity_history = ActivityHistory()
