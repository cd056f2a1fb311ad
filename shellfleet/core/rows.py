"""Dashboard view model: one display row per live session, ordered by recency."""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable

from shellfleet.constants import MISSING_VALUE
from shellfleet.core.activity import ActivityHistory
from shellfleet.core.dates import format_relative_time
from shellfleet.core.protocols import SessionRegistry
from shellfleet.core.status import ProtocolStatus, SessionStatus, classify_session, protocol_status

logger = logging.getLogger(__name__)


class SortColumn(str, Enum):
    """Columns the table can be sorted on. Recency is always the tiebreak."""

    RECENCY = "recency"
    NAME = "name"
    STATUS = "status"
    MODE = "mode"


@dataclass(frozen=True)
class ViewRow:
    """Ephemeral display row, rebuilt wholesale on every refresh."""

    session_key: str
    display_name: str
    status: SessionStatus
    protocol_status: ProtocolStatus
    mode: str
    activity: str
    sort_timestamp: datetime | None


def compare_recency(a: ViewRow, b: ViewRow) -> int:
    """Most recent first; rows without a timestamp last, in input order."""
    a_ts = a.sort_timestamp
    b_ts = b.sort_timestamp
    if a_ts is None and b_ts is None:
        return 0
    if a_ts is None:
        return 1
    if b_ts is None:
        return -1
    if a_ts > b_ts:
        return -1
    if a_ts < b_ts:
        return 1
    return 0


_recency_key = functools.cmp_to_key(compare_recency)

_COLUMN_KEYS: dict[SortColumn, Callable[[ViewRow], object]] = {
    SortColumn.NAME: lambda row: row.display_name.lower(),
    SortColumn.STATUS: lambda row: row.status.value,
    SortColumn.MODE: lambda row: row.mode.lower(),
}


def sort_rows(rows: Iterable[ViewRow], column: SortColumn = SortColumn.RECENCY, reverse: bool = False) -> list[ViewRow]:
    """Sort rows by recency, then (stably) by an optional secondary column.

    Python's sort is stable, so sorting by recency first and by the column
    second leaves recency as the tiebreak within equal column values.
    """
    ordered = sorted(rows, key=_recency_key)
    if column is SortColumn.RECENCY:
        if not reverse:
            return ordered
        # Rows without a timestamp stay last and keep their input order.
        timed = [row for row in ordered if row.sort_timestamp is not None]
        untimed = [row for row in ordered if row.sort_timestamp is None]
        return timed[::-1] + untimed
    return sorted(ordered, key=_COLUMN_KEYS[column], reverse=reverse)


def build_row(session_key: str, registry: SessionRegistry, history: ActivityHistory, now: datetime | None = None) -> ViewRow | None:
    """Build the row for one session, or None when the session no longer resolves."""
    session = registry.resolve(session_key)
    if session is None:
        logger.debug("Dropping stale session reference %s from view", session_key)
        return None
    status = classify_session(session)
    last_activity = history.last_activity(session.id)
    return ViewRow(
        session_key=session.id,
        display_name=session.display_name,
        status=status,
        protocol_status=protocol_status(session, status),
        mode=session.mode_label() or MISSING_VALUE,
        activity=format_relative_time(last_activity, now),
        sort_timestamp=last_activity,
    )


def build_rows(
    session_keys: Iterable[str],
    registry: SessionRegistry,
    history: ActivityHistory,
    *,
    column: SortColumn = SortColumn.RECENCY,
    reverse: bool = False,
    now: datetime | None = None,
) -> list[ViewRow]:
    """Assemble ordered display rows for the given sessions."""
    rows = [row for key in session_keys if (row := build_row(key, registry, history, now)) is not None]
    return sort_rows(rows, column, reverse)
