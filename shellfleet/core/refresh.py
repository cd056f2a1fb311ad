"""Refresh loop that rebuilds the dashboard view model.

Two trigger sources feed one rebuild routine: a periodic timer and
per-session output events. Both run on the host's event loop thread.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Protocol

from shellfleet.constants import DEFAULT_OUTPUT_REFRESH_DEBOUNCE_S, DEFAULT_REFRESH_INTERVAL_S
from shellfleet.core.activity import ActivityHistory
from shellfleet.core.protocols import SessionRegistry
from shellfleet.core.rows import SortColumn, ViewRow, build_rows

logger = logging.getLogger(__name__)

RowSink = Callable[[list[ViewRow]], None]


class TimerHandle(Protocol):
    def stop(self) -> None: ...


class Scheduler(Protocol):
    """Timer factory. Textual's App and Widget satisfy this as-is."""

    def set_interval(self, interval: float, callback: Callable[[], object]) -> TimerHandle: ...

    def set_timer(self, delay: float, callback: Callable[[], object]) -> TimerHandle: ...


class RefreshLoop:
    """Periodic and event-driven rebuild of display rows.

    The rebuild is not reentrant: a refresh requested while one is running
    is folded into a single follow-up pass instead of nesting.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        history: ActivityHistory,
        sink: RowSink,
        scheduler: Scheduler,
        *,
        interval: float = DEFAULT_REFRESH_INTERVAL_S,
        output_debounce: float = DEFAULT_OUTPUT_REFRESH_DEBOUNCE_S,
    ) -> None:
        self.registry = registry
        self.history = history
        self._sink = sink
        self._scheduler = scheduler
        self.interval = interval
        self.output_debounce = output_debounce
        self.sort_column = SortColumn.RECENCY
        self.sort_reverse = False
        self._interval_timer: TimerHandle | None = None
        self._pending: dict[int, tuple[float, TimerHandle]] = {}
        self._next_pending_id = 0
        self._refreshing = False
        self._rerun = False
        self._rows: list[ViewRow] = []

    @property
    def running(self) -> bool:
        return self._interval_timer is not None

    @property
    def rows(self) -> list[ViewRow]:
        return list(self._rows)

    def start(self) -> None:
        """Start the periodic timer and populate rows immediately."""
        if self._interval_timer is not None:
            return
        self._interval_timer = self._scheduler.set_interval(self.interval, self.refresh)
        logger.debug("Refresh loop started (interval=%.2fs)", self.interval)
        self.refresh()

    def stop(self) -> None:
        """Cancel the periodic timer and any pending one-shot refreshes. Idempotent."""
        timer, self._interval_timer = self._interval_timer, None
        if timer is not None:
            timer.stop()
        pending, self._pending = self._pending, {}
        for _, handle in pending.values():
            handle.stop()
        if timer is not None:
            logger.debug("Refresh loop stopped")

    def refresh(self) -> list[ViewRow]:
        """Rebuild rows from the registry and push them to the sink."""
        if self._refreshing:
            self._rerun = True
            return self.rows
        self._refreshing = True
        try:
            while True:
                self._rerun = False
                rows = build_rows(
                    self.registry.list_session_ids(),
                    self.registry,
                    self.history,
                    column=self.sort_column,
                    reverse=self.sort_reverse,
                )
                self._rows = rows
                self._sink(rows)
                if not self._rerun:
                    break
        finally:
            self._refreshing = False
        logger.debug("Refreshed %d rows", len(self._rows))
        return self.rows

    def request_refresh(self, delay: float = 0.0, *, coalesce: bool = True) -> None:
        """Schedule a one-shot refresh.

        With `coalesce`, the request is dropped when a pending refresh is already
        due no later than this one. Without it, a refresh always runs after `delay`.
        """
        if not self.running:
            return
        due = time.monotonic() + delay
        if coalesce and any(pending_due <= due for pending_due, _ in self._pending.values()):
            return
        pending_id = self._next_pending_id
        self._next_pending_id += 1

        def fire() -> None:
            self._pending.pop(pending_id, None)
            self.refresh()

        self._pending[pending_id] = (due, self._scheduler.set_timer(delay, fire))

    def on_output(self, session_key: str) -> None:
        """Record observed output for a session and refresh soon."""
        self.history.record_activity(session_key)
        self.request_refresh(self.output_debounce)

    def set_sort(self, column: SortColumn, reverse: bool = False) -> None:
        self.sort_column = column
        self.sort_reverse = reverse
        self.refresh()
