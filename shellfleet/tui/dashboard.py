"""Sessions dashboard screen: live, recency-ordered session table."""

from __future__ import annotations

import logging
from typing import Sequence

from rich.text import Text
from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.coordinate import Coordinate
from textual.screen import Screen
from textual.widgets import DataTable, Footer, Static
from textual.widgets.data_table import CellDoesNotExist, RowDoesNotExist

from shellfleet.config.schema import AgentConfig, DashboardConfig
from shellfleet.core.activity import ActivityHistory
from shellfleet.core.commands import SessionCommandError, SessionCommands
from shellfleet.core.models import NotificationLevel
from shellfleet.core.protocols import DisplayHost, SessionLifecycle, SessionRegistry, WorkspaceProvider
from shellfleet.core.refresh import RefreshLoop
from shellfleet.core.rows import SortColumn, ViewRow
from shellfleet.tui.modals import ChoiceModal, ConfirmModal
from shellfleet.tui.theme import name_text, protocol_text, status_text
from shellfleet.tui.traffic import TrafficScreen

logger = logging.getLogger(__name__)

_SEVERITY = {
    NotificationLevel.INFO: "information",
    NotificationLevel.SUCCESS: "information",
    NotificationLevel.WARNING: "warning",
    NotificationLevel.ERROR: "error",
}

_SORT_CYCLE = (SortColumn.RECENCY, SortColumn.NAME, SortColumn.STATUS, SortColumn.MODE)

COLUMNS = (
    ("Session", "name"),
    ("Status", "status"),
    ("Protocol", "protocol"),
    ("Mode", "mode"),
    ("Activity", "activity"),
)


class DashboardScreen(Screen[None]):
    """Table of sessions refreshed every couple of seconds and on output."""

    DEFAULT_CSS = """
    #session-table {
        height: 1fr;
    }
    #status-line {
        height: 1;
        padding: 0 1;
        color: $text-muted;
    }
    """

    BINDINGS = [
        Binding("enter", "open_session", "Open", show=False),
        Binding("k", "kill_session", "Kill"),
        Binding("r", "restart_session", "Restart"),
        Binding("c", "create_session", "New"),
        Binding("D", "delete_killed", "Delete killed"),
        Binding("m", "set_mode", "Mode"),
        Binding("M", "cycle_mode", "Cycle mode", show=False),
        Binding("i", "interrupt_session", "Interrupt"),
        Binding("l", "toggle_logging", "Logging", show=False),
        Binding("t", "view_traffic", "Traffic"),
        Binding("s", "cycle_sort", "Sort", show=False),
        Binding("g", "refresh_now", "Refresh", show=False),
        Binding("q", "app.quit", "Quit"),
    ]

    def __init__(
        self,
        registry: SessionRegistry,
        lifecycle: SessionLifecycle,
        history: ActivityHistory,
        *,
        settings: DashboardConfig | None = None,
        agents: Sequence[AgentConfig] = (),
        workspaces: WorkspaceProvider | None = None,
        display: DisplayHost | None = None,
        **kwargs: object,
    ) -> None:
        super().__init__(**kwargs)
        self.registry = registry
        self.lifecycle = lifecycle
        self.history = history
        self.settings = settings or DashboardConfig()
        self.agents = list(agents)
        self.refresh_loop = RefreshLoop(
            registry,
            history,
            self._render_rows,
            self,
            interval=self.settings.refresh_interval_s,
            output_debounce=self.settings.output_refresh_debounce_s,
        )
        self.commands = SessionCommands(
            registry,
            lifecycle,
            self.refresh_loop,
            self._confirm,
            history=history,
            notify=self._notify,
            agents=self.agents,
            workspaces=workspaces,
            display=display,
            kill_refresh_delay=self.settings.kill_refresh_delay_s,
        )

    def compose(self) -> ComposeResult:
        yield DataTable(id="session-table", cursor_type="row", zebra_stripes=True)
        yield Static("", id="status-line")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#session-table", DataTable)
        for label, key in COLUMNS:
            table.add_column(label, key=key)
        table.focus()
        self.refresh_loop.start()

    def on_unmount(self) -> None:
        self.refresh_loop.stop()

    # --- Rendering ---

    def _render_rows(self, rows: list[ViewRow]) -> None:
        table = self.query_one("#session-table", DataTable)
        selected = self.selected_session_key()
        table.clear()
        for row in rows:
            table.add_row(
                name_text(row.display_name, row.status),
                status_text(row.status),
                protocol_text(row.protocol_status),
                Text(row.mode),
                Text(row.activity, justify="right"),
                key=row.session_key,
            )
        if selected is not None:
            try:
                table.move_cursor(row=table.get_row_index(selected))
            except RowDoesNotExist:
                pass  # Selected session is gone; cursor stays where clear() left it.
        self._update_status_line(rows)

    def _update_status_line(self, rows: list[ViewRow]) -> None:
        loop = self.refresh_loop
        direction = " (reversed)" if loop.sort_reverse else ""
        noun = "session" if len(rows) == 1 else "sessions"
        self.query_one("#status-line", Static).update(f"{len(rows)} {noun} · sort: {loop.sort_column.value}{direction}")

    def selected_session_key(self) -> str | None:
        table = self.query_one("#session-table", DataTable)
        if table.row_count == 0:
            return None
        try:
            cell_key = table.coordinate_to_cell_key(Coordinate(table.cursor_row, 0))
        except CellDoesNotExist:
            return None
        return cell_key.row_key.value

    # --- Collaborator callbacks ---

    async def _confirm(self, title: str, message: str) -> bool:
        return bool(await self.app.push_screen_wait(ConfirmModal(title, message)))

    def _notify(self, message: str, level: NotificationLevel) -> None:
        self.app.notify(message, severity=_SEVERITY[level])  # type: ignore[arg-type]

    # --- Actions ---

    def _require_selection(self) -> str | None:
        key = self.selected_session_key()
        if key is None:
            self._notify("No session selected", NotificationLevel.WARNING)
        return key

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        event.stop()
        self.action_open_session()

    def action_open_session(self) -> None:
        key = self._require_selection()
        if key is None:
            return
        try:
            self.commands.open(key, switch_workspace=self.settings.switch_workspace)
        except SessionCommandError as e:
            self._notify(str(e), NotificationLevel.ERROR)
            return
        self.refresh_loop.request_refresh()

    @work(exclusive=True, group="session-command")
    async def action_kill_session(self) -> None:
        key = self._require_selection()
        if key is None:
            return
        try:
            await self.commands.kill(key)
        except SessionCommandError as e:
            self._notify(str(e), NotificationLevel.ERROR)

    @work(exclusive=True, group="session-command")
    async def action_restart_session(self) -> None:
        key = self._require_selection()
        if key is None:
            return
        try:
            session = await self.commands.restart(key)
        except SessionCommandError as e:
            self._notify(f"Restart failed: {e}", NotificationLevel.ERROR)
            return
        if session is not None:
            self._notify(f"Restarted as {session.display_name}", NotificationLevel.SUCCESS)

    @work(exclusive=True, group="session-command")
    async def action_create_session(self) -> None:
        agent_name: str | None = None
        if len(self.agents) > 1:
            choices = [(agent.name, agent.display_prefix) for agent in self.agents]
            agent_name = await self.app.push_screen_wait(ChoiceModal("New Session", choices))
            if agent_name is None:
                return
        try:
            session = self.commands.create(agent_name)
        except SessionCommandError as e:
            self._notify(f"Create failed: {e}", NotificationLevel.ERROR)
            return
        self._notify(f"Started {session.display_name}", NotificationLevel.SUCCESS)

    @work(exclusive=True, group="session-command")
    async def action_delete_killed(self) -> None:
        try:
            await self.commands.delete_killed()
        except SessionCommandError as e:
            self._notify(str(e), NotificationLevel.ERROR)

    @work(exclusive=True, group="session-command")
    async def action_set_mode(self) -> None:
        key = self._require_selection()
        if key is None:
            return
        try:
            session = self.commands.resolve(key)
        except SessionCommandError as e:
            self._notify(str(e), NotificationLevel.ERROR)
            return
        if not session.available_modes:
            self._notify(f"{session.display_name} has no selectable modes", NotificationLevel.WARNING)
            return
        choices = [(mode.mode_id, mode.label) for mode in session.available_modes]
        mode_id = await self.app.push_screen_wait(ChoiceModal("Set Mode", choices, current=session.mode_id))
        if mode_id is None:
            return
        try:
            self.commands.set_mode(key, mode_id)
        except SessionCommandError as e:
            self._notify(str(e), NotificationLevel.ERROR)

    def action_cycle_mode(self) -> None:
        key = self._require_selection()
        if key is None:
            return
        try:
            self.commands.cycle_mode(key)
        except SessionCommandError as e:
            self._notify(str(e), NotificationLevel.ERROR)

    def action_interrupt_session(self) -> None:
        key = self._require_selection()
        if key is None:
            return
        try:
            self.commands.interrupt(key)
        except SessionCommandError as e:
            self._notify(str(e), NotificationLevel.ERROR)

    def action_toggle_logging(self) -> None:
        self.commands.toggle_logging()

    def action_view_traffic(self) -> None:
        key = self._require_selection()
        if key is None:
            return
        try:
            traffic = self.commands.view_traffic(key)
        except SessionCommandError as e:
            self._notify(str(e), NotificationLevel.ERROR)
            return
        self.app.push_screen(TrafficScreen(traffic))

    def action_cycle_sort(self) -> None:
        loop = self.refresh_loop
        index = _SORT_CYCLE.index(loop.sort_column)
        loop.set_sort(_SORT_CYCLE[(index + 1) % len(_SORT_CYCLE)])

    def action_refresh_now(self) -> None:
        self.refresh_loop.refresh()
