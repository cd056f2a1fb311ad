"""Dashboard application.

Wires the session host's collaborators into the dashboard screen and routes
output-observed events from host threads onto the app's event loop.
"""

from __future__ import annotations

import logging

from textual.app import App

from shellfleet.config.schema import GlobalConfig
from shellfleet.core.activity import ActivityHistory, activity_history
from shellfleet.core.protocols import (
    DisplayHost,
    OutputSource,
    SessionLifecycle,
    SessionRegistry,
    WorkspaceProvider,
)
from shellfleet.tui.dashboard import DashboardScreen
from shellfleet.tui.messages import SessionOutput

logger = logging.getLogger(__name__)


class DashboardApp(App[None]):
    """Live dashboard over a fleet of agent sessions."""

    TITLE = "shellfleet"

    def __init__(
        self,
        registry: SessionRegistry,
        lifecycle: SessionLifecycle,
        *,
        config: GlobalConfig | None = None,
        history: ActivityHistory = activity_history,
        workspaces: WorkspaceProvider | None = None,
        display: DisplayHost | None = None,
        output_source: OutputSource | None = None,
        **kwargs: object,
    ) -> None:
        super().__init__(**kwargs)
        self.config = config or GlobalConfig()
        self.history = history
        self.output_source = output_source
        self.dashboard = DashboardScreen(
            registry,
            lifecycle,
            history,
            settings=self.config.dashboard,
            agents=self.config.agents,
            workspaces=workspaces,
            display=display,
        )

    def on_mount(self) -> None:
        if self.output_source is not None:
            self.output_source.add_output_listener(self._on_host_output)
        self.push_screen(self.dashboard)

    def on_unmount(self) -> None:
        if self.output_source is not None:
            self.output_source.remove_output_listener(self._on_host_output)
        # Screens unmount on every shutdown path; stopping again is harmless.
        self.dashboard.refresh_loop.stop()

    def _on_host_output(self, session_key: str) -> None:
        # post_message is thread-safe; the handler runs on the app loop.
        self.post_message(SessionOutput(session_key))

    def on_session_output(self, event: SessionOutput) -> None:
        self.dashboard.refresh_loop.on_output(event.session_key)
