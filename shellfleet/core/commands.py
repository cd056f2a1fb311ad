"""Operator commands on dashboard sessions.

Every command first re-resolves its target (a stale reference aborts before
anything is delegated), confirms where destructive, hands the effect to the
lifecycle collaborator and then asks for a refresh.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Protocol, Sequence

from shellfleet.config.schema import AgentConfig
from shellfleet.constants import DEFAULT_KILL_REFRESH_DELAY_S
from shellfleet.core.activity import ActivityHistory
from shellfleet.core.models import NavigationPlan, NotificationLevel, SessionSnapshot, TrafficView
from shellfleet.core.naming import match_agent_config
from shellfleet.core.navigation import navigate_to_session
from shellfleet.core.protocols import (
    DisplayHost,
    NullDisplayHost,
    NullWorkspaceProvider,
    SessionLifecycle,
    SessionRegistry,
    WorkspaceProvider,
)
from shellfleet.core.status import SessionStatus, classify_session

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[str, str], Awaitable[bool]]
NotifyFn = Callable[[str, NotificationLevel], None]


class SessionCommandError(Exception):
    """A command could not be carried out."""


class StaleSessionError(SessionCommandError):
    """The selected session no longer exists."""

    def __init__(self, session_key: str) -> None:
        super().__init__(f"Session no longer exists: {session_key}")
        self.session_key = session_key


class RefreshRequester(Protocol):
    def request_refresh(self, delay: float = 0.0, *, coalesce: bool = True) -> None: ...


def _notify_log(message: str, level: NotificationLevel) -> None:
    logger.info("[%s] %s", level.value, message)


class SessionCommands:
    """Validate, confirm, delegate, refresh."""

    def __init__(
        self,
        registry: SessionRegistry,
        lifecycle: SessionLifecycle,
        refresher: RefreshRequester,
        confirm: ConfirmFn,
        *,
        history: ActivityHistory,
        notify: NotifyFn = _notify_log,
        agents: Sequence[AgentConfig] = (),
        workspaces: WorkspaceProvider | None = None,
        display: DisplayHost | None = None,
        kill_refresh_delay: float = DEFAULT_KILL_REFRESH_DELAY_S,
    ) -> None:
        self.registry = registry
        self.lifecycle = lifecycle
        self.refresher = refresher
        self._confirm = confirm
        self.history = history
        self._notify = notify
        self.agents = list(agents)
        self.workspaces = workspaces or NullWorkspaceProvider()
        self.display = display or NullDisplayHost()
        self.kill_refresh_delay = kill_refresh_delay

    def resolve(self, session_key: str) -> SessionSnapshot:
        """Return the live session or raise StaleSessionError."""
        session = self.registry.resolve(session_key)
        if session is None:
            logger.warning("Command on stale session reference %s", session_key)
            raise StaleSessionError(session_key)
        return session

    def _refresh(self) -> None:
        self.refresher.request_refresh(0.0)

    def open(self, session_key: str, *, switch_workspace: bool = True) -> NavigationPlan:
        session = self.resolve(session_key)
        return navigate_to_session(
            session,
            workspaces=self.workspaces,
            display=self.display,
            history=self.history,
            switch_workspace=switch_workspace,
        )

    async def kill(self, session_key: str) -> bool:
        session = self.resolve(session_key)
        try:
            if not await self._confirm("Kill Session", f"Kill {session.display_name}?"):
                return False
            logger.info("Killing session %s", session.id)
            self.lifecycle.terminate(session)
            return True
        finally:
            # Process death is reported asynchronously; give it a moment before re-classifying.
            self.refresher.request_refresh(self.kill_refresh_delay, coalesce=False)

    async def restart(self, session_key: str) -> SessionSnapshot | None:
        session = self.resolve(session_key)
        try:
            if not await self._confirm("Restart Session", f"Restart {session.display_name}?"):
                return None
            agent = match_agent_config(session.display_name, self.agents)
            if agent is None:
                logger.info("No agent config matches %r, restarting with default", session.display_name)
            else:
                logger.info("Restarting %s as agent %s", session.id, agent.name)
            self.lifecycle.destroy(session)
            return self.lifecycle.create(agent)
        finally:
            self._refresh()

    def create(self, agent_name: str | None = None) -> SessionSnapshot:
        agent: AgentConfig | None = None
        if agent_name is not None:
            agent = next((a for a in self.agents if a.name == agent_name), None)
            if agent is None:
                raise SessionCommandError(f"Unknown agent: {agent_name}")
        try:
            session = self.lifecycle.create(agent)
            logger.info("Created session %s", session.id)
            return session
        finally:
            self._refresh()

    def killed_sessions(self) -> list[SessionSnapshot]:
        killed: list[SessionSnapshot] = []
        for key in self.registry.list_session_ids():
            session = self.registry.resolve(key)
            if session is not None and classify_session(session) is SessionStatus.KILLED:
                killed.append(session)
        return killed

    async def delete_killed(self) -> int:
        """Remove every currently killed session after one confirmation."""
        killed = self.killed_sessions()
        if not killed:
            self._notify("No killed sessions", NotificationLevel.INFO)
            return 0
        noun = "session" if len(killed) == 1 else "sessions"
        try:
            if not await self._confirm("Delete Killed", f"Delete {len(killed)} killed {noun}?"):
                return 0
            for session in killed:
                self.lifecycle.destroy(session)
            logger.info("Deleted %d killed sessions", len(killed))
            self._notify(f"Deleted {len(killed)} killed {noun}", NotificationLevel.SUCCESS)
            return len(killed)
        finally:
            self._refresh()

    def set_mode(self, session_key: str, mode_id: str) -> bool:
        session = self.resolve(session_key)
        try:
            if not session.available_modes:
                self._notify(f"{session.display_name} has no selectable modes", NotificationLevel.WARNING)
                return False
            if mode_id not in {mode.mode_id for mode in session.available_modes}:
                raise SessionCommandError(f"Unknown mode for {session.display_name}: {mode_id}")
            self.lifecycle.set_mode(session, mode_id)
            return True
        finally:
            self._refresh()

    def cycle_mode(self, session_key: str) -> bool:
        session = self.resolve(session_key)
        try:
            if not session.available_modes:
                self._notify(f"{session.display_name} has no selectable modes", NotificationLevel.WARNING)
                return False
            self.lifecycle.cycle_mode(session)
            return True
        finally:
            self._refresh()

    def interrupt(self, session_key: str) -> None:
        session = self.resolve(session_key)
        try:
            logger.info("Interrupting session %s", session.id)
            self.lifecycle.interrupt(session)
        finally:
            self._refresh()

    def toggle_logging(self) -> bool:
        try:
            enabled = self.lifecycle.toggle_logging()
            self._notify(f"Traffic logging {'enabled' if enabled else 'disabled'}", NotificationLevel.INFO)
            return enabled
        finally:
            self._refresh()

    def view_traffic(self, session_key: str) -> TrafficView:
        session = self.resolve(session_key)
        try:
            return self.lifecycle.open_traffic_view(session)
        finally:
            self._refresh()
