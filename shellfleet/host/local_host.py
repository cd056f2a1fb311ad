"""In-process session host: registry and lifecycle for locally spawned agents.

Each session runs an outer interactive command and, optionally, a protocol
client command. The interactive command always gets a terminal: a detached
tmux session when a tmux terminal is configured, a pseudo-terminal owned by
the host otherwise. The host notices output (a changed tmux screen, bytes on
the pty) and fans it out to output listeners; it never parses that output.
"""

from __future__ import annotations

import hashlib
import logging
import os
import pty
import subprocess
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Sequence

from shellfleet.config.schema import AgentConfig, TrafficConfig
from shellfleet.constants import DEFAULT_OUTPUT_POLL_INTERVAL_S
from shellfleet.core.commands import SessionCommandError
from shellfleet.core.models import (
    AgentMode,
    ProtocolClient,
    SessionSnapshot,
    ToolCall,
    TrafficEntry,
    TrafficView,
)
from shellfleet.core.naming import format_display_name
from shellfleet.host.processes import PsutilProcessHandle
from shellfleet.host.tmux import TmuxTerminal, tmux_session_name

logger = logging.getLogger(__name__)

OutputListener = Callable[[str], None]

_PUBLISHABLE_FIELDS = frozenset({"session_id", "mode_id", "available_modes", "tool_calls", "busy", "initialized"})
_REAP_TIMEOUT_S = 2.0
_PTY_READ_SIZE = 4096


class SessionHostError(SessionCommandError):
    """Session could not be created or addressed."""


@dataclass
class _HostedSession:
    key: str
    working_directory: str
    agent: AgentConfig | None
    exec_popen: subprocess.Popen[bytes] | None
    exec_handle: PsutilProcessHandle | None
    tmux_session: str | None = None
    control_popen: subprocess.Popen[bytes] | None = None
    control_handle: PsutilProcessHandle | None = None
    session_id: str | None = None
    mode_id: str | None = None
    available_modes: tuple[AgentMode, ...] = ()
    tool_calls: tuple[ToolCall, ...] = ()
    busy: bool = False
    initialized: bool = False
    traffic: deque[TrafficEntry] = field(default_factory=deque)

    def reap(self) -> None:
        """Collect exit status of finished children so they do not linger as zombies."""
        for popen in (self.exec_popen, self.control_popen):
            if popen is not None:
                popen.poll()

    def snapshot(self) -> SessionSnapshot:
        control = ProtocolClient(process=self.control_handle) if self.control_popen is not None else None
        return SessionSnapshot(
            id=self.key,
            display_name=self.key,
            working_directory=self.working_directory,
            exec_process=self.exec_handle,
            control=control,
            session_id=self.session_id,
            mode_id=self.mode_id,
            available_modes=self.available_modes,
            tool_calls=self.tool_calls,
            busy=self.busy,
            initialized=self.initialized,
        )


def _stop_popen(popen: subprocess.Popen[bytes]) -> None:
    """Terminate a child we own and wait for it, escalating to SIGKILL."""
    popen.terminate()
    try:
        popen.wait(timeout=_REAP_TIMEOUT_S)
    except subprocess.TimeoutExpired:
        logger.warning("pid %d ignored SIGTERM, killing it", popen.pid)
        popen.kill()
        popen.wait(timeout=_REAP_TIMEOUT_S)


class LocalSessionHost:
    """Registry and lifecycle collaborator backed by local processes."""

    def __init__(
        self,
        default_agent: AgentConfig | None = None,
        *,
        traffic: TrafficConfig | None = None,
        terminal: TmuxTerminal | None = None,
        output_poll_interval_s: float = DEFAULT_OUTPUT_POLL_INTERVAL_S,
        spawn: Callable[..., subprocess.Popen[bytes]] = subprocess.Popen,
    ) -> None:
        self.default_agent = default_agent
        traffic = traffic or TrafficConfig()
        self.traffic_logging = traffic.logging_enabled
        self.traffic_max_lines = traffic.max_lines
        self.terminal = terminal
        self.output_poll_interval_s = output_poll_interval_s
        self._spawn = spawn
        self._sessions: dict[str, _HostedSession] = {}
        self._lock = threading.RLock()
        self._output_listeners: list[OutputListener] = []
        self._screen_digests: dict[str, str] = {}
        self._poll_lock = threading.Lock()
        self._stopping = threading.Event()
        self._poll_thread: threading.Thread | None = None

    # --- Registry ---

    def list_session_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def resolve(self, session_key: str) -> SessionSnapshot | None:
        with self._lock:
            hosted = self._sessions.get(session_key)
            if hosted is None:
                return None
            hosted.reap()
            return hosted.snapshot()

    # --- Lifecycle ---

    def create(self, agent: AgentConfig | None = None) -> SessionSnapshot:
        agent = agent or self.default_agent
        if agent is None:
            raise SessionHostError("No agent configured; add one under 'agents' in shellfleet.yml")
        cwd = os.path.expanduser(agent.working_directory) if agent.working_directory else os.getcwd()

        with self._lock:
            key = format_display_name(agent.display_prefix, cwd, taken=self._sessions)
            hosted = _HostedSession(
                key=key,
                working_directory=cwd,
                agent=agent,
                exec_popen=None,
                exec_handle=None,
                available_modes=tuple(AgentMode(mode_id=m.mode_id, name=m.name) for m in agent.modes),
                mode_id=agent.default_mode,
                traffic=deque(maxlen=self.traffic_max_lines),
            )
            self._start_interactive(hosted, agent.command)
            if agent.client_command:
                try:
                    hosted.control_popen = self._start(agent.client_command, cwd)
                except SessionHostError:
                    self._stop_interactive(hosted)
                    raise
                hosted.control_handle = PsutilProcessHandle(hosted.control_popen.pid)
            self._sessions[key] = hosted

        logger.info("Started session %s (agent=%s, pid=%d)", key, agent.name, hosted.exec_handle.pid)
        if hosted.tmux_session is not None:
            self._ensure_output_polling()
        return hosted.snapshot()

    def _start_interactive(self, hosted: _HostedSession, command: Sequence[str]) -> None:
        if self.terminal is not None:
            name = tmux_session_name(hosted.key)
            pid = self.terminal.start(name, command, hosted.working_directory)
            if pid is None:
                raise SessionHostError(f"Failed to start {command[0]} in tmux session {name}")
            hosted.tmux_session = name
            hosted.exec_handle = PsutilProcessHandle(pid)
            return

        master_fd, slave_fd = pty.openpty()
        try:
            hosted.exec_popen = self._start(command, hosted.working_directory, terminal_fd=slave_fd)
        except SessionHostError:
            os.close(master_fd)
            raise
        finally:
            os.close(slave_fd)
        hosted.exec_handle = PsutilProcessHandle(hosted.exec_popen.pid)
        threading.Thread(
            target=self._pump_pty_output,
            args=(hosted.key, master_fd),
            name=f"pty-output-{hosted.exec_popen.pid}",
            daemon=True,
        ).start()

    def _start(self, command: Sequence[str], cwd: str, terminal_fd: int | None = None) -> subprocess.Popen[bytes]:
        stdio = terminal_fd if terminal_fd is not None else subprocess.DEVNULL
        try:
            return self._spawn(
                list(command),
                cwd=cwd,
                stdin=stdio,
                stdout=stdio,
                stderr=stdio,
                start_new_session=True,
            )
        except OSError as e:
            raise SessionHostError(f"Failed to start {command[0]}: {e}") from e

    def _stop_interactive(self, hosted: _HostedSession) -> None:
        if hosted.tmux_session is not None and self.terminal is not None:
            self.terminal.stop(hosted.tmux_session)
        elif hosted.exec_popen is not None:
            _stop_popen(hosted.exec_popen)

    def _hosted(self, session: SessionSnapshot) -> _HostedSession:
        hosted = self._sessions.get(session.id)
        if hosted is None:
            raise SessionHostError(f"Unknown session: {session.id}")
        return hosted

    def terminate(self, session: SessionSnapshot) -> None:
        with self._lock:
            hosted = self._hosted(session)
            for handle in (hosted.control_handle, hosted.exec_handle):
                if handle is not None:
                    handle.terminate()
        logger.info("Sent terminate to %s", session.id)

    def destroy(self, session: SessionSnapshot) -> None:
        with self._lock:
            hosted = self._sessions.pop(session.id, None)
        if hosted is None:
            return
        with self._poll_lock:
            self._screen_digests.pop(session.id, None)
        self._release(hosted)
        logger.info("Destroyed session %s", session.id)

    def _release(self, hosted: _HostedSession) -> None:
        for handle in (hosted.control_handle, hosted.exec_handle):
            if handle is not None:
                handle.terminate()
        if hosted.tmux_session is not None and self.terminal is not None:
            self.terminal.stop(hosted.tmux_session)
        hosted.reap()

    def set_mode(self, session: SessionSnapshot, mode_id: str) -> None:
        with self._lock:
            hosted = self._hosted(session)
            hosted.mode_id = mode_id
            self._log_traffic(hosted, "out", f"session/set_mode {mode_id}")
        logger.info("Set mode of %s to %s", session.id, mode_id)

    def cycle_mode(self, session: SessionSnapshot) -> None:
        with self._lock:
            hosted = self._hosted(session)
            modes = [mode.mode_id for mode in hosted.available_modes]
            if not modes:
                return
            try:
                next_mode = modes[(modes.index(hosted.mode_id or "") + 1) % len(modes)]
            except ValueError:
                next_mode = modes[0]
        self.set_mode(session, next_mode)

    def interrupt(self, session: SessionSnapshot) -> None:
        with self._lock:
            hosted = self._hosted(session)
            handle = hosted.control_handle or hosted.exec_handle
            if handle is not None:
                handle.interrupt()
            self._log_traffic(hosted, "out", "session/cancel")

    def open_traffic_view(self, session: SessionSnapshot) -> TrafficView:
        with self._lock:
            hosted = self._hosted(session)
            return TrafficView(
                session_id=hosted.key,
                display_name=hosted.key,
                logging_enabled=self.traffic_logging,
                entries=list(hosted.traffic),
            )

    def toggle_logging(self) -> bool:
        self.traffic_logging = not self.traffic_logging
        logger.info("Traffic logging %s", "enabled" if self.traffic_logging else "disabled")
        return self.traffic_logging

    # --- Integration surface ---

    def publish(self, session_key: str, **fields: object) -> None:
        """Update the flags a session publishes (session id, modes, tool calls, busy, initialized)."""
        unknown = set(fields) - _PUBLISHABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown session fields: {sorted(unknown)}")
        with self._lock:
            hosted = self._sessions.get(session_key)
            if hosted is None:
                raise SessionHostError(f"Unknown session: {session_key}")
            for name, value in fields.items():
                if name in ("available_modes", "tool_calls"):
                    value = tuple(value)  # type: ignore[call-overload]
                setattr(hosted, name, value)

    def record_traffic(self, session_key: str, direction: str, payload: str) -> None:
        """Append a protocol message to the session's traffic log when logging is on."""
        with self._lock:
            hosted = self._sessions.get(session_key)
            if hosted is not None:
                self._log_traffic(hosted, direction, payload)

    def _log_traffic(self, hosted: _HostedSession, direction: str, payload: str) -> None:
        if self.traffic_logging:
            hosted.traffic.append(TrafficEntry(timestamp=datetime.now(timezone.utc), direction=direction, payload=payload))

    # --- Output events ---

    def add_output_listener(self, listener: OutputListener) -> None:
        self._output_listeners.append(listener)

    def remove_output_listener(self, listener: OutputListener) -> None:
        if listener in self._output_listeners:
            self._output_listeners.remove(listener)

    def notify_output(self, session_key: str) -> None:
        """Fan out an output-observed event. May be called from any thread."""
        for listener in list(self._output_listeners):
            try:
                listener(session_key)
            except Exception:
                logger.exception("Output listener failed for %s", session_key)

    def _pump_pty_output(self, session_key: str, master_fd: int) -> None:
        """Drain a session's pty, raising an output event per read, until the child side closes."""
        try:
            while True:
                try:
                    data = os.read(master_fd, _PTY_READ_SIZE)
                except OSError:
                    # Linux reports EIO once every slave descriptor is closed.
                    break
                if not data:
                    break
                self.notify_output(session_key)
        finally:
            os.close(master_fd)
        logger.debug("Output stream of %s closed", session_key)

    def poll_terminal_output(self) -> list[str]:
        """Compare every tmux-hosted screen with the last capture; notify and return the changed keys."""
        if self.terminal is None:
            return []
        with self._lock:
            targets = [(h.key, h.tmux_session) for h in self._sessions.values() if h.tmux_session is not None]
        changed: list[str] = []
        with self._poll_lock:
            for key, name in targets:
                digest = hashlib.sha1(self.terminal.capture(name).encode("utf-8")).hexdigest()
                previous = self._screen_digests.get(key)
                self._screen_digests[key] = digest
                if previous is not None and previous != digest:
                    changed.append(key)
        for key in changed:
            self.notify_output(key)
        return changed

    def _ensure_output_polling(self) -> None:
        with self._lock:
            if self._poll_thread is not None:
                return
            self._poll_thread = threading.Thread(target=self._poll_loop, name="tmux-output-poller", daemon=True)
            self._poll_thread.start()

    def _poll_loop(self) -> None:
        while not self._stopping.wait(self.output_poll_interval_s):
            try:
                self.poll_terminal_output()
            except Exception:
                logger.exception("tmux output poll failed")

    def shutdown(self) -> None:
        """Stop output polling and terminate every hosted session."""
        self._stopping.set()
        with self._lock:
            sessions = list(self._sessions.values())
        for hosted in sessions:
            self._release(hosted)
