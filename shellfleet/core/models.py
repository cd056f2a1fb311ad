"""Typed models for observed agent sessions.

A session pairs an outer interactive process with an inner protocol client
process. The dashboard only reads these snapshots; it never drives process I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol, runtime_checkable


class ProcessState(str, Enum):
    """Process liveness states as reported by a process handle."""

    RUNNING = "running"
    OPEN = "open"
    LISTENING = "listening"
    CONNECTING = "connecting"
    STOPPED = "stopped"
    EXITED = "exited"
    SIGNALED = "signaled"
    CLOSED = "closed"
    FAILED = "failed"
    ZOMBIE = "zombie"


ALIVE_PROCESS_STATES: frozenset[ProcessState] = frozenset(
    {
        ProcessState.RUNNING,
        ProcessState.OPEN,
        ProcessState.LISTENING,
        ProcessState.CONNECTING,
        ProcessState.STOPPED,
    }
)


@runtime_checkable
class ProcessHandle(Protocol):
    """Non-blocking view of a process's liveness."""

    @property
    def state(self) -> ProcessState: ...


def is_process_alive(process: ProcessHandle | None) -> bool:
    """Whether a handle exists and reports a live state. Reads `state` once."""
    if process is None:
        return False
    return process.state in ALIVE_PROCESS_STATES


@dataclass(frozen=True)
class ProtocolClient:
    """Inner protocol client. May exist before (or after) its process does."""

    process: ProcessHandle | None = None


@dataclass(frozen=True)
class ToolCall:
    """In-flight tool invocation, optionally blocked on a permission decision."""

    tool_call_id: str
    title: str = ""
    permission_request: str | None = None

    @property
    def awaiting_permission(self) -> bool:
        return self.permission_request is not None


@dataclass(frozen=True)
class AgentMode:
    mode_id: str
    name: str | None = None

    @property
    def label(self) -> str:
        return self.name or self.mode_id


@dataclass(frozen=True)
class SessionSnapshot:
    """Point-in-time view of one session as published by the session registry."""

    id: str
    display_name: str
    working_directory: str | None = None
    exec_process: ProcessHandle | None = None
    control: ProtocolClient | None = None
    session_id: str | None = None
    mode_id: str | None = None
    available_modes: tuple[AgentMode, ...] = ()
    tool_calls: tuple[ToolCall, ...] = ()
    busy: bool = False
    initialized: bool = False

    def mode_label(self) -> str | None:
        """Human name of the current mode, or None when unset or not among the available modes."""
        if not self.mode_id:
            return None
        for mode in self.available_modes:
            if mode.mode_id == self.mode_id:
                return mode.label
        return None


@dataclass(frozen=True)
class ActivityRecord:
    """Per-session activity timeline kept across refreshes."""

    first_visited: datetime | None = None
    last_activity: datetime | None = None


@dataclass(frozen=True)
class Workspace:
    """Named grouping of display surfaces, typically one per project."""

    workspace_id: str
    name: str = ""


@dataclass(frozen=True)
class NavigationPlan:
    """Where to show a session. A plan, not an action."""

    target_workspace: str | None = None
    reuse_surface_id: str | None = None
    must_create_surface: bool = False


@dataclass(frozen=True)
class TrafficEntry:
    """One logged protocol message."""

    timestamp: datetime
    direction: str  # "in" | "out"
    payload: str


@dataclass
class TrafficView:
    """Protocol traffic for one session, as handed to the presentation layer."""

    session_id: str
    display_name: str
    logging_enabled: bool
    entries: list[TrafficEntry] = field(default_factory=list)


class NotificationLevel(str, Enum):
    """Notification severity levels."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"
