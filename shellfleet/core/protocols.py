"""Protocol definitions for the dashboard's collaborators.

The dashboard observes sessions through a registry, acts on them through a
lifecycle manager, and places them through an optional workspace system and
a display host. Optional capabilities default to the null objects below.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Protocol, runtime_checkable

from shellfleet.core.models import NavigationPlan, SessionSnapshot, TrafficView, Workspace

if TYPE_CHECKING:
    from shellfleet.config.schema import AgentConfig


@runtime_checkable
class SessionRegistry(Protocol):
    """Source of truth for which sessions exist."""

    def list_session_ids(self) -> list[str]:
        """Enumerate live session identifiers."""
        ...

    def resolve(self, session_key: str) -> SessionSnapshot | None:
        """Return a snapshot for the session, or None if it no longer exists."""
        ...


@runtime_checkable
class SessionLifecycle(Protocol):
    """Creates, destroys and signals sessions' processes."""

    def create(self, agent: "AgentConfig | None" = None) -> SessionSnapshot:
        """Create a session from a config, or the default one when None."""
        ...

    def terminate(self, session: SessionSnapshot) -> None:
        """Ask the session's processes to exit. A no-op for already-dead processes."""
        ...

    def destroy(self, session: SessionSnapshot) -> None:
        """Remove the session (and its display surface) entirely."""
        ...

    def set_mode(self, session: SessionSnapshot, mode_id: str) -> None: ...

    def cycle_mode(self, session: SessionSnapshot) -> None: ...

    def interrupt(self, session: SessionSnapshot) -> None: ...

    def open_traffic_view(self, session: SessionSnapshot) -> TrafficView: ...

    def toggle_logging(self) -> bool:
        """Flip protocol traffic logging, returning the new state."""
        ...


@runtime_checkable
class WorkspaceProvider(Protocol):
    """Optional workspace system grouping display surfaces per project."""

    @property
    def available(self) -> bool: ...

    def list_workspaces(self) -> list[Workspace]: ...

    def contains_directory(self, workspace: Workspace, directory: str) -> bool:
        """Whether a surface in the workspace has a working directory that is a prefix of `directory`."""
        ...

    def switch_to(self, workspace: Workspace) -> None: ...

    def current_workspace(self) -> Workspace | None: ...


@runtime_checkable
class DisplayHost(Protocol):
    """Host-window collaborator that shows sessions on display surfaces."""

    def visible_surfaces(self) -> dict[str, str | None]:
        """Visible surface ids in the active workspace, mapped to the session each presents (or None)."""
        ...

    def show_session(self, session: SessionSnapshot, plan: NavigationPlan) -> None: ...


class NullWorkspaceProvider:
    """No workspace system: nothing to list, nothing to switch."""

    @property
    def available(self) -> bool:
        return False

    def list_workspaces(self) -> list[Workspace]:
        return []

    def contains_directory(self, workspace: Workspace, directory: str) -> bool:
        return False

    def switch_to(self, workspace: Workspace) -> None:
        return None

    def current_workspace(self) -> Workspace | None:
        return None


class NullDisplayHost:
    """No host window: nothing visible, showing is a no-op."""

    def visible_surfaces(self) -> dict[str, str | None]:
        return {}

    def show_session(self, session: SessionSnapshot, plan: NavigationPlan) -> None:
        return None


@runtime_checkable
class OutputSource(Protocol):
    """Optional capability: raises output-observed events per session, from any thread."""

    def add_output_listener(self, listener: Callable[[str], None]) -> None: ...

    def remove_output_listener(self, listener: Callable[[str], None]) -> None: ...
