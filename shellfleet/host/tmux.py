"""tmux-backed terminal, workspace and display collaborators.

Each hosted agent runs in its own detached tmux session, so tmux owns its
terminal. A tmux session is also a workspace and a pane is a display
surface. Panes opened for a dashboard session carry the
`@shellfleet_session` pane option so the dashboard can tell which session a
visible pane presents, and attach to the agent's tmux session.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
import shutil
import subprocess
from typing import Sequence

from shellfleet.core.models import NavigationPlan, SessionSnapshot, Workspace
from shellfleet.utils import is_path_prefix

logger = logging.getLogger(__name__)

SESSION_PANE_OPTION = "@shellfleet_session"
TMUX_SESSION_PREFIX = "shellfleet-"

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


def tmux_session_name(session_key: str) -> str:
    """tmux-safe session name for a dashboard session key.

    tmux reserves '.' and ':' in targets, so the key is slugged; the digest
    keeps keys that slug alike apart.
    """
    slug = _UNSAFE_NAME_CHARS.sub("-", session_key).strip("-").lower()
    digest = hashlib.sha1(session_key.encode("utf-8")).hexdigest()[:6]
    return f"{TMUX_SESSION_PREFIX}{slug}-{digest}"


class TmuxClient:
    """Thin wrapper around the tmux binary."""

    def __init__(self, binary: str = "tmux") -> None:
        self.binary = binary

    @property
    def available(self) -> bool:
        """Inside a tmux client with the binary on PATH."""
        return bool(os.environ.get("TMUX")) and shutil.which(self.binary) is not None

    def run(self, *args: str) -> str:
        """Run a tmux command and return stdout, or '' when tmux reports an error."""
        try:
            result = subprocess.run(
                [self.binary, *args],
                capture_output=True,
                text=True,
                check=True,
            )
            return result.stdout.strip()
        except subprocess.CalledProcessError as e:
            logger.debug("tmux %s failed: %s", " ".join(args), (e.stderr or "").strip())
            return ""
        except OSError as e:
            logger.warning("Cannot run %s: %s", self.binary, e)
            return ""

    def lines(self, *args: str) -> list[str]:
        output = self.run(*args)
        return [line for line in output.splitlines() if line]


class TmuxTerminal:
    """Runs agent commands in detached tmux sessions and reads their screens."""

    def __init__(self, client: TmuxClient, width: int = 200, height: int = 50) -> None:
        self.client = client
        self.width = width
        self.height = height

    def start(self, name: str, command: Sequence[str], cwd: str) -> int | None:
        """Start `command` in a new detached session; returns the pane's pid."""
        output = self.client.run(
            "new-session",
            "-d",
            "-s",
            name,
            "-c",
            cwd,
            "-x",
            str(self.width),
            "-y",
            str(self.height),
            "-P",
            "-F",
            "#{pane_pid}",
            *command,
        )
        try:
            return int(output)
        except ValueError:
            logger.warning("tmux did not start session %s (output %r)", name, output)
            return None

    def capture(self, name: str) -> str:
        """Visible screen of the session's active pane ('' once it is gone)."""
        return self.client.run("capture-pane", "-p", "-t", name)

    def stop(self, name: str) -> None:
        self.client.run("kill-session", "-t", name)


class TmuxWorkspaces:
    """Workspace provider: one workspace per tmux session."""

    def __init__(self, client: TmuxClient) -> None:
        self.client = client

    @property
    def available(self) -> bool:
        return self.client.available

    def list_workspaces(self) -> list[Workspace]:
        return [Workspace(workspace_id=name, name=name) for name in self.client.lines("list-sessions", "-F", "#{session_name}")]

    def contains_directory(self, workspace: Workspace, directory: str) -> bool:
        paths = self.client.lines("list-panes", "-s", "-t", workspace.workspace_id, "-F", "#{pane_current_path}")
        return any(is_path_prefix(path, directory) for path in paths)

    def switch_to(self, workspace: Workspace) -> None:
        self.client.run("switch-client", "-t", workspace.workspace_id)

    def current_workspace(self) -> Workspace | None:
        name = self.client.run("display-message", "-p", "#{session_name}")
        return Workspace(workspace_id=name, name=name) if name else None


class TmuxDisplayHost:
    """Display host placing sessions in panes of the current tmux window."""

    def __init__(self, client: TmuxClient, attach_command: Sequence[str] | None = None) -> None:
        self.client = client
        # Nested attach needs TMUX unset, or tmux refuses to run inside itself.
        self.attach_command = (
            list(attach_command)
            if attach_command
            else ["env", "-u", "TMUX", client.binary, "attach-session", "-t", "{tmux_session}"]
        )
        self._own_pane = os.environ.get("TMUX_PANE")

    def visible_surfaces(self) -> dict[str, str | None]:
        if not self.client.available:
            return {}
        surfaces: dict[str, str | None] = {}
        for line in self.client.lines("list-panes", "-F", f"#{{pane_id}}\t#{{{SESSION_PANE_OPTION}}}"):
            pane_id, _, session_key = line.partition("\t")
            if pane_id == self._own_pane:
                continue
            surfaces[pane_id] = session_key or None
        return surfaces

    def _pane_command(self, session: SessionSnapshot) -> list[str]:
        tmux_session = tmux_session_name(session.id)
        return [
            part.replace("{session}", session.id).replace("{tmux_session}", tmux_session)
            for part in self.attach_command
        ]

    def show_session(self, session: SessionSnapshot, plan: NavigationPlan) -> None:
        if not self.client.available:
            return
        cwd = session.working_directory or os.getcwd()
        pane_id = plan.reuse_surface_id
        if pane_id is not None:
            presented = self.client.run("show-options", "-pqv", "-t", pane_id, SESSION_PANE_OPTION)
            if presented != session.id:
                self.client.run("respawn-pane", "-k", "-t", pane_id, "-c", cwd, *self._pane_command(session))
        else:
            pane_id = self.client.run(
                "split-window", "-h", "-P", "-F", "#{pane_id}", "-c", cwd, *self._pane_command(session)
            )
            if not pane_id:
                logger.warning("Could not open a pane for %s", session.id)
                return
        self.client.run("set-option", "-p", "-t", pane_id, SESSION_PANE_OPTION, session.id)
        self.client.run("select-pane", "-t", pane_id)
