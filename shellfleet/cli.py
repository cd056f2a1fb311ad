"""shellfleet command line entry point."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from shellfleet import __version__
from shellfleet.config import get_config
from shellfleet.config.schema import GlobalConfig
from shellfleet.core.protocols import DisplayHost, NullDisplayHost, NullWorkspaceProvider, WorkspaceProvider
from shellfleet.host.local_host import LocalSessionHost, SessionHostError
from shellfleet.host.tmux import TmuxClient, TmuxDisplayHost, TmuxTerminal, TmuxWorkspaces
from shellfleet.logging_config import setup_logging
from shellfleet.paths import LOG_PATH

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shellfleet", description="Live dashboard over local agent sessions.")
    parser.add_argument("--config", type=Path, default=None, help="Path to shellfleet.yml.")
    parser.add_argument("--log-level", default=None, help="Override SHELLFLEET_LOG_LEVEL (DEBUG, INFO, ...).")
    parser.add_argument(
        "--no-workspace-switch",
        action="store_true",
        help="Never switch tmux sessions when opening a dashboard session.",
    )
    parser.add_argument(
        "--start",
        action="append",
        default=[],
        metavar="AGENT",
        help="Start a session for the named agent before showing the dashboard (repeatable).",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def build_collaborators(config: GlobalConfig) -> tuple[WorkspaceProvider, DisplayHost]:
    """tmux collaborators when running inside tmux, null objects otherwise."""
    client = TmuxClient(config.tmux.binary)
    if not client.available:
        logger.info("tmux not available; sessions open without a display host")
        return NullWorkspaceProvider(), NullDisplayHost()
    return TmuxWorkspaces(client), TmuxDisplayHost(client, config.tmux.attach_command)


def build_terminal(config: GlobalConfig) -> TmuxTerminal | None:
    """Detached tmux sessions for agents when tmux is available; the host falls back to a pty."""
    client = TmuxClient(config.tmux.binary)
    return TmuxTerminal(client) if client.available else None


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = get_config(args.config)
    except ValidationError as e:
        print(f"shellfleet: invalid configuration:\n{e}", file=sys.stderr)
        return 2

    if args.no_workspace_switch:
        config.dashboard.switch_workspace = False

    unknown = [name for name in args.start if config.get_agent(name) is None]
    if unknown:
        print(f"shellfleet: unknown agent(s): {', '.join(unknown)}", file=sys.stderr)
        return 2

    # Imported late so `--help` and config errors do not pay for Textual's import.
    from shellfleet.tui.app import DashboardApp

    host = LocalSessionHost(
        config.default_agent_config,
        traffic=config.traffic,
        terminal=build_terminal(config),
        output_poll_interval_s=config.tmux.output_poll_interval_s,
    )
    workspaces, display = build_collaborators(config)
    try:
        for name in args.start:
            try:
                host.create(config.get_agent(name))
            except SessionHostError as e:
                print(f"shellfleet: {e}", file=sys.stderr)
                return 1
        logger.info("Starting dashboard (version %s, %d agents)", __version__, len(config.agents))
        app = DashboardApp(
            host,
            host,
            config=config,
            workspaces=workspaces,
            display=display,
            output_source=host,
        )
        app.run()
    finally:
        host.shutdown()
        logger.info("Dashboard exited; logs at %s", LOG_PATH)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
