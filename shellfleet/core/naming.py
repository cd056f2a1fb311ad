"""Session display names and the agent configs they came from."""

from __future__ import annotations

import os
from typing import Iterable, Sequence

from shellfleet.config.schema import AgentConfig
from shellfleet.constants import DISPLAY_NAME_AGENT_SUFFIX, DISPLAY_NAME_SEPARATOR


def format_display_name(display_prefix: str, working_directory: str | None, taken: Iterable[str] = ()) -> str:
    """Build 'Claude Code Agent @ project', suffixed '<2>', '<3>'... when already taken."""
    base = f"{display_prefix}{DISPLAY_NAME_AGENT_SUFFIX}"
    if working_directory:
        project = os.path.basename(os.path.normpath(os.path.expanduser(working_directory)))
        if project:
            base = f"{base}{DISPLAY_NAME_SEPARATOR}{project}"
    taken_names = set(taken)
    if base not in taken_names:
        return base
    index = 2
    while f"{base}<{index}>" in taken_names:
        index += 1
    return f"{base}<{index}>"


def match_agent_config(display_name: str, agents: Sequence[AgentConfig]) -> AgentConfig | None:
    """Find the agent config whose display prefix starts the name. Longest prefix wins."""
    best: AgentConfig | None = None
    for agent in agents:
        if display_name.startswith(agent.display_prefix):
            if best is None or len(agent.display_prefix) > len(best.display_prefix):
                best = agent
    return best
