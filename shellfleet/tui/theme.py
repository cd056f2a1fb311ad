"""Status colors for the dashboard table."""

from __future__ import annotations

from rich.style import Style
from rich.text import Text

from shellfleet.core.status import ProtocolStatus, SessionStatus

STATUS_STYLES: dict[SessionStatus, Style] = {
    SessionStatus.KILLED: Style(color="red", bold=True),
    SessionStatus.WAITING: Style(color="yellow", bold=True),
    SessionStatus.WORKING: Style(color="cyan"),
    SessionStatus.READY: Style(color="green"),
    SessionStatus.INITIALIZING: Style(dim=True),
    SessionStatus.UNKNOWN: Style(dim=True, italic=True),
}

PROTOCOL_STYLES: dict[ProtocolStatus, Style] = {
    ProtocolStatus.ACTIVE: Style(color="green"),
    ProtocolStatus.NONE: Style(dim=True),
}

MUTED = Style(dim=True)


def status_text(status: SessionStatus) -> Text:
    return Text(status.value, style=STATUS_STYLES[status])


def protocol_text(status: ProtocolStatus) -> Text:
    return Text(status.value, style=PROTOCOL_STYLES[status])


def name_text(display_name: str, status: SessionStatus) -> Text:
    """Session name, muted once its processes are gone."""
    return Text(display_name, style=MUTED if status is SessionStatus.KILLED else Style())
