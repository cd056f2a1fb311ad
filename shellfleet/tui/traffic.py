"""Read-only view of a session's logged protocol traffic."""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.screen import Screen
from textual.widgets import Footer, Label, RichLog

from shellfleet.core.dates import format_relative_time
from shellfleet.core.models import TrafficView

_DIRECTION_MARKERS = {"in": ("←", "cyan"), "out": ("→", "magenta")}


class TrafficScreen(Screen[None]):
    """Scrollable protocol traffic for one session."""

    DEFAULT_CSS = """
    #traffic-title {
        height: 1;
        background: $surface;
        color: $text;
        padding: 0 1;
    }
    #traffic-log {
        height: 1fr;
    }
    """

    BINDINGS = [
        ("escape", "close", "Back"),
        ("q", "close", "Back"),
    ]

    def __init__(self, traffic: TrafficView, **kwargs: object) -> None:
        super().__init__(**kwargs)
        self.traffic = traffic

    def compose(self) -> ComposeResult:
        state = "logging on" if self.traffic.logging_enabled else "logging off"
        yield Label(f" Traffic: {self.traffic.display_name} ({state})", id="traffic-title")
        yield RichLog(id="traffic-log", wrap=True, markup=False, auto_scroll=True)
        yield Footer()

    def on_mount(self) -> None:
        log = self.query_one("#traffic-log", RichLog)
        if not self.traffic.entries:
            hint = "" if self.traffic.logging_enabled else " (press l on the dashboard to enable logging)"
            log.write(Text(f"No traffic recorded{hint}", style="dim"))
            return
        for entry in self.traffic.entries:
            marker, color = _DIRECTION_MARKERS.get(entry.direction, ("·", "white"))
            line = Text()
            line.append(f"{format_relative_time(entry.timestamp):>8} ", style="dim")
            line.append(f"{marker} ", style=color)
            line.append(entry.payload)
            log.write(line)

    def action_close(self) -> None:
        self.dismiss(None)
