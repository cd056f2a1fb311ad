"""Modal dialogs: yes/no confirmation and single choice from a list."""

from __future__ import annotations

from typing import TypeVar

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label, OptionList
from textual.widgets.option_list import Option

ResultT = TypeVar("ResultT")


class DialogScreen(ModalScreen[ResultT]):
    """Centered box with the title drawn on its top border."""

    DEFAULT_CSS = """
    DialogScreen {
        align: center middle;
    }
    DialogScreen > #dialog {
        width: 60;
        height: auto;
        border: round $accent;
        border-title-align: left;
        padding: 0 1;
        background: $panel;
    }
    DialogScreen .dialog-hint {
        color: $text-muted;
    }
    """

    def __init__(self, title: str, **kwargs: object) -> None:
        super().__init__(**kwargs)
        self.dialog_title = title

    def compose(self) -> ComposeResult:
        with Vertical(id="dialog") as box:
            box.border_title = self.dialog_title
            yield from self.compose_body()

    def compose_body(self) -> ComposeResult:
        yield from ()


class ConfirmModal(DialogScreen[bool]):
    """Yes/no question. Escape counts as no."""

    DEFAULT_CSS = """
    ConfirmModal #confirm-buttons {
        height: auto;
        margin-top: 1;
    }
    ConfirmModal Button {
        margin-right: 2;
    }
    """

    BINDINGS = [
        Binding("y", "answer(True)", "Yes"),
        Binding("n", "answer(False)", "No"),
        Binding("escape", "answer(False)", "Cancel", show=False),
    ]

    def __init__(self, title: str, message: str, **kwargs: object) -> None:
        super().__init__(title, **kwargs)
        self.message = message

    def compose_body(self) -> ComposeResult:
        yield Label(self.message, id="confirm-message")
        with Horizontal(id="confirm-buttons"):
            yield Button("Yes (y)", variant="error", id="confirm-yes")
            yield Button("No (n)", id="confirm-no")

    def on_mount(self) -> None:
        self.query_one("#confirm-no", Button).focus()

    def action_answer(self, answer: bool) -> None:
        self.dismiss(answer)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        self.dismiss(event.button.id == "confirm-yes")


class ChoiceModal(DialogScreen[str | None]):
    """Pick one value from (value, label) pairs; None when cancelled."""

    DEFAULT_CSS = """
    ChoiceModal OptionList {
        height: auto;
        max-height: 12;
        border: none;
    }
    """

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(
        self,
        title: str,
        choices: list[tuple[str, str]],
        current: str | None = None,
        **kwargs: object,
    ) -> None:
        super().__init__(title, **kwargs)
        self.choices = choices
        self.current = current

    def compose_body(self) -> ComposeResult:
        yield OptionList(
            *(Option(f"{label} (current)" if value == self.current else label, id=value) for value, label in self.choices),
            id="choice-list",
        )
        yield Label("enter select · esc cancel", classes="dialog-hint")

    def on_mount(self) -> None:
        option_list = self.query_one("#choice-list", OptionList)
        option_list.focus()
        values = [value for value, _ in self.choices]
        if self.current in values:
            option_list.highlighted = values.index(self.current)

    def action_cancel(self) -> None:
        self.dismiss(None)

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        event.stop()
        self.dismiss(event.option.id)
