"""Custom Textual messages for dashboard communication."""

from __future__ import annotations

from textual.message import Message


class SessionOutput(Message):
    """A session produced output. Safe to post from host threads."""

    def __init__(self, session_key: str) -> None:
        super().__init__()
        self.session_key = session_key
