"""Session status classification.

Turns process liveness and published session flags into one status value.
Rules are evaluated in priority order; the first match wins:

  1. killed        outer process absent or dead
  2. killed        protocol client attached but its process absent or dead
  3. waiting       tool calls in flight, at least one awaiting permission
  4. working       tool calls in flight
  5. working       busy flag published
  6. ready         protocol session negotiated
  7. initializing  startup handshake not complete
  8. unknown       anything else (transitional)

Liveness of the outer process is the final authority. Each signal is read
exactly once per call; nothing is cached between calls.
"""

from __future__ import annotations

import logging
from enum import Enum

from shellfleet.core.models import SessionSnapshot, is_process_alive

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    UNKNOWN = "unknown"
    INITIALIZING = "initializing"
    READY = "ready"
    WORKING = "working"
    WAITING = "waiting"
    KILLED = "killed"


class ProtocolStatus(str, Enum):
    ACTIVE = "active"
    NONE = "none"


def classify_session(session: SessionSnapshot) -> SessionStatus:
    """Classify a session. Total and side-effect free."""
    if not is_process_alive(session.exec_process):
        return SessionStatus.KILLED

    control = session.control
    if control is not None and not is_process_alive(control.process):
        return SessionStatus.KILLED

    # Rules 3-6 need both processes; without an attached client only 7-8 apply.
    if control is not None:
        tool_calls = session.tool_calls
        if tool_calls:
            if any(call.awaiting_permission for call in tool_calls):
                return SessionStatus.WAITING
            return SessionStatus.WORKING

        if session.busy:
            return SessionStatus.WORKING

        if session.session_id:
            return SessionStatus.READY

    if not session.initialized:
        return SessionStatus.INITIALIZING

    logger.debug("Session %s has no matching status rule, reporting unknown", session.id)
    return SessionStatus.UNKNOWN


def protocol_status(session: SessionSnapshot, status: SessionStatus) -> ProtocolStatus:
    """Derive whether a live protocol session exists, given the already-computed status."""
    if status is SessionStatus.KILLED:
        return ProtocolStatus.NONE
    return ProtocolStatus.ACTIVE if session.session_id else ProtocolStatus.NONE
