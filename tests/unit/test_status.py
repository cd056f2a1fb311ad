"""Tests for session status classification."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from shellfleet.core.models import ProcessState, ProtocolClient, SessionSnapshot, ToolCall
from shellfleet.core.status import ProtocolStatus, SessionStatus, classify_session, protocol_status


@dataclass
class FakeProcess:
    state: ProcessState = ProcessState.RUNNING


class CountingProcess:
    """Process handle that counts liveness reads."""

    def __init__(self, state: ProcessState = ProcessState.RUNNING) -> None:
        self._state = state
        self.reads = 0

    @property
    def state(self) -> ProcessState:
        self.reads += 1
        return self._state


def _session(**overrides) -> SessionSnapshot:
    fields = {
        "id": "Claude Code Agent @ shop",
        "display_name": "Claude Code Agent @ shop",
        "exec_process": FakeProcess(),
        "control": ProtocolClient(process=FakeProcess()),
        "initialized": True,
    }
    fields.update(overrides)
    return SessionSnapshot(**fields)


@pytest.mark.unit
def test_missing_exec_process_is_killed():
    assert classify_session(_session(exec_process=None)) is SessionStatus.KILLED


@pytest.mark.unit
@pytest.mark.parametrize(
    "state",
    [ProcessState.EXITED, ProcessState.SIGNALED, ProcessState.CLOSED, ProcessState.FAILED, ProcessState.ZOMBIE],
)
def test_dead_exec_process_is_killed(state):
    session = _session(exec_process=FakeProcess(state), tool_calls=(ToolCall("t1"),), busy=True, session_id="s")
    assert classify_session(session) is SessionStatus.KILLED


@pytest.mark.unit
@pytest.mark.parametrize(
    "state",
    [ProcessState.RUNNING, ProcessState.OPEN, ProcessState.LISTENING, ProcessState.CONNECTING, ProcessState.STOPPED],
)
def test_alive_states_do_not_kill(state):
    session = _session(exec_process=FakeProcess(state), session_id="s")
    assert classify_session(session) is SessionStatus.READY


@pytest.mark.unit
def test_control_without_process_is_killed():
    session = _session(control=ProtocolClient(process=None), session_id="s")
    assert classify_session(session) is SessionStatus.KILLED


@pytest.mark.unit
def test_dead_control_process_is_killed():
    session = _session(control=ProtocolClient(process=FakeProcess(ProcessState.EXITED)), busy=True)
    assert classify_session(session) is SessionStatus.KILLED


@pytest.mark.unit
def test_pending_permission_is_waiting():
    calls = (ToolCall("t1", "Read file"), ToolCall("t2", "Run tests", permission_request="allow bash?"))
    assert classify_session(_session(tool_calls=calls, busy=True, session_id="s")) is SessionStatus.WAITING


@pytest.mark.unit
def test_tool_calls_without_permission_are_working():
    session = _session(tool_calls=(ToolCall("t1"),), session_id="s")
    assert classify_session(session) is SessionStatus.WORKING


@pytest.mark.unit
def test_busy_without_tool_calls_is_working():
    assert classify_session(_session(busy=True, session_id="s")) is SessionStatus.WORKING


@pytest.mark.unit
def test_negotiated_session_is_ready():
    assert classify_session(_session(session_id="sess-1")) is SessionStatus.READY


@pytest.mark.unit
def test_uninitialized_is_initializing():
    assert classify_session(_session(initialized=False)) is SessionStatus.INITIALIZING


@pytest.mark.unit
def test_initialized_without_session_is_unknown():
    assert classify_session(_session()) is SessionStatus.UNKNOWN


@pytest.mark.unit
def test_without_control_client_only_startup_rules_apply():
    busy = _session(control=None, busy=True, tool_calls=(ToolCall("t1"),), session_id="s", initialized=False)
    assert classify_session(busy) is SessionStatus.INITIALIZING
    assert classify_session(_session(control=None, busy=True, session_id="s")) is SessionStatus.UNKNOWN


@pytest.mark.unit
def test_each_liveness_signal_read_once():
    exec_process = CountingProcess()
    control_process = CountingProcess()
    classify_session(_session(exec_process=exec_process, control=ProtocolClient(process=control_process)))
    assert exec_process.reads == 1
    assert control_process.reads == 1


@pytest.mark.unit
def test_classification_is_not_cached():
    process = CountingProcess()
    session = _session(exec_process=process, session_id="s")
    assert classify_session(session) is SessionStatus.READY
    process._state = ProcessState.EXITED
    assert classify_session(session) is SessionStatus.KILLED


@pytest.mark.unit
def test_protocol_status():
    live = _session(session_id="sess-1")
    assert protocol_status(live, classify_session(live)) is ProtocolStatus.ACTIVE
    assert protocol_status(live, SessionStatus.KILLED) is ProtocolStatus.NONE
    fresh = _session()
    assert protocol_status(fresh, classify_session(fresh)) is ProtocolStatus.NONE
