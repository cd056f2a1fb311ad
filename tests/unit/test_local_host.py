"""Tests for the local subprocess-backed session host."""

from __future__ import annotations

import os
import subprocess
import sys
import threading
import time

import pytest

from shellfleet.config.schema import AgentConfig, GlobalConfig, ModeConfig, TrafficConfig
from shellfleet.core.activity import ActivityHistory
from shellfleet.core.models import AgentMode, ProcessState, ToolCall
from shellfleet.core.status import SessionStatus, classify_session
from shellfleet.host import local_host
from shellfleet.host.local_host import LocalSessionHost, SessionHostError
from shellfleet.host.processes import PsutilProcessHandle
from shellfleet.host.tmux import tmux_session_name


class FakeHandle:
    def __init__(self, pid: int) -> None:
        self.pid = pid
        self.state = ProcessState.RUNNING
        self.signals: list[str] = []

    def terminate(self) -> bool:
        self.signals.append("term")
        self.state = ProcessState.EXITED
        return True

    def interrupt(self) -> bool:
        self.signals.append("int")
        return True


class FakePopen:
    _next_pid = 1000

    def __init__(self, args, **kwargs) -> None:
        FakePopen._next_pid += 1
        self.pid = FakePopen._next_pid
        self.args = args
        self.kwargs = kwargs
        stdin = kwargs.get("stdin")
        self.on_terminal = isinstance(stdin, int) and stdin >= 0 and os.isatty(stdin)
        self.calls: list[str] = []

    def poll(self):
        self.calls.append("poll")
        return None

    def terminate(self) -> None:
        self.calls.append("terminate")

    def kill(self) -> None:
        self.calls.append("kill")

    def wait(self, timeout=None) -> int:
        self.calls.append("wait")
        return -15


class RecordingSpawn:
    def __init__(self, fail_on: str | None = None) -> None:
        self.calls: list[FakePopen] = []
        self.fail_on = fail_on

    def __call__(self, args, **kwargs) -> FakePopen:
        if args[0] == self.fail_on:
            raise FileNotFoundError(2, "No such file or directory", args[0])
        popen = FakePopen(args, **kwargs)
        self.calls.append(popen)
        return popen


@pytest.fixture(autouse=True)
def fake_handles(monkeypatch):
    monkeypatch.setattr(local_host, "PsutilProcessHandle", FakeHandle)


CLAUDE = AgentConfig(
    name="claude",
    display_prefix="Claude Code",
    command=["claude"],
    client_command=["claude-code-acp"],
    working_directory="/work/shop",
    modes=[ModeConfig(mode_id="plan", name="Plan"), ModeConfig(mode_id="code")],
    default_mode="plan",
)
SHELL = AgentConfig(name="shell", display_prefix="Shell", command=["bash"], working_directory="/work/shop")


def _host(agent: AgentConfig = CLAUDE, spawn=None, **kwargs) -> LocalSessionHost:
    return LocalSessionHost(agent, spawn=spawn or RecordingSpawn(), **kwargs)


@pytest.mark.unit
def test_create_gives_agent_a_terminal_and_client_no_stdio():
    spawn = RecordingSpawn()
    host = _host(spawn=spawn)
    session = host.create()
    assert session.id == "Claude Code Agent @ shop"
    assert [popen.args for popen in spawn.calls] == [["claude"], ["claude-code-acp"]]
    assert spawn.calls[0].kwargs["cwd"] == "/work/shop"
    assert spawn.calls[0].kwargs["start_new_session"] is True
    assert spawn.calls[0].on_terminal
    assert spawn.calls[0].kwargs["stdout"] == spawn.calls[0].kwargs["stdin"]
    assert spawn.calls[1].kwargs["stdin"] is subprocess.DEVNULL
    assert session.mode_id == "plan"
    assert session.available_modes == (AgentMode("plan", "Plan"), AgentMode("code", None))
    assert host.list_session_ids() == [session.id]


@pytest.mark.unit
def test_new_session_is_initializing_until_published():
    host = _host()
    session = host.create()
    assert classify_session(session) is SessionStatus.INITIALIZING
    host.publish(session.id, initialized=True, session_id="sess-1")
    assert classify_session(host.resolve(session.id)) is SessionStatus.READY
    host.publish(session.id, tool_calls=[ToolCall("t1", permission_request="bash")])
    assert classify_session(host.resolve(session.id)) is SessionStatus.WAITING


@pytest.mark.unit
def test_publish_rejects_unknown_fields_and_sessions():
    host = _host()
    session = host.create()
    with pytest.raises(ValueError, match="exec_process"):
        host.publish(session.id, exec_process=None)
    with pytest.raises(SessionHostError):
        host.publish("nope", busy=True)


@pytest.mark.unit
def test_duplicate_names_get_suffix():
    host = _host(SHELL)
    first = host.create()
    second = host.create()
    assert (first.id, second.id) == ("Shell Agent @ shop", "Shell Agent @ shop<2>")


@pytest.mark.unit
def test_session_without_client_has_no_control():
    host = _host(SHELL)
    assert host.create().control is None


@pytest.mark.unit
def test_create_uses_configured_default_agent():
    config = GlobalConfig(agents=[CLAUDE, SHELL], default_agent="shell")
    host = _host(config.default_agent_config)
    assert host.create().id == "Shell Agent @ shop"


@pytest.mark.unit
def test_create_without_agents_fails():
    host = LocalSessionHost(spawn=RecordingSpawn())
    with pytest.raises(SessionHostError, match="No agent configured"):
        host.create()


@pytest.mark.unit
def test_client_start_failure_terminates_and_reaps_exec_process():
    spawn = RecordingSpawn(fail_on="claude-code-acp")
    host = _host(spawn=spawn)
    with pytest.raises(SessionHostError, match="Failed to start claude-code-acp"):
        host.create()
    assert host.list_session_ids() == []
    (exec_popen,) = spawn.calls
    assert exec_popen.calls == ["terminate", "wait"]


@pytest.mark.unit
def test_terminate_signals_both_processes_and_session_reads_killed():
    host = _host()
    session = host.create()
    host.terminate(session)
    assert classify_session(host.resolve(session.id)) is SessionStatus.KILLED
    assert session.exec_process.signals == ["term"]
    assert session.control.process.signals == ["term"]


@pytest.mark.unit
def test_destroy_removes_session_and_is_idempotent():
    host = _host()
    session = host.create()
    host.destroy(session)
    host.destroy(session)
    assert host.resolve(session.id) is None
    assert host.list_session_ids() == []


@pytest.mark.unit
def test_unknown_session_operations_raise():
    host = _host()
    session = host.create()
    host.destroy(session)
    with pytest.raises(SessionHostError, match="Unknown session"):
        host.terminate(session)


@pytest.mark.unit
def test_cycle_mode_wraps():
    host = _host()
    session = host.create()
    host.cycle_mode(session)
    assert host.resolve(session.id).mode_id == "code"
    host.cycle_mode(session)
    assert host.resolve(session.id).mode_id == "plan"


@pytest.mark.unit
def test_interrupt_targets_protocol_client():
    host = _host()
    session = host.create()
    host.interrupt(session)
    assert session.control.process.signals == ["int"]
    assert session.exec_process.signals == []


@pytest.mark.unit
def test_traffic_logged_only_when_enabled():
    host = _host(traffic=TrafficConfig(logging_enabled=False))
    session = host.create()
    host.set_mode(session, "code")
    assert host.open_traffic_view(session).entries == []

    assert host.toggle_logging() is True
    host.set_mode(session, "plan")
    host.record_traffic(session.id, "in", '{"method": "session/update"}')
    view = host.open_traffic_view(session)
    assert view.logging_enabled
    assert [(e.direction, e.payload) for e in view.entries] == [
        ("out", "session/set_mode plan"),
        ("in", '{"method": "session/update"}'),
    ]


@pytest.mark.unit
def test_traffic_is_bounded():
    host = _host(traffic=TrafficConfig(logging_enabled=True, max_lines=2))
    session = host.create()
    for index in range(5):
        host.record_traffic(session.id, "in", f"msg {index}")
    assert [e.payload for e in host.open_traffic_view(session).entries] == ["msg 3", "msg 4"]


@pytest.mark.unit
def test_output_listeners_fan_out_and_survive_failures():
    host = _host()
    seen: list[str] = []

    def broken(_key: str) -> None:
        raise RuntimeError("boom")

    host.add_output_listener(broken)
    host.add_output_listener(seen.append)
    host.notify_output("Claude Code Agent @ shop")
    host.remove_output_listener(seen.append)
    host.remove_output_listener(seen.append)
    host.notify_output("Claude Code Agent @ shop")
    assert seen == ["Claude Code Agent @ shop"]


@pytest.mark.unit
def test_shutdown_terminates_everything():
    host = _host()
    session = host.create()
    host.shutdown()
    assert session.exec_process.signals == ["term"]
    assert session.control.process.signals == ["term"]


class FakeTerminal:
    """Stands in for TmuxTerminal; screens are scripted per tmux session."""

    def __init__(self, pid: int | None = 7000) -> None:
        self.pid = pid
        self.started: list[tuple[str, list[str], str]] = []
        self.stopped: list[str] = []
        self.screens: dict[str, str] = {}

    def start(self, name, command, cwd):
        self.started.append((name, list(command), cwd))
        return self.pid

    def capture(self, name):
        return self.screens.get(name, "")

    def stop(self, name):
        self.stopped.append(name)


def _tmux_host(terminal: FakeTerminal, spawn=None, agent: AgentConfig = CLAUDE) -> LocalSessionHost:
    return LocalSessionHost(agent, terminal=terminal, output_poll_interval_s=60, spawn=spawn or RecordingSpawn())


@pytest.mark.unit
def test_tmux_terminal_hosts_interactive_command():
    terminal = FakeTerminal()
    spawn = RecordingSpawn()
    host = _tmux_host(terminal, spawn)
    try:
        session = host.create()
        ((name, command, cwd),) = terminal.started
        assert name == tmux_session_name(session.id)
        assert (command, cwd) == (["claude"], "/work/shop")
        assert session.exec_process.pid == 7000
        assert [popen.args for popen in spawn.calls] == [["claude-code-acp"]]
    finally:
        host.shutdown()
    assert terminal.stopped == [name]


@pytest.mark.unit
def test_tmux_start_failure_raises():
    host = _tmux_host(FakeTerminal(pid=None))
    with pytest.raises(SessionHostError, match="tmux session"):
        host.create()
    assert host.list_session_ids() == []


@pytest.mark.unit
def test_client_failure_stops_tmux_session():
    terminal = FakeTerminal()
    host = _tmux_host(terminal, RecordingSpawn(fail_on="claude-code-acp"))
    with pytest.raises(SessionHostError):
        host.create()
    assert terminal.stopped == [terminal.started[0][0]]


@pytest.mark.unit
def test_changed_tmux_screen_records_activity():
    terminal = FakeTerminal()
    host = _tmux_host(terminal, agent=SHELL)
    history = ActivityHistory()
    host.add_output_listener(history.record_activity)
    try:
        session = host.create()
        name = tmux_session_name(session.id)
        terminal.screens[name] = "$ "
        assert host.poll_terminal_output() == []
        assert history.last_activity(session.id) is None

        terminal.screens[name] = "$ make test\nok"
        assert host.poll_terminal_output() == [session.id]
        assert history.last_activity(session.id) is not None

        assert host.poll_terminal_output() == []
    finally:
        host.shutdown()


@pytest.mark.unit
def test_destroy_kills_tmux_session():
    terminal = FakeTerminal()
    host = _tmux_host(terminal, agent=SHELL)
    try:
        session = host.create()
        host.destroy(session)
        assert terminal.stopped == [tmux_session_name(session.id)]
        assert host.poll_terminal_output() == []
    finally:
        host.shutdown()


@pytest.mark.integration
def test_agent_reading_its_terminal_stays_alive(tmp_path, monkeypatch):
    monkeypatch.setattr(local_host, "PsutilProcessHandle", PsutilProcessHandle)
    agent = AgentConfig(
        name="reader",
        display_prefix="Reader",
        command=["sh", "-c", "read line || exit 1; sleep 30"],
        working_directory=str(tmp_path),
    )
    host = LocalSessionHost(agent)
    session = host.create()
    try:
        time.sleep(0.5)
        assert classify_session(host.resolve(session.id)) is not SessionStatus.KILLED
    finally:
        host.shutdown()


@pytest.mark.integration
def test_pty_output_reaches_activity_history(tmp_path, monkeypatch):
    monkeypatch.setattr(local_host, "PsutilProcessHandle", PsutilProcessHandle)
    agent = AgentConfig(
        name="talker",
        display_prefix="Talker",
        command=[sys.executable, "-c", "import time; print('ready', flush=True); time.sleep(30)"],
        working_directory=str(tmp_path),
    )
    history = ActivityHistory()
    seen = threading.Event()

    def on_output(session_key: str) -> None:
        history.record_activity(session_key)
        seen.set()

    host = LocalSessionHost(agent)
    host.add_output_listener(on_output)
    session = host.create()
    try:
        assert seen.wait(timeout=3)
        assert history.last_activity(session.id) is not None
    finally:
        host.shutdown()


@pytest.mark.integration
def test_real_process_lifecycle(tmp_path, monkeypatch):
    monkeypatch.setattr(local_host, "PsutilProcessHandle", PsutilProcessHandle)
    agent = AgentConfig(
        name="sleeper",
        display_prefix="Sleeper",
        command=[sys.executable, "-c", "import time; time.sleep(30)"],
        working_directory=str(tmp_path),
    )
    host = LocalSessionHost(agent)
    session = host.create()
    try:
        assert classify_session(session) is SessionStatus.INITIALIZING
        host.terminate(session)
        host._sessions[session.id].exec_popen.wait(timeout=3)
        assert classify_session(host.resolve(session.id)) is SessionStatus.KILLED
    finally:
        host.shutdown()
