import pytest

from shellfleet import cli
from shellfleet.config.schema import GlobalConfig
from shellfleet.core.protocols import NullDisplayHost, NullWorkspaceProvider
from shellfleet.host.tmux import TmuxDisplayHost, TmuxTerminal, TmuxWorkspaces


@pytest.fixture(autouse=True)
def no_log_file(monkeypatch):
    monkeypatch.setattr(cli, "setup_logging", lambda level=None: None)


def test_parser_defaults():
    args = cli.build_parser().parse_args([])
    assert args.config is None
    assert args.start == []
    assert not args.no_workspace_switch


def test_parser_repeatable_start():
    args = cli.build_parser().parse_args(["--start", "codex", "--start", "claude", "--no-workspace-switch"])
    assert args.start == ["codex", "claude"]
    assert args.no_workspace_switch


def test_invalid_config_exits_2(tmp_path, capsys):
    config_path = tmp_path / "shellfleet.yml"
    config_path.write_text("dashboard: {refresh_interval_s: -1}", encoding="utf-8")
    assert cli.main(["--config", str(config_path)]) == 2
    assert "invalid configuration" in capsys.readouterr().err


def test_unknown_start_agent_exits_2(tmp_path, capsys):
    config_path = tmp_path / "shellfleet.yml"
    config_path.write_text("agents: [{name: codex, display_prefix: Codex, command: [codex]}]", encoding="utf-8")
    assert cli.main(["--config", str(config_path), "--start", "gemini"]) == 2
    assert "gemini" in capsys.readouterr().err


def test_collaborators_degrade_outside_tmux(monkeypatch):
    monkeypatch.delenv("TMUX", raising=False)
    workspaces, display = cli.build_collaborators(GlobalConfig())
    assert isinstance(workspaces, NullWorkspaceProvider)
    assert isinstance(display, NullDisplayHost)


def test_collaborators_use_tmux_inside_tmux(monkeypatch):
    monkeypatch.setenv("TMUX", "/tmp/tmux-1000/default,1,0")
    monkeypatch.setattr("shellfleet.host.tmux.shutil.which", lambda binary: "/usr/bin/tmux")
    workspaces, display = cli.build_collaborators(GlobalConfig())
    assert isinstance(workspaces, TmuxWorkspaces)
    assert isinstance(display, TmuxDisplayHost)


def test_agents_get_tmux_terminal_only_inside_tmux(monkeypatch):
    monkeypatch.setattr("shellfleet.host.tmux.shutil.which", lambda binary: "/usr/bin/tmux")
    monkeypatch.delenv("TMUX", raising=False)
    assert cli.build_terminal(GlobalConfig()) is None
    monkeypatch.setenv("TMUX", "/tmp/tmux-1000/default,1,0")
    assert isinstance(cli.build_terminal(GlobalConfig()), TmuxTerminal)
