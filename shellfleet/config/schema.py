from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from shellfleet.constants import (
    DEFAULT_KILL_REFRESH_DELAY_S,
    DEFAULT_OUTPUT_POLL_INTERVAL_S,
    DEFAULT_OUTPUT_REFRESH_DEBOUNCE_S,
    DEFAULT_REFRESH_INTERVAL_S,
    DEFAULT_TRAFFIC_MAX_LINES,
)


class ModeConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    mode_id: str
    name: Optional[str] = None


class AgentConfig(BaseModel):
    """How to start one kind of agent session."""

    model_config = ConfigDict(extra="allow")
    name: str
    display_prefix: str
    command: List[str]
    client_command: Optional[List[str]] = None
    working_directory: Optional[str] = None
    modes: List[ModeConfig] = []
    default_mode: Optional[str] = None

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: List[str]) -> List[str]:
        if not v or not v[0].strip():
            raise ValueError("command must name an executable")
        return v

    @field_validator("display_prefix")
    @classmethod
    def validate_display_prefix(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("display_prefix must be non-empty")
        return v

    @model_validator(mode="after")
    def validate_default_mode(self) -> "AgentConfig":
        if self.default_mode and self.modes and self.default_mode not in {m.mode_id for m in self.modes}:
            raise ValueError(f"default_mode {self.default_mode!r} is not one of the configured modes")
        return self


class DashboardConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    refresh_interval_s: float = Field(default=DEFAULT_REFRESH_INTERVAL_S, gt=0)
    kill_refresh_delay_s: float = Field(default=DEFAULT_KILL_REFRESH_DELAY_S, ge=0)
    output_refresh_debounce_s: float = Field(default=DEFAULT_OUTPUT_REFRESH_DEBOUNCE_S, ge=0)
    switch_workspace: bool = True


class TrafficConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    logging_enabled: bool = False
    max_lines: int = Field(default=DEFAULT_TRAFFIC_MAX_LINES, ge=1)


class TmuxConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    binary: str = "tmux"
    # Command run in a pane opened for a session. "{session}" is replaced by the
    # session name and "{tmux_session}" by the tmux session hosting it.
    attach_command: Optional[List[str]] = None
    output_poll_interval_s: float = Field(default=DEFAULT_OUTPUT_POLL_INTERVAL_S, gt=0)


class GlobalConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    dashboard: DashboardConfig = DashboardConfig()
    agents: List[AgentConfig] = []
    default_agent: Optional[str] = None
    traffic: TrafficConfig = TrafficConfig()
    tmux: TmuxConfig = TmuxConfig()

    @model_validator(mode="after")
    def validate_default_agent(self) -> "GlobalConfig":
        if self.default_agent and self.default_agent not in {a.name for a in self.agents}:
            raise ValueError(f"default_agent {self.default_agent!r} is not a configured agent")
        return self

    def get_agent(self, name: str) -> Optional[AgentConfig]:
        for agent in self.agents:
            if agent.name == name:
                return agent
        return None

    @property
    def default_agent_config(self) -> Optional[AgentConfig]:
        """Configured default agent, else the first configured one."""
        if self.default_agent:
            return self.get_agent(self.default_agent)
        return self.agents[0] if self.agents else None
