"""Runtime configuration — parse uxflow.yaml."""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATHS = (Path(".uxflow/config.yaml"), Path("uxflow.yaml"))


class AgentSettings(BaseModel):
    backend: Literal["claude", "codex"] = "claude"
    max_turns: int = Field(default=30, ge=1)
    timeout: int = Field(default=900, ge=1)  # seconds per task
    system_prompt: str = ""


class ParallelSettings(BaseModel):
    max_concurrent: int = Field(default=5, ge=1)


class NotificationChannel(BaseModel):
    type: str  # "stdout" | "slack"
    webhook_url: Optional[str] = None


class BreakpointSettings(BaseModel):
    mode: Literal["auto", "prompt"] = "auto"
    channels: list[NotificationChannel] = Field(default_factory=lambda: [
        NotificationChannel(type="stdout"),
    ])


class RuntimeConfig(BaseModel):
    version: str = "1"
    agent: AgentSettings = Field(default_factory=AgentSettings)
    parallel: ParallelSettings = Field(default_factory=ParallelSettings)
    runs_dir: Path = Path(".uxflow/runs")
    breakpoints: BreakpointSettings = Field(default_factory=BreakpointSettings)
    log_level: str = "INFO"

    @classmethod
    def from_yaml(cls, path: str | Path) -> RuntimeConfig:
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data or {})

    @classmethod
    def from_dict(cls, data: dict) -> RuntimeConfig:
        return cls.model_validate(data)

    @classmethod
    def discover(cls, path: str | Path | None = None) -> RuntimeConfig:
        """Load *path*, else the first default location that exists, else defaults."""
        if path:
            return cls.from_yaml(path)
        for candidate in DEFAULT_CONFIG_PATHS:
            if candidate.exists():
                return cls.from_yaml(candidate)
        return cls()
