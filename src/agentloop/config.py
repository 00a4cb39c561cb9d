from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from agentloop.errors import ConfigError
from agentloop.playback import AgentMode

BackendName = Literal["openai", "claude"]
BACKEND_NAMES: tuple[str, ...] = ("openai", "claude")

DEFAULT_MAX_LOOPS_FREE = 25
TIMEOUT_SHORT = 0.8
TIMEOUT_LONG = 1.0


@dataclass(slots=True)
class LoopConfig:
    max_loops: int = DEFAULT_MAX_LOOPS_FREE
    mode: str = AgentMode.AUTOMATIC.value
    short_delay_seconds: float = TIMEOUT_SHORT
    long_delay_seconds: float = TIMEOUT_LONG

    @property
    def agent_mode(self) -> AgentMode:
        try:
            return AgentMode(self.mode)
        except ValueError as exc:
            raise ConfigError(
                f"Unknown loop mode '{self.mode}'. Expected one of: "
                + ", ".join(item.value for item in AgentMode)
            ) from exc


@dataclass(slots=True)
class BackendConfig:
    primary: BackendName = "openai"
    fallback: BackendName = "claude"
    max_retries: int = 1
    retry_backoff_seconds: float = 0.5
    timeout_seconds: float = 90.0


@dataclass(slots=True)
class AgentConfig:
    # model names are per backend; an empty claude_model keeps the CLI default
    model: str = "gpt-4o-mini"
    claude_model: str = ""
    language: str = "English"
    temperature: float = 0.9
    max_tokens: int = 500


@dataclass(slots=True)
class LoggingConfig:
    level: str = "info"
    file: str = ""


@dataclass(slots=True)
class AgentLoopConfig:
    loop: LoopConfig = field(default_factory=LoopConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def default(cls) -> AgentLoopConfig:
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentLoopConfig:
        try:
            config = cls(
                loop=LoopConfig(**data.get("loop", {})),
                backend=BackendConfig(**data.get("backend", {})),
                agent=AgentConfig(**data.get("agent", {})),
                logging=LoggingConfig(**data.get("logging", {})),
            )
        except TypeError as exc:
            raise ConfigError(f"Invalid configuration: {exc}") from exc
        config.validate()
        return config

    def validate(self) -> None:
        _ = self.loop.agent_mode
        if self.loop.max_loops < 1:
            raise ConfigError("loop.max_loops must be at least 1.")
        if self.loop.short_delay_seconds < 0 or self.loop.long_delay_seconds < 0:
            raise ConfigError("Loop delays cannot be negative.")
        for slot, name in (("primary", self.backend.primary), ("fallback", self.backend.fallback)):
            if name not in BACKEND_NAMES:
                raise ConfigError(f"Unsupported {slot} backend: {name}")

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return {
            "loop": {
                "max_loops": self.loop.max_loops,
                "mode": self.loop.mode,
                "short_delay_seconds": self.loop.short_delay_seconds,
                "long_delay_seconds": self.loop.long_delay_seconds,
            },
            "backend": {
                "primary": self.backend.primary,
                "fallback": self.backend.fallback,
                "max_retries": self.backend.max_retries,
                "retry_backoff_seconds": self.backend.retry_backoff_seconds,
                "timeout_seconds": self.backend.timeout_seconds,
            },
            "agent": {
                "model": self.agent.model,
                "claude_model": self.agent.claude_model,
                "language": self.agent.language,
                "temperature": self.agent.temperature,
                "max_tokens": self.agent.max_tokens,
            },
            "logging": {
                "level": self.logging.level,
                "file": self.logging.file,
            },
        }


def _toml_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        rendered = f"{value:.3f}".rstrip("0")
        return rendered + "0" if rendered.endswith(".") else rendered
    if isinstance(value, list):
        return "[" + ", ".join(_toml_value(item) for item in value) + "]"
    return json.dumps(str(value), ensure_ascii=False)


def dumps_toml(config: AgentLoopConfig) -> str:
    data = config.to_dict()
    lines: list[str] = []
    for section in ("loop", "backend", "agent", "logging"):
        lines.append(f"[{section}]")
        for key, value in data[section].items():
            lines.append(f"{key} = {_toml_value(value)}")
        lines.append("")
    return "\n".join(lines).strip() + "\n"


def load_config(path: Path) -> AgentLoopConfig:
    if not path.exists():
        return AgentLoopConfig.default()
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Could not parse {path}: {exc}") from exc
    return AgentLoopConfig.from_dict(data)


def save_config(path: Path, config: AgentLoopConfig) -> None:
    path.write_text(dumps_toml(config), encoding="utf-8")
