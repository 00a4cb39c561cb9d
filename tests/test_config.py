import tomllib
from pathlib import Path

import pytest

from agentloop import __version__
from agentloop.config import (
    DEFAULT_MAX_LOOPS_FREE,
    AgentLoopConfig,
    dumps_toml,
    load_config,
    save_config,
)
from agentloop.errors import ConfigError
from agentloop.playback import AgentMode


def test_config_roundtrip(tmp_path: Path) -> None:
    config_path = tmp_path / "agentloop.toml"
    config = AgentLoopConfig.default()
    config.loop.max_loops = 7
    config.loop.mode = "pause"
    config.loop.short_delay_seconds = 0.0
    config.backend.primary = "claude"
    config.backend.fallback = "openai"
    config.backend.max_retries = 3
    config.agent.language = "French"
    config.agent.claude_model = "claude-sonnet-4-5"
    config.logging.file = "logs/agentloop.log"

    save_config(config_path, config)
    loaded = load_config(config_path)

    assert loaded.loop.max_loops == 7
    assert loaded.loop.agent_mode == AgentMode.PAUSE
    assert loaded.loop.short_delay_seconds == 0.0
    assert isinstance(loaded.loop.long_delay_seconds, float)
    assert loaded.backend.primary == "claude"
    assert loaded.backend.max_retries == 3
    assert loaded.agent.language == "French"
    assert loaded.agent.claude_model == "claude-sonnet-4-5"
    assert loaded.agent.model == "gpt-4o-mini"
    assert loaded.logging.file == "logs/agentloop.log"


def test_missing_file_yields_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "absent.toml")

    assert config.loop.max_loops == DEFAULT_MAX_LOOPS_FREE
    assert config.loop.agent_mode == AgentMode.AUTOMATIC
    assert config.loop.short_delay_seconds == pytest.approx(0.8)
    assert config.loop.long_delay_seconds == pytest.approx(1.0)


def test_toml_dump_contains_loop_fields() -> None:
    rendered = dumps_toml(AgentLoopConfig.default())

    assert "[loop]" in rendered
    assert "max_loops = 25" in rendered
    assert 'mode = "automatic"' in rendered
    assert "short_delay_seconds = 0.8" in rendered
    assert "long_delay_seconds = 1.0" in rendered
    assert "retry_backoff_seconds" in rendered
    assert "[logging]" in rendered


def test_unknown_mode_is_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "agentloop.toml"
    config_path.write_text('[loop]\nmode = "turbo"\n', encoding="utf-8")

    with pytest.raises(ConfigError, match="Unknown loop mode"):
        load_config(config_path)


def test_unknown_keys_are_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "agentloop.toml"
    config_path.write_text("[loop]\nmax_loopz = 3\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="Invalid configuration"):
        load_config(config_path)


def test_non_positive_loop_budget_is_rejected() -> None:
    with pytest.raises(ConfigError):
        AgentLoopConfig.from_dict({"loop": {"max_loops": 0}})


def test_package_version_constant_matches_pyproject() -> None:
    project_root = Path(__file__).resolve().parents[1]
    pyproject = tomllib.loads((project_root / "pyproject.toml").read_text(encoding="utf-8"))

    assert __version__ == pyproject["project"]["version"]
