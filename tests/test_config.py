"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from ravenmind.config.loader import ConfigError, load_config, save_config
from ravenmind.config.schema import AgentConfig, MemoryConfig, RavenmindConfig


def test_default_config():
    """Test default configuration values."""
    config = RavenmindConfig()

    assert config.ollama.model == "qwen2.5:14b"
    assert config.agent.max_iterations == 15
    assert config.memory.profile_threshold == 0.4
    assert config.memory.episodic_threshold == 0.55
    assert config.security.impersonation.block_threshold == 0.8
    assert "execute_command" in config.security.tools.owner_only


def test_missing_file_gives_defaults(tmp_path):
    """Test a missing config file falls back to defaults."""
    config = load_config(tmp_path / "absent.yaml")
    assert config == RavenmindConfig()


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "ravenmind.yaml"
    path.write_text("")

    assert load_config(path) == RavenmindConfig()


def test_partial_override(tmp_path):
    """Test nested sections merge over defaults."""
    path = tmp_path / "ravenmind.yaml"
    path.write_text(
        "ollama:\n"
        "  model: llama3.1:8b\n"
        "security:\n"
        "  owner_ids: ['123']\n"
        "memory:\n"
        "  tier_allocation:\n"
        "    active: 0.6\n"
    )

    config = load_config(path)

    assert config.ollama.model == "llama3.1:8b"
    assert config.ollama.host == "http://localhost:11434"
    assert config.security.owner_ids == ["123"]
    assert config.memory.tier_allocation.active == 0.6
    assert config.memory.tier_allocation.profile == 0.3


def test_invalid_yaml(tmp_path):
    path = tmp_path / "ravenmind.yaml"
    path.write_text("ollama: [unclosed")

    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(path)


def test_top_level_must_be_mapping(tmp_path):
    path = tmp_path / "ravenmind.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(ConfigError, match="must be a mapping"):
        load_config(path)


def test_validation_error(tmp_path):
    path = tmp_path / "ravenmind.yaml"
    path.write_text("agent:\n  max_iterations: 0\n")

    with pytest.raises(ConfigError, match="validation failed"):
        load_config(path)


def test_save_and_load(tmp_path):
    """Test a saved config loads back unchanged."""
    config = RavenmindConfig()
    config.gpu.total_vram_mb = 16384
    path = tmp_path / "nested" / "ravenmind.yaml"

    save_config(config, path)

    assert load_config(path) == config


def test_bounds_enforced():
    with pytest.raises(ValidationError):
        AgentConfig(max_iterations=51)
    with pytest.raises(ValidationError):
        MemoryConfig(conversation_ttl=10)
