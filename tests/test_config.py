from __future__ import annotations

import json

import pytest

from mud_agent.config import load_config
from mud_agent.core.errors import ConfigError


def _write(tmp_path, data):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data) if not isinstance(data, str) else data, encoding="utf-8")
    return path


def test_defaults_when_file_missing(tmp_path):
    config = load_config(tmp_path / "absent.json", {})

    assert config.session.host == "arctic.org"
    assert config.session.port == 2700
    assert config.provider.provider == "ollama"
    assert config.provider.base_url == "http://localhost:11434"
    assert config.coordinator.token_budget == 100_000
    assert config.coordinator.require_approval is False
    assert config.storage.database_url == "sqlite:///data/characters.db"
    assert config.logging.level == "info"


def test_file_values_merge_over_defaults(tmp_path):
    path = _write(
        tmp_path,
        {
            "mud": {"host": "mud.example.org"},
            "llm": {"provider": "openai", "openai": {"baseUrl": "https://api.example/v1", "model": "gpt", "apiKey": "k"}},
            "coordinator": {"tokenBudget": 5000},
        },
    )

    config = load_config(path, {})

    assert config.session.host == "mud.example.org"
    assert config.session.port == 2700
    assert config.provider.provider == "openai"
    assert config.provider.base_url == "https://api.example/v1"
    assert config.provider.api_key == "k"
    assert config.coordinator.token_budget == 5000


def test_legacy_top_level_ollama_section(tmp_path):
    path = _write(tmp_path, {"ollama": {"model": "mistral", "temperature": 0.1}})

    config = load_config(path, {})

    assert config.provider.provider == "ollama"
    assert config.provider.model == "mistral"
    assert config.provider.temperature == 0.1
    assert config.provider.base_url == "http://localhost:11434"


def test_environment_overrides_file(tmp_path):
    path = _write(tmp_path, {"mud": {"host": "file.example"}})
    environ = {
        "MUD_HOST": "env.example",
        "MUD_PORT": "4000",
        "LLM_MODEL": "qwen",
        "LLM_TEMPERATURE": "0.3",
        "TOKEN_BUDGET": "2048",
        "REQUIRE_APPROVAL": "yes",
        "DATABASE_URL": "sqlite:///:memory:",
        "LOG_LEVEL": "debug",
    }

    config = load_config(path, environ)

    assert config.session.host == "env.example"
    assert config.session.port == 4000
    assert config.provider.model == "qwen"
    assert config.provider.temperature == 0.3
    assert config.coordinator.token_budget == 2048
    assert config.coordinator.require_approval is True
    assert config.storage.database_url == "sqlite:///:memory:"
    assert config.logging.level == "debug"


def test_openai_key_from_environment():
    environ = {
        "LLM_PROVIDER": "openai",
        "LLM_BASE_URL": "https://api.example/v1",
        "LLM_MODEL": "gpt",
        "OPENAI_API_KEY": "sk-test",
    }

    config = load_config(None, environ)

    assert config.provider.provider == "openai"
    assert config.provider.api_key == "sk-test"


@pytest.mark.parametrize(
    "data, message",
    [
        ("{not json", "Failed to load config file"),
        ({"mud": {"port": 0}}, "mud.port must be positive"),
        ({"mud": {"port": "telnet"}}, "mud.port must be an integer"),
        ({"llm": {"provider": "kobold"}}, "Unknown LLM provider"),
        ({"llm": {"provider": "openai"}}, "configuration not found"),
    ],
)
def test_invalid_configuration_raises(tmp_path, data, message):
    path = _write(tmp_path, data)
    with pytest.raises(ConfigError, match=message):
        load_config(path, {})
