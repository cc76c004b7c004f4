"""Application configuration.

Resolution order: built-in defaults, then a JSON file, then environment
variables. The result is an immutable ``AppConfig`` tree that callers pass
down explicitly.

File layout::

    {
      "mud": {"host": "arctic.org", "port": 2700},
      "llm": {
        "provider": "ollama",
        "ollama": {"baseUrl": "...", "model": "...", "temperature": 0.7},
        "openai": {"baseUrl": "...", "model": "...", "apiKey": "..."}
      },
      "coordinator": {"tokenBudget": 100000, "requireApproval": false},
      "characters": {"databaseUrl": "sqlite:///data/characters.db"},
      "logging": {"level": "info", "file": null}
    }

A top-level ``ollama`` section from older files is read as
``llm.ollama`` with the provider defaulting to ``ollama``.
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from .core.errors import ConfigError

PROVIDERS = ("ollama", "openai")

DEFAULTS: dict[str, Any] = {
    "mud": {
        "host": "arctic.org",
        "port": 2700,
        "connectTimeout": 30.0,
        "initialWaitSeconds": 5.0,
        "encoding": "utf-8",
    },
    "llm": {
        "provider": "ollama",
        "ollama": {
            "baseUrl": "http://localhost:11434",
            "model": "llama3",
            "temperature": 0.7,
            "timeout": 30.0,
        },
    },
    "coordinator": {
        "tokenBudget": 100_000,
        "requireApproval": False,
        "fallbackCommand": "look",
        "contactEmail": None,
    },
    "characters": {
        "databaseUrl": "sqlite:///data/characters.db",
    },
    "logging": {
        "level": "info",
        "file": None,
    },
}

_ENV_MAPPINGS: dict[str, tuple[str, ...]] = {
    "MUD_HOST": ("mud", "host"),
    "MUD_PORT": ("mud", "port"),
    "LLM_PROVIDER": ("llm", "provider"),
    "TOKEN_BUDGET": ("coordinator", "tokenBudget"),
    "REQUIRE_APPROVAL": ("coordinator", "requireApproval"),
    "DATABASE_URL": ("characters", "databaseUrl"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FILE": ("logging", "file"),
}

# Applied to whichever provider section is selected.
_PROVIDER_ENV_MAPPINGS: dict[str, str] = {
    "LLM_BASE_URL": "baseUrl",
    "LLM_MODEL": "model",
    "LLM_TEMPERATURE": "temperature",
}


@dataclass(frozen=True)
class SessionConfig:
    host: str = "arctic.org"
    port: int = 2700
    connect_timeout: float = 30.0
    initial_wait_seconds: float = 5.0
    encoding: str = "utf-8"


@dataclass(frozen=True)
class ProviderConfig:
    provider: str = "ollama"
    base_url: str = "http://localhost:11434"
    model: str = "llama3"
    temperature: float = 0.7
    api_key: str = ""
    timeout: float = 30.0


@dataclass(frozen=True)
class CoordinatorConfig:
    token_budget: int = 100_000
    require_approval: bool = False
    fallback_command: str = "look"
    contact_email: str | None = None


@dataclass(frozen=True)
class StorageConfig:
    database_url: str = "sqlite:///data/characters.db"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "info"
    file: str | None = None


@dataclass(frozen=True)
class AppConfig:
    session: SessionConfig
    provider: ProviderConfig
    coordinator: CoordinatorConfig
    storage: StorageConfig
    logging: LoggingConfig


def deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _read_file(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        raise ConfigError(f"Failed to load config file {path}: {exc}") from exc
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Failed to load config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Failed to load config file {path}: expected a JSON object")

    legacy = data.pop("ollama", None)
    if isinstance(legacy, dict):
        llm = data.setdefault("llm", {})
        llm.setdefault("provider", "ollama")
        llm["ollama"] = deep_merge(llm.get("ollama") or {}, legacy)
    return data


def _set_path(tree: dict[str, Any], keys: tuple[str, ...], value: Any) -> None:
    node = tree
    for key in keys[:-1]:
        node = node.setdefault(key, {})
    node[keys[-1]] = value


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _as_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def _as_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc


def _apply_environment(tree: dict[str, Any], environ: Mapping[str, str]) -> None:
    for env_name, keys in _ENV_MAPPINGS.items():
        if environ.get(env_name):
            _set_path(tree, keys, environ[env_name])

    provider = str(tree.get("llm", {}).get("provider") or "ollama")
    for env_name, key in _PROVIDER_ENV_MAPPINGS.items():
        if environ.get(env_name):
            _set_path(tree, ("llm", provider, key), environ[env_name])
    if environ.get("OPENAI_API_KEY"):
        _set_path(tree, ("llm", "openai", "apiKey"), environ["OPENAI_API_KEY"])


def _build(tree: dict[str, Any]) -> AppConfig:
    mud = tree.get("mud") or {}
    port = _as_int(mud.get("port"), "mud.port")
    if port <= 0:
        raise ConfigError(f"mud.port must be positive, got {port}")
    host = str(mud.get("host") or "").strip()
    if not host:
        raise ConfigError("mud.host is required")

    llm = tree.get("llm") or {}
    provider = str(llm.get("provider") or "").strip().lower()
    if provider not in PROVIDERS:
        raise ConfigError(f"Unknown LLM provider {provider!r}; expected one of: {', '.join(PROVIDERS)}")
    section = llm.get(provider)
    if not isinstance(section, dict):
        raise ConfigError(f"LLM provider '{provider}' configuration not found in config.")
    if not section.get("baseUrl") or not section.get("model"):
        raise ConfigError(f"LLM provider '{provider}' needs both baseUrl and model")

    coordinator = tree.get("coordinator") or {}
    budget = _as_int(coordinator.get("tokenBudget"), "coordinator.tokenBudget")
    if budget <= 0:
        raise ConfigError(f"coordinator.tokenBudget must be positive, got {budget}")

    characters = tree.get("characters") or {}
    logging_tree = tree.get("logging") or {}

    return AppConfig(
        session=SessionConfig(
            host=host,
            port=port,
            connect_timeout=_as_float(mud.get("connectTimeout", 30.0), "mud.connectTimeout"),
            initial_wait_seconds=_as_float(mud.get("initialWaitSeconds", 5.0), "mud.initialWaitSeconds"),
            encoding=str(mud.get("encoding") or "utf-8"),
        ),
        provider=ProviderConfig(
            provider=provider,
            base_url=str(section["baseUrl"]),
            model=str(section["model"]),
            temperature=_as_float(section.get("temperature", 0.7), f"llm.{provider}.temperature"),
            api_key=str(section.get("apiKey") or ""),
            timeout=_as_float(section.get("timeout", 30.0), f"llm.{provider}.timeout"),
        ),
        coordinator=CoordinatorConfig(
            token_budget=budget,
            require_approval=_as_bool(coordinator.get("requireApproval", False)),
            fallback_command=str(coordinator.get("fallbackCommand") or "look"),
            contact_email=coordinator.get("contactEmail") or None,
        ),
        storage=StorageConfig(
            database_url=str(characters.get("databaseUrl") or StorageConfig.database_url),
        ),
        logging=LoggingConfig(
            level=str(logging_tree.get("level") or "info"),
            file=logging_tree.get("file") or None,
        ),
    )


def load_config(path: str | Path | None = "config.json", environ: Mapping[str, str] | None = None) -> AppConfig:
    tree = copy.deepcopy(DEFAULTS)
    if path is not None:
        tree = deep_merge(tree, _read_file(Path(path)))
    _apply_environment(tree, environ if environ is not None else {})
    return _build(tree)
