"""YAML + environment variable configuration loading.

Config file: config/chatgate.yaml
Env var override prefix: CHATGATE_
Nesting convention: double underscore (e.g. CHATGATE_OPENAI__MODEL)

The plain deployment variables (OPENAI_API_KEY, OPENAI_MODEL, MAX_TOKENS,
TEMPERATURE, ENVIRONMENT, ALLOWED_ORIGINS) are honoured as well, below the
prefixed overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from chatgate.completion import CompletionConfig

_DEFAULT_CONFIG_PATH = Path("config/chatgate.yaml")

_DEFAULTS: dict[str, Any] = {
    "server": {
        "host": "0.0.0.0",
        "port": 8787,
    },
    "openai": {
        "api_key": "",
        "base_url": "https://api.openai.com/v1",
        "model": "gpt-3.5-turbo",
        "max_tokens": 1000,
        "temperature": 0.7,
    },
    "service": {
        "environment": "development",
    },
    "cors": {
        "allowed_origins": "",
    },
    "logging": {
        "level": "INFO",
    },
}

ENV_PREFIX = "CHATGATE_"

_PLAIN_ENV_VARS: dict[str, tuple[str, str]] = {
    "OPENAI_API_KEY": ("openai", "api_key"),
    "OPENAI_MODEL": ("openai", "model"),
    "MAX_TOKENS": ("openai", "max_tokens"),
    "TEMPERATURE": ("openai", "temperature"),
    "ENVIRONMENT": ("service", "environment"),
    "ALLOWED_ORIGINS": ("cors", "allowed_origins"),
}

# Never coerced: a numeric-looking API key or model name is still a string.
_STRING_KEYS = {"api_key", "base_url", "model", "environment", "allowed_origins"}


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge override into base, recursively for nested dicts."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _coerce_value(value: str) -> int | float | bool | str:
    """Attempt to coerce a string env var value to a typed value."""
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value


def _set(config: dict, parts: list[str], value: str) -> None:
    target = config
    for part in parts[:-1]:
        if part not in target:
            target[part] = {}
        target = target[part]
    leaf = parts[-1]
    target[leaf] = value if leaf in _STRING_KEYS else _coerce_value(value)


def _apply_plain_env(config: dict) -> dict:
    """Apply the unprefixed deployment variables."""
    for name, path in _PLAIN_ENV_VARS.items():
        value = os.environ.get(name)
        if value is not None:
            _set(config, list(path), value)
    return config


def _apply_env_overrides(config: dict) -> dict:
    """Apply CHATGATE_ prefixed environment variables as overrides.

    Double underscore separates nesting levels:
        CHATGATE_SERVER__PORT=9090 -> config["server"]["port"] = 9090
    """
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        parts = key[len(ENV_PREFIX) :].lower().split("__")
        _set(config, parts, value)
    return config


def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """Load configuration from YAML file with env var overrides.

    Precedence (highest wins): prefixed env vars > plain env vars > YAML file > defaults.
    """
    config = {k: v.copy() if isinstance(v, dict) else v for k, v in _DEFAULTS.items()}

    path = config_path or _DEFAULT_CONFIG_PATH
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config = _deep_merge(config, file_config)

    config = _apply_plain_env(config)
    config = _apply_env_overrides(config)
    return config


def _as_int(value: Any, name: str) -> int:
    """Strict integer: no bools, no fractional values."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValueError(f"{name} must be an integer, got {value!r}")


def _as_float(value: Any, name: str) -> float:
    """Strict number: no bools."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            pass
    raise ValueError(f"{name} must be a number, got {value!r}")


def completion_config(config: dict[str, Any]) -> CompletionConfig:
    """Build the immutable completion settings from a loaded config dict."""
    openai = config["openai"]
    return CompletionConfig(
        api_key=str(openai.get("api_key") or ""),
        model=str(openai.get("model") or _DEFAULTS["openai"]["model"]),
        max_tokens=_as_int(
            openai.get("max_tokens", _DEFAULTS["openai"]["max_tokens"]), "max_tokens"
        ),
        temperature=_as_float(
            openai.get("temperature", _DEFAULTS["openai"]["temperature"]), "temperature"
        ),
        base_url=str(openai.get("base_url") or _DEFAULTS["openai"]["base_url"]),
    )


def parse_origins(raw: str | list[str] | None) -> list[str]:
    """Split the comma-separated allowed-origins setting."""
    if not raw:
        return []
    if isinstance(raw, list):
        return [str(o).strip() for o in raw if str(o).strip()]
    return [o.strip() for o in str(raw).split(",") if o.strip()]
