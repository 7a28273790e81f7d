"""Configuration helpers for the bk-image CLI."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from bk_image_sdk.backends import ALLOWED_BACKENDS
from bk_image_sdk.backends.graphql import DEFAULT_GRAPHQL_URL
from bk_image_sdk.backends.session import DEFAULT_WEB_BASE

DEFAULT_CONFIG_PATH = Path.home() / ".bk_image" / "config.toml"
DEFAULT_BACKEND = "session"
DEFAULT_TIMEOUT = 30.0
WEB_BASE_ENV_VAR = "BK_IMAGE_WEB_BASE"
GRAPHQL_URL_ENV_VAR = "BK_IMAGE_GRAPHQL_URL"
BACKEND_ENV_VAR = "BK_IMAGE_BACKEND"


@dataclass(frozen=True)
class CLIConfig:
    web_base: str = DEFAULT_WEB_BASE
    graphql_url: str = DEFAULT_GRAPHQL_URL
    backend: str = DEFAULT_BACKEND
    timeout: float = DEFAULT_TIMEOUT


class ConfigError(ValueError):
    """Raised when CLI config is invalid."""


def _load_toml(path: Path) -> dict[str, Any]:
    raw = path.read_text(encoding="utf-8")
    try:
        return tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid TOML in {path}: {exc}") from exc


def _setting(source: dict[str, Any], key: str, env_var: str, default: str) -> str:
    env_value = os.getenv(env_var)
    if env_value and env_value.strip():
        return env_value.strip()
    value = str(source.get(key, default)).strip()
    if not value:
        raise ConfigError(f"{key} must not be empty")
    return value


def _to_timeout(value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigError("timeout must be a positive number")
    try:
        timeout = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError("timeout must be a positive number") from exc
    if timeout <= 0:
        raise ConfigError("timeout must be a positive number")
    return timeout


def load_cli_config(path: str | Path | None = None) -> CLIConfig:
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    parsed = _load_toml(config_path) if config_path.exists() else {}

    section = parsed.get("cli")
    if isinstance(section, dict):
        source = section
    elif section is None:
        source = parsed
    else:
        raise ConfigError("[cli] must be a table")

    web_base = _setting(source, "web_base", WEB_BASE_ENV_VAR, DEFAULT_WEB_BASE)
    graphql_url = _setting(source, "graphql_url", GRAPHQL_URL_ENV_VAR, DEFAULT_GRAPHQL_URL)

    backend = _setting(source, "backend", BACKEND_ENV_VAR, DEFAULT_BACKEND).lower()
    if backend not in ALLOWED_BACKENDS:
        raise ConfigError(f"backend must be one of: {', '.join(ALLOWED_BACKENDS)}")

    timeout = _to_timeout(source.get("timeout", DEFAULT_TIMEOUT))

    return CLIConfig(
        web_base=web_base,
        graphql_url=graphql_url,
        backend=backend,
        timeout=timeout,
    )
