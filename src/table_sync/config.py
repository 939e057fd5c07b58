from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_BASE_URL = "http://localhost:5000"
DEFAULT_USERS_PATH = "/users"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class ClientConfig:
    env_name: str
    api_base_url: str
    users_path: str = DEFAULT_USERS_PATH
    connect_timeout_seconds: float = 5.0
    read_timeout_seconds: float = 15.0
    retries: int = 0
    retry_backoff_seconds: float = 0.3
    max_connections: int = 10
    verify_ssl: bool = True
    debounce_ms: int = 500
    default_page_size: int = 5
    reset_page_on_change: bool = False

    @property
    def normalized_env(self) -> str:
        return self.env_name.lower().strip()


def _coerce_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _read_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected a number, got {raw!r}") from exc


def _read_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected an integer, got {raw!r}") from exc


def _validate(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


def load_config(env_file: str | None = None) -> ClientConfig:
    """Load config from environment with optional .env override."""
    load_dotenv(env_file)

    env_name = (os.getenv("TABLE_SYNC_ENV") or "dev").strip()
    env_key = env_name.upper()

    api_base_url = (
        (os.getenv(f"TABLE_SYNC_API_BASE_URL_{env_key}") or "").strip()
        or (os.getenv("TABLE_SYNC_API_BASE_URL") or DEFAULT_BASE_URL).strip()
    )
    _validate(bool(api_base_url), "Invalid TABLE_SYNC_API_BASE_URL: expected a non-empty URL")

    users_path = (os.getenv("TABLE_SYNC_USERS_PATH") or DEFAULT_USERS_PATH).strip()
    _validate(
        users_path.startswith("/"),
        f"Invalid TABLE_SYNC_USERS_PATH: expected a path starting with '/', got {users_path!r}",
    )

    connect_timeout_seconds = _read_float("TABLE_SYNC_CONNECT_TIMEOUT_SECONDS", "5")
    _validate(
        connect_timeout_seconds > 0,
        f"Invalid TABLE_SYNC_CONNECT_TIMEOUT_SECONDS: expected > 0, got {connect_timeout_seconds}",
    )

    read_timeout_seconds = _read_float("TABLE_SYNC_READ_TIMEOUT_SECONDS", "15")
    _validate(
        read_timeout_seconds > 0,
        f"Invalid TABLE_SYNC_READ_TIMEOUT_SECONDS: expected > 0, got {read_timeout_seconds}",
    )

    retries = _read_int("TABLE_SYNC_RETRIES", "0")
    _validate(retries >= 0, f"Invalid TABLE_SYNC_RETRIES: expected >= 0, got {retries}")

    retry_backoff_seconds = _read_float("TABLE_SYNC_RETRY_BACKOFF_SECONDS", "0.3")
    _validate(
        retry_backoff_seconds >= 0,
        f"Invalid TABLE_SYNC_RETRY_BACKOFF_SECONDS: expected >= 0, got {retry_backoff_seconds}",
    )

    max_connections = _read_int("TABLE_SYNC_MAX_CONNECTIONS", "10")
    _validate(
        max_connections >= 1,
        f"Invalid TABLE_SYNC_MAX_CONNECTIONS: expected >= 1, got {max_connections}",
    )

    debounce_ms = _read_int("TABLE_SYNC_DEBOUNCE_MS", "500")
    _validate(debounce_ms >= 0, f"Invalid TABLE_SYNC_DEBOUNCE_MS: expected >= 0, got {debounce_ms}")

    default_page_size = _read_int("TABLE_SYNC_DEFAULT_PAGE_SIZE", "5")
    _validate(
        default_page_size > 0,
        f"Invalid TABLE_SYNC_DEFAULT_PAGE_SIZE: expected > 0, got {default_page_size}",
    )

    return ClientConfig(
        env_name=env_name,
        api_base_url=api_base_url.rstrip("/"),
        users_path=users_path,
        connect_timeout_seconds=connect_timeout_seconds,
        read_timeout_seconds=read_timeout_seconds,
        retries=retries,
        retry_backoff_seconds=retry_backoff_seconds,
        max_connections=max_connections,
        verify_ssl=_coerce_bool(os.getenv("TABLE_SYNC_VERIFY_SSL"), True),
        debounce_ms=debounce_ms,
        default_page_size=default_page_size,
        reset_page_on_change=_coerce_bool(os.getenv("TABLE_SYNC_RESET_PAGE_ON_CHANGE"), False),
    )
