"""Runtime configuration for the expense API.

Values are resolved from built-in defaults, then an optional YAML file (path
taken from ``EXPENSE_API_CONFIG``), then environment variables.  A ``.env``
file in the working directory is loaded first so local development does not
need exported variables; variables already present in the environment win.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from functools import cache
from pathlib import Path
from typing import Any, Final

import yaml
from dotenv import load_dotenv

from .errors import ConfigError

CONFIG_ENV_FLAG: Final[str] = "EXPENSE_API_CONFIG"
DEFAULT_SQLITE_PATH: Final[Path] = Path(__file__).with_name("expenses.db")

# env var -> (settings field, converter name)
_ENV_FIELDS: Final[dict[str, tuple[str, str]]] = {
    "DATABASE_URL": ("database_url", "str"),
    "ACCESS_TOKEN_SECRET": ("access_token_secret", "str"),
    "ACCESS_TOKEN_EXPIRE_MINUTES": ("access_token_expire_minutes", "int"),
    "APP_ENV": ("environment", "str"),
    "CORS_ORIGINS": ("cors_origins", "list"),
    "HOST": ("host", "str"),
    "PORT": ("port", "int"),
    "MAX_BODY_BYTES": ("max_body_bytes", "int"),
}


@dataclass(frozen=True, slots=True)
class Settings:
    """Resolved settings for one process.

    Attributes:
      database_url: SQLAlchemy URL of the expense database.
      access_token_secret: HMAC secret used to sign access tokens.
      access_token_expire_minutes: Token and cookie lifetime.
      environment: ``production`` turns on secure cookies.
      cors_origins: Browser origins allowed to call the API with credentials.
      host: Bind address used by ``expense-api serve``.
      port: Bind port used by ``expense-api serve``.
      max_body_bytes: Largest request body accepted, by declared length.
    """

    database_url: str = f"sqlite:///{DEFAULT_SQLITE_PATH}"
    access_token_secret: str = "dev-secret-change-me"
    access_token_expire_minutes: int = 24 * 60
    environment: str = "development"
    cors_origins: tuple[str, ...] = field(default_factory=tuple)
    host: str = "127.0.0.1"
    port: int = 8000
    max_body_bytes: int = 16 * 1024

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"


def _convert(key: str, value: Any, kind: str) -> Any:
    if kind == "int":
        try:
            number = int(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{key} must be an integer, got {value!r}") from exc
        if number <= 0:
            raise ConfigError(f"{key} must be positive, got {number}")
        return number
    if kind == "list":
        if isinstance(value, str):
            items = value.split(",")
        elif isinstance(value, list | tuple):
            items = [str(item) for item in value]
        else:
            raise ConfigError(f"{key} must be a list or a comma separated string")
        return tuple(item.strip() for item in items if item.strip())
    return str(value)


def _read_config_file(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}
    if not isinstance(payload, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return payload


def load_settings(
    environ: Mapping[str, str] | None = None,
    config_path: Path | str | None = None,
) -> Settings:
    """Build :class:`Settings` from defaults, YAML and environment.

    Args:
      environ: Mapping used instead of :data:`os.environ`; when given, no
        ``.env`` file is read.
      config_path: YAML file overriding ``EXPENSE_API_CONFIG``.

    Raises:
      ConfigError: If a value cannot be converted or the YAML file is not a
        mapping.
    """

    if environ is None:
        load_dotenv(override=False)
        environ = os.environ

    settings = Settings()
    path = config_path or environ.get(CONFIG_ENV_FLAG)
    if path:
        file_values = _read_config_file(Path(path))
        known = {name for name, _ in _ENV_FIELDS.values()}
        kinds = {name: kind for name, kind in _ENV_FIELDS.values()}
        unknown = sorted(set(file_values) - known)
        if unknown:
            raise ConfigError(f"unknown configuration keys: {', '.join(unknown)}")
        settings = replace(
            settings,
            **{name: _convert(name, value, kinds[name]) for name, value in file_values.items()},
        )

    overrides: dict[str, Any] = {}
    for env_key, (name, kind) in _ENV_FIELDS.items():
        raw = environ.get(env_key)
        if raw is None or raw.strip() == "":
            continue
        overrides[name] = _convert(env_key, raw, kind)
    return replace(settings, **overrides)


@cache
def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""

    return load_settings()


__all__ = ["CONFIG_ENV_FLAG", "Settings", "get_settings", "load_settings"]
