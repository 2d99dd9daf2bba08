"""
Settings loaded from the environment (and a .env file, if present).

Environment variables:
    USERS_HOST, USERS_PORT, USERS_USER, USERS_PGPASSWORD, USERS_DATABASE
    AUTH_HOST, AUTH_PORT, AUTH_USER, AUTH_PGPASSWORD, AUTH_DATABASE
    PSEUDONYMS_HOST, PSEUDONYMS_PORT, PSEUDONYMS_USER, PSEUDONYMS_PGPASSWORD,
    PSEUDONYMS_DATABASE
    VAULT_HOST, VAULT_PORT, VAULT_TOKEN
    VAULT_SCHEME (default: http), VAULT_KV_MOUNT (default: kv),
    VAULT_SECRET_PATH (default: keys)
    KEY_CACHE_TTL_SECONDS (default: 300)
    KEY_FETCH_TIMEOUT_SECONDS (default: 5)
    DB_COMMAND_TIMEOUT_SECONDS (default: 10)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional
from urllib.parse import quote

from dotenv import load_dotenv

from .errors import ConfigError


def _require(env: Mapping[str, str], name: str) -> str:
    value = env.get(name)
    if value is None or value == "":
        raise ConfigError(f"{name} must be set in environment or .env file")
    return value


def _number(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


def _port(env: Mapping[str, str], name: str) -> int:
    raw = _require(env, name)
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings for one store."""

    host: str
    port: int
    user: str
    password: str = field(repr=False)
    database: str

    @classmethod
    def from_env(cls, prefix: str, env: Mapping[str, str]) -> DatabaseConfig:
        """Read {prefix}_HOST, _PORT, _USER, _PGPASSWORD and _DATABASE."""
        return cls(
            host=_require(env, f"{prefix}_HOST"),
            port=_port(env, f"{prefix}_PORT"),
            user=_require(env, f"{prefix}_USER"),
            password=_require(env, f"{prefix}_PGPASSWORD"),
            database=_require(env, f"{prefix}_DATABASE"),
        )

    @property
    def dsn(self) -> str:
        """Connection string including the password, each part percent-encoded."""
        user = quote(self.user, safe="")
        password = quote(self.password, safe="")
        database = quote(self.database, safe="")
        return f"postgresql://{user}:{password}@{self.host}:{self.port}/{database}"

    @property
    def safe_dsn(self) -> str:
        """Connection string without the password, for logging."""
        return f"postgresql://{self.user}@{self.host}:{self.port}/{self.database}"


@dataclass(frozen=True)
class VaultConfig:
    """Vault KV v2 location and credentials."""

    host: str
    port: int
    token: str = field(repr=False)
    scheme: str = "http"
    mount: str = "kv"
    path: str = "keys"

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"


@dataclass(frozen=True)
class Settings:
    """All runtime settings."""

    users_db: DatabaseConfig
    auth_db: DatabaseConfig
    pseudonyms_db: DatabaseConfig
    vault: VaultConfig
    key_cache_ttl: float = 300.0
    key_fetch_timeout: float = 5.0
    db_command_timeout: float = 10.0

    @classmethod
    def from_env(
        cls, env: Optional[Mapping[str, str]] = None, dotenv_path: Optional[str] = None
    ) -> Settings:
        """
        Build settings from the environment.

        Args:
            env: Mapping to read instead of os.environ (no .env loading then)
            dotenv_path: .env file to load; default searches from the cwd

        Raises:
            ConfigError: If a required value is missing or malformed
        """
        if env is None:
            load_dotenv(dotenv_path)
            env = os.environ

        return cls(
            users_db=DatabaseConfig.from_env("USERS", env),
            auth_db=DatabaseConfig.from_env("AUTH", env),
            pseudonyms_db=DatabaseConfig.from_env("PSEUDONYMS", env),
            vault=VaultConfig(
                host=_require(env, "VAULT_HOST"),
                port=_port(env, "VAULT_PORT"),
                token=_require(env, "VAULT_TOKEN"),
                scheme=env.get("VAULT_SCHEME") or "http",
                mount=env.get("VAULT_KV_MOUNT") or "kv",
                path=env.get("VAULT_SECRET_PATH") or "keys",
            ),
            key_cache_ttl=_number(env, "KEY_CACHE_TTL_SECONDS", 300.0),
            key_fetch_timeout=_number(env, "KEY_FETCH_TIMEOUT_SECONDS", 5.0),
            db_command_timeout=_number(env, "DB_COMMAND_TIMEOUT_SECONDS", 10.0),
        )
