"""
Wiring of a UserService against the real stores and Vault.

Usage:
    settings = Settings.from_env()
    async with open_user_service(settings) as service:
        user = await service.get_user_by_id(pseudonym)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import asyncpg
import httpx

from .config import DatabaseConfig, Settings
from .errors import StoreUnavailableError
from .key_provider import CachedKeyProvider, VaultKeyProvider
from .postgres import PostgresAuthStore, PostgresPersonalDataStore, PostgresPseudonymStore
from .service import UserService


@dataclass
class Pools:
    """One asyncpg pool per store."""

    users: asyncpg.Pool
    auth: asyncpg.Pool
    pseudonyms: asyncpg.Pool


async def create_pool(config: DatabaseConfig, command_timeout: float) -> asyncpg.Pool:
    """
    Create a pool for one store.

    Raises:
        StoreUnavailableError: If the store cannot be reached
    """
    try:
        pool = await asyncpg.create_pool(
            config.dsn, command_timeout=command_timeout, timeout=command_timeout
        )
    except Exception as e:
        raise StoreUnavailableError(f"Cannot connect to {config.safe_dsn}: {type(e).__name__}")
    if pool is None:
        raise StoreUnavailableError(f"Failed to create connection pool for {config.safe_dsn}")
    return pool


@asynccontextmanager
async def open_pools(settings: Settings) -> AsyncIterator[Pools]:
    """Open the three pools, closing any already opened on failure."""
    opened: list[asyncpg.Pool] = []
    try:
        for config in (settings.users_db, settings.auth_db, settings.pseudonyms_db):
            opened.append(await create_pool(config, settings.db_command_timeout))
        pools = Pools(users=opened[0], auth=opened[1], pseudonyms=opened[2])
        yield pools
    finally:
        for pool in opened:
            await pool.close()


@asynccontextmanager
async def open_user_service(settings: Settings) -> AsyncIterator[UserService]:
    """Yield a UserService backed by Postgres and a cached Vault key provider."""
    async with open_pools(settings) as pools:
        async with httpx.AsyncClient(
            base_url=settings.vault.base_url, timeout=settings.key_fetch_timeout
        ) as client:
            vault = VaultKeyProvider(
                client,
                token=settings.vault.token,
                mount=settings.vault.mount,
                path=settings.vault.path,
                timeout=settings.key_fetch_timeout,
            )
            key_provider = CachedKeyProvider(
                vault,
                ttl=settings.key_cache_ttl,
                # room for the provider's own retries
                fetch_timeout=settings.key_fetch_timeout * 3,
            )
            yield UserService(
                PostgresPersonalDataStore(pools.users),
                PostgresAuthStore(pools.auth),
                PostgresPseudonymStore(pools.pseudonyms),
                key_provider,
            )
