"""
Pytest configuration and fixtures for pseudovault tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import AsyncGenerator, List, Tuple

import pytest
import asyncpg
from dotenv import load_dotenv

from pseudovault import (
    InMemoryAuthStore,
    InMemoryPersonalDataStore,
    InMemoryPseudonymStore,
    KeyMaterial,
    Role,
    StaticKeyProvider,
    UserInput,
    UserService,
)
from pseudovault.passwords import hash_password
from pseudovault.schema import SCHEMAS

TEST_KEY = bytes(range(32))
TEST_IV = bytes(range(16, 32))


class RecordingProbe:
    """UserServiceProbe that records every event as (name, args)."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, tuple]] = []

    def __getattr__(self, name: str):
        def record(*args, **kwargs):
            self.events.append((name, args + tuple(kwargs.values())))

        return record

    def names(self) -> List[str]:
        return [name for name, _ in self.events]


def fast_hash(password: str) -> str:
    """bcrypt with the minimum cost factor, to keep tests fast."""
    return hash_password(password, rounds=4)


@pytest.fixture
def key_material() -> KeyMaterial:
    return KeyMaterial(key=TEST_KEY, iv=TEST_IV, signing_secret=b"jwt-secret")


@pytest.fixture
def key_provider(key_material: KeyMaterial) -> StaticKeyProvider:
    return StaticKeyProvider(key_material)


@pytest.fixture
def personal_store() -> InMemoryPersonalDataStore:
    return InMemoryPersonalDataStore()


@pytest.fixture
def auth_store() -> InMemoryAuthStore:
    return InMemoryAuthStore()


@pytest.fixture
def pseudonym_store() -> InMemoryPseudonymStore:
    return InMemoryPseudonymStore()


@pytest.fixture
def probe() -> RecordingProbe:
    return RecordingProbe()


@pytest.fixture
def service(
    personal_store: InMemoryPersonalDataStore,
    auth_store: InMemoryAuthStore,
    pseudonym_store: InMemoryPseudonymStore,
    key_provider: StaticKeyProvider,
    probe: RecordingProbe,
) -> UserService:
    """UserService over in-memory stores."""
    return UserService(
        personal_store,
        auth_store,
        pseudonym_store,
        key_provider,
        password_hasher=fast_hash,
        probe=probe,
    )


@pytest.fixture
def ana() -> UserInput:
    return UserInput(
        username="ana.silva",
        password="correct horse battery",
        email="ana@x.com",
        name="Ana Silva",
        address="Rua Central 1, Lisboa",
        national_id=123456789,
        phone="+351912345678",
        organization_id="org-1",
        role=Role.ORGANIZATION_STAFF,
    )


@pytest.fixture
def bruno() -> UserInput:
    return UserInput(
        username="bruno",
        password="another password",
        email="bruno@x.com",
        name="Bruno Costa",
        address="Avenida Norte 22, Porto",
        national_id=987654321,
        phone="+351934567890",
        organization_id="org-2",
        role=Role.TECHNICIAN,
    )


@pytest.fixture
async def pg_pool() -> AsyncGenerator[asyncpg.Pool, None]:
    """Create a PostgreSQL connection pool for testing.

    All three tables live in the one test database.
    """
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(env_path)

    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set, skipping PostgreSQL tests")

    pool = await asyncpg.create_pool(database_url)
    if pool is None:
        pytest.skip("Failed to create PostgreSQL connection pool")

    for ddl in SCHEMAS.values():
        await pool.execute(ddl)
    await pool.execute(
        "TRUNCATE TABLE personal_data, auth_users, pseudonym_bindings RESTART IDENTITY"
    )

    yield pool

    await pool.close()
