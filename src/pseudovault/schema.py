"""
DDL for the three stores and the constraint names the service relies on.

Each store lives in its own database; apply_schema runs one store's DDL.
"""

from __future__ import annotations

from typing import Dict

import asyncpg

from .errors import StorageError

PERSONAL_EMAIL_CONSTRAINT = "personal_data_email_index_key"
PERSONAL_NATIONAL_ID_CONSTRAINT = "personal_data_national_id_index_key"
AUTH_USERNAME_CONSTRAINT = "auth_users_username_key"
PSEUDONYM_CONSTRAINT = "pseudonym_bindings_pseudonym_key"
PSEUDONYM_AUTH_ID_CONSTRAINT = "pseudonym_bindings_auth_row_id_key"

PERSONAL_DATA_DDL = f"""
CREATE TABLE IF NOT EXISTS personal_data (
    id                 BIGSERIAL PRIMARY KEY,
    name               TEXT NOT NULL,
    address            TEXT NOT NULL,
    national_id        TEXT NOT NULL,
    phone              TEXT NOT NULL,
    email              TEXT NOT NULL,
    email_index        TEXT NOT NULL,
    national_id_index  TEXT NOT NULL,
    CONSTRAINT {PERSONAL_EMAIL_CONSTRAINT} UNIQUE (email_index),
    CONSTRAINT {PERSONAL_NATIONAL_ID_CONSTRAINT} UNIQUE (national_id_index)
);
"""

AUTH_USERS_DDL = f"""
DO $$ BEGIN
    CREATE TYPE user_role AS ENUM (
        'ADMIN',
        'STAFF',
        'ORGANIZATION_OWNER',
        'ORGANIZATION_STAFF',
        'AGRICULTURAL_PRODUCER',
        'TECHNICIAN'
    );
EXCEPTION
    WHEN duplicate_object THEN NULL;
END $$;

CREATE TABLE IF NOT EXISTS auth_users (
    id               BIGSERIAL PRIMARY KEY,
    username         TEXT NOT NULL,
    password_hash    TEXT NOT NULL,
    organization_id  TEXT NOT NULL,
    role             user_role NOT NULL,
    CONSTRAINT {AUTH_USERNAME_CONSTRAINT} UNIQUE (username)
);
"""

PSEUDONYM_BINDINGS_DDL = f"""
CREATE TABLE IF NOT EXISTS pseudonym_bindings (
    pseudonym        TEXT NOT NULL,
    personal_row_id  TEXT NOT NULL,
    auth_row_id      TEXT NOT NULL,
    CONSTRAINT {PSEUDONYM_CONSTRAINT} UNIQUE (pseudonym),
    CONSTRAINT {PSEUDONYM_AUTH_ID_CONSTRAINT} UNIQUE (auth_row_id)
);
"""

SCHEMAS: Dict[str, str] = {
    "personal_data": PERSONAL_DATA_DDL,
    "auth_users": AUTH_USERS_DDL,
    "pseudonym_bindings": PSEUDONYM_BINDINGS_DDL,
}


async def apply_schema(pool: asyncpg.Pool, table: str) -> None:
    """
    Create one store's table (idempotent).

    Args:
        pool: Pool connected to the store that owns the table
        table: One of the keys of SCHEMAS

    Raises:
        KeyError: If table is unknown
        StorageError: If the DDL fails
    """
    ddl = SCHEMAS[table]
    try:
        await pool.execute(ddl)
    except Exception as e:
        raise StorageError(f"Failed to apply schema for {table}: {e}")
