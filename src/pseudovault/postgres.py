"""
PostgreSQL storage backends for the three stores.

This module provides:
- PostgresPersonalDataStore: personal_data table (randomized ciphertext)
- PostgresAuthStore: auth_users table (plaintext username, bcrypt hash)
- PostgresPseudonymStore: pseudonym_bindings table (ciphertext only)

Architecture:
- One asyncpg pool per store; the three databases share no transaction
- Personal-data insert and update run inside an explicit transaction
- Query time is bounded by the pool's command_timeout
- asyncpg.UniqueViolationError -> UniqueViolationError(constraint_name)
- Any other failure -> StorageError
"""

from __future__ import annotations

from typing import List, Optional

import asyncpg

from .errors import StorageError, UniqueViolationError
from .models import AuthRecord, PersonalDataRecord, PersonalFields, PseudonymBinding, Role
from .storage import AuthStore, PersonalDataStore, PseudonymStore


class _PostgresStore:
    """Shared pool handling."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        """
        Initialize PostgreSQL storage.

        Args:
            pool: asyncpg connection pool for this store's database
        """
        self._pool = pool

    @property
    def pool(self) -> asyncpg.Pool:
        """Get the connection pool."""
        return self._pool


# =============================================================================
# Personal Data Store
# =============================================================================


class PostgresPersonalDataStore(_PostgresStore, PersonalDataStore):
    """personal_data table."""

    async def insert(self, fields: PersonalFields) -> int:
        query = """
            INSERT INTO personal_data
                (name, address, national_id, phone, email, email_index, national_id_index)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING id
        """
        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    row_id = await conn.fetchval(
                        query,
                        fields.name,
                        fields.address,
                        fields.national_id,
                        fields.phone,
                        fields.email,
                        fields.email_index,
                        fields.national_id_index,
                    )
            return int(row_id)
        except asyncpg.UniqueViolationError as e:
            raise UniqueViolationError(e.constraint_name)
        except Exception as e:
            raise StorageError(f"Failed to insert personal data: {e}")

    async def get(self, row_id: int) -> Optional[PersonalDataRecord]:
        query = """
            SELECT id, name, address, national_id, phone, email,
                   email_index, national_id_index
            FROM personal_data
            WHERE id = $1
        """
        try:
            row = await self._pool.fetchrow(query, row_id)
        except Exception as e:
            raise StorageError(f"Failed to get personal data: {e}")
        if row is None:
            return None
        return self._row_to_record(row)

    async def update(self, row_id: int, fields: PersonalFields) -> bool:
        query = """
            UPDATE personal_data
            SET name = $1,
                address = $2,
                national_id = $3,
                phone = $4,
                email = $5,
                email_index = $6,
                national_id_index = $7
            WHERE id = $8
        """
        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    status = await conn.execute(
                        query,
                        fields.name,
                        fields.address,
                        fields.national_id,
                        fields.phone,
                        fields.email,
                        fields.email_index,
                        fields.national_id_index,
                        row_id,
                    )
        except asyncpg.UniqueViolationError as e:
            raise UniqueViolationError(e.constraint_name)
        except Exception as e:
            raise StorageError(f"Failed to update personal data: {e}")
        return _affected(status) > 0

    async def delete(self, row_id: int) -> bool:
        try:
            status = await self._pool.execute(
                "DELETE FROM personal_data WHERE id = $1", row_id
            )
        except Exception as e:
            raise StorageError(f"Failed to delete personal data: {e}")
        return _affected(status) > 0

    @staticmethod
    def _row_to_record(row: asyncpg.Record) -> PersonalDataRecord:
        """Convert database row to PersonalDataRecord."""
        return PersonalDataRecord(
            row_id=row["id"],
            fields=PersonalFields(
                name=row["name"],
                address=row["address"],
                national_id=row["national_id"],
                phone=row["phone"],
                email=row["email"],
                email_index=row["email_index"],
                national_id_index=row["national_id_index"],
            ),
        )


# =============================================================================
# Auth Store
# =============================================================================


class PostgresAuthStore(_PostgresStore, AuthStore):
    """auth_users table."""

    async def insert(
        self, username: str, password_hash: str, organization_id: str, role: Role
    ) -> int:
        query = """
            INSERT INTO auth_users (username, password_hash, organization_id, role)
            VALUES ($1, $2, $3, $4::user_role)
            RETURNING id
        """
        try:
            row_id = await self._pool.fetchval(
                query, username, password_hash, organization_id, role.value
            )
            return int(row_id)
        except asyncpg.UniqueViolationError as e:
            raise UniqueViolationError(e.constraint_name)
        except Exception as e:
            raise StorageError(f"Failed to insert auth user: {e}")

    async def get(self, row_id: int) -> Optional[AuthRecord]:
        query = """
            SELECT id, username, password_hash, organization_id, role::TEXT AS role
            FROM auth_users
            WHERE id = $1
        """
        try:
            row = await self._pool.fetchrow(query, row_id)
        except Exception as e:
            raise StorageError(f"Failed to get auth user: {e}")
        if row is None:
            return None
        return self._row_to_record(row)

    async def list_all(self) -> List[AuthRecord]:
        query = """
            SELECT id, username, password_hash, organization_id, role::TEXT AS role
            FROM auth_users
            ORDER BY id
        """
        try:
            rows = await self._pool.fetch(query)
        except Exception as e:
            raise StorageError(f"Failed to list auth users: {e}")
        return [self._row_to_record(row) for row in rows]

    async def delete(self, row_id: int) -> bool:
        try:
            status = await self._pool.execute("DELETE FROM auth_users WHERE id = $1", row_id)
        except Exception as e:
            raise StorageError(f"Failed to delete auth user: {e}")
        return _affected(status) > 0

    @staticmethod
    def _row_to_record(row: asyncpg.Record) -> AuthRecord:
        """Convert database row to AuthRecord."""
        return AuthRecord(
            row_id=row["id"],
            username=row["username"],
            password_hash=row["password_hash"],
            organization_id=row["organization_id"],
            role=Role.from_str(row["role"]),
        )


# =============================================================================
# Pseudonym Store
# =============================================================================


class PostgresPseudonymStore(_PostgresStore, PseudonymStore):
    """pseudonym_bindings table."""

    async def insert(self, binding: PseudonymBinding) -> None:
        query = """
            INSERT INTO pseudonym_bindings (pseudonym, personal_row_id, auth_row_id)
            VALUES ($1, $2, $3)
        """
        try:
            await self._pool.execute(
                query,
                binding.pseudonym_cipher,
                binding.personal_row_id_cipher,
                binding.auth_row_id_cipher,
            )
        except asyncpg.UniqueViolationError as e:
            raise UniqueViolationError(e.constraint_name)
        except Exception as e:
            raise StorageError(f"Failed to insert pseudonym binding: {e}")

    async def find_by_pseudonym(self, pseudonym_cipher: str) -> Optional[PseudonymBinding]:
        query = """
            SELECT pseudonym, personal_row_id, auth_row_id
            FROM pseudonym_bindings
            WHERE pseudonym = $1
        """
        try:
            row = await self._pool.fetchrow(query, pseudonym_cipher)
        except Exception as e:
            raise StorageError(f"Failed to find pseudonym binding: {e}")
        return self._row_to_binding(row) if row is not None else None

    async def find_by_auth_row_id(self, auth_row_id_cipher: str) -> Optional[PseudonymBinding]:
        query = """
            SELECT pseudonym, personal_row_id, auth_row_id
            FROM pseudonym_bindings
            WHERE auth_row_id = $1
        """
        try:
            row = await self._pool.fetchrow(query, auth_row_id_cipher)
        except Exception as e:
            raise StorageError(f"Failed to find pseudonym binding: {e}")
        return self._row_to_binding(row) if row is not None else None

    async def delete_by_pseudonym(self, pseudonym_cipher: str) -> bool:
        try:
            status = await self._pool.execute(
                "DELETE FROM pseudonym_bindings WHERE pseudonym = $1", pseudonym_cipher
            )
        except Exception as e:
            raise StorageError(f"Failed to delete pseudonym binding: {e}")
        return _affected(status) > 0

    @staticmethod
    def _row_to_binding(row: asyncpg.Record) -> PseudonymBinding:
        """Convert database row to PseudonymBinding."""
        return PseudonymBinding(
            pseudonym_cipher=row["pseudonym"],
            personal_row_id_cipher=row["personal_row_id"],
            auth_row_id_cipher=row["auth_row_id"],
        )


def _affected(status: str) -> int:
    """Row count from an asyncpg command status such as 'DELETE 1'."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0
