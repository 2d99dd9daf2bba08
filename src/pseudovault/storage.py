"""
Storage abstractions for the three stores.

This module provides:
- PersonalDataStore, AuthStore, PseudonymStore: Abstract store interfaces
- InMemoryPersonalDataStore, InMemoryAuthStore, InMemoryPseudonymStore:
  in-memory implementations for testing and local development

Every implementation raises StorageError on backend failure and
UniqueViolationError (carrying the constraint name) when a uniqueness
constraint rejects a write. The in-memory stores enforce the same
constraints as the Postgres DDL in schema.py.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, List, Optional

from .errors import UniqueViolationError
from .models import AuthRecord, PersonalDataRecord, PersonalFields, PseudonymBinding, Role
from .schema import (
    AUTH_USERNAME_CONSTRAINT,
    PERSONAL_EMAIL_CONSTRAINT,
    PERSONAL_NATIONAL_ID_CONSTRAINT,
    PSEUDONYM_AUTH_ID_CONSTRAINT,
    PSEUDONYM_CONSTRAINT,
)


class PersonalDataStore(ABC):
    """
    Personal-data store interface.

    insert and update are each one transaction on this store.
    """

    @abstractmethod
    async def insert(self, fields: PersonalFields) -> int:
        """Insert a row and return its store-assigned row id."""
        ...

    @abstractmethod
    async def get(self, row_id: int) -> Optional[PersonalDataRecord]:
        """Get a row by id."""
        ...

    @abstractmethod
    async def update(self, row_id: int, fields: PersonalFields) -> bool:
        """Overwrite a row's fields. Returns False if the row does not exist."""
        ...

    @abstractmethod
    async def delete(self, row_id: int) -> bool:
        """Delete a row. Returns False if the row does not exist."""
        ...


class AuthStore(ABC):
    """Auth store interface."""

    @abstractmethod
    async def insert(
        self, username: str, password_hash: str, organization_id: str, role: Role
    ) -> int:
        """Insert a row and return its store-assigned row id."""
        ...

    @abstractmethod
    async def get(self, row_id: int) -> Optional[AuthRecord]:
        """Get a row by id."""
        ...

    @abstractmethod
    async def list_all(self) -> List[AuthRecord]:
        """List every row ordered by id."""
        ...

    @abstractmethod
    async def delete(self, row_id: int) -> bool:
        """Delete a row. Returns False if the row does not exist."""
        ...


class PseudonymStore(ABC):
    """Pseudonym directory store interface. All keys are ciphertext."""

    @abstractmethod
    async def insert(self, binding: PseudonymBinding) -> None:
        """Insert a binding."""
        ...

    @abstractmethod
    async def find_by_pseudonym(self, pseudonym_cipher: str) -> Optional[PseudonymBinding]:
        """Find a binding by pseudonym ciphertext."""
        ...

    @abstractmethod
    async def find_by_auth_row_id(self, auth_row_id_cipher: str) -> Optional[PseudonymBinding]:
        """Find a binding by auth row id ciphertext."""
        ...

    @abstractmethod
    async def delete_by_pseudonym(self, pseudonym_cipher: str) -> bool:
        """Delete a binding. Returns False if none matched."""
        ...


class InMemoryPersonalDataStore(PersonalDataStore):
    """
    In-memory personal-data store.

    Uses asyncio.Lock for safe concurrent access.
    """

    def __init__(self) -> None:
        self._rows: Dict[int, PersonalFields] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()

    async def insert(self, fields: PersonalFields) -> int:
        async with self._lock:
            self._check_unique(fields, exclude=None)
            row_id = self._next_id
            self._next_id += 1
            self._rows[row_id] = replace(fields)
            return row_id

    async def get(self, row_id: int) -> Optional[PersonalDataRecord]:
        async with self._lock:
            fields = self._rows.get(row_id)
            if fields is None:
                return None
            return PersonalDataRecord(row_id=row_id, fields=replace(fields))

    async def update(self, row_id: int, fields: PersonalFields) -> bool:
        async with self._lock:
            if row_id not in self._rows:
                return False
            self._check_unique(fields, exclude=row_id)
            self._rows[row_id] = replace(fields)
            return True

    async def delete(self, row_id: int) -> bool:
        async with self._lock:
            return self._rows.pop(row_id, None) is not None

    def count(self) -> int:
        """Number of stored rows."""
        return len(self._rows)

    def _check_unique(self, fields: PersonalFields, exclude: Optional[int]) -> None:
        for row_id, existing in self._rows.items():
            if row_id == exclude:
                continue
            if existing.national_id_index == fields.national_id_index:
                raise UniqueViolationError(PERSONAL_NATIONAL_ID_CONSTRAINT)
            if existing.email_index == fields.email_index:
                raise UniqueViolationError(PERSONAL_EMAIL_CONSTRAINT)


class InMemoryAuthStore(AuthStore):
    """In-memory auth store."""

    def __init__(self) -> None:
        self._rows: Dict[int, AuthRecord] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()

    async def insert(
        self, username: str, password_hash: str, organization_id: str, role: Role
    ) -> int:
        async with self._lock:
            if any(r.username == username for r in self._rows.values()):
                raise UniqueViolationError(AUTH_USERNAME_CONSTRAINT)
            row_id = self._next_id
            self._next_id += 1
            self._rows[row_id] = AuthRecord(
                row_id=row_id,
                username=username,
                password_hash=password_hash,
                organization_id=organization_id,
                role=role,
            )
            return row_id

    async def get(self, row_id: int) -> Optional[AuthRecord]:
        async with self._lock:
            record = self._rows.get(row_id)
            return replace(record) if record is not None else None

    async def list_all(self) -> List[AuthRecord]:
        async with self._lock:
            return [replace(self._rows[k]) for k in sorted(self._rows)]

    async def delete(self, row_id: int) -> bool:
        async with self._lock:
            return self._rows.pop(row_id, None) is not None

    def count(self) -> int:
        """Number of stored rows."""
        return len(self._rows)


class InMemoryPseudonymStore(PseudonymStore):
    """In-memory pseudonym directory store."""

    def __init__(self) -> None:
        self._bindings: Dict[str, PseudonymBinding] = {}
        self._lock = asyncio.Lock()

    async def insert(self, binding: PseudonymBinding) -> None:
        async with self._lock:
            if binding.pseudonym_cipher in self._bindings:
                raise UniqueViolationError(PSEUDONYM_CONSTRAINT)
            if any(
                b.auth_row_id_cipher == binding.auth_row_id_cipher
                for b in self._bindings.values()
            ):
                raise UniqueViolationError(PSEUDONYM_AUTH_ID_CONSTRAINT)
            self._bindings[binding.pseudonym_cipher] = replace(binding)

    async def find_by_pseudonym(self, pseudonym_cipher: str) -> Optional[PseudonymBinding]:
        async with self._lock:
            binding = self._bindings.get(pseudonym_cipher)
            return replace(binding) if binding is not None else None

    async def find_by_auth_row_id(self, auth_row_id_cipher: str) -> Optional[PseudonymBinding]:
        async with self._lock:
            for binding in self._bindings.values():
                if binding.auth_row_id_cipher == auth_row_id_cipher:
                    return replace(binding)
            return None

    async def delete_by_pseudonym(self, pseudonym_cipher: str) -> bool:
        async with self._lock:
            return self._bindings.pop(pseudonym_cipher, None) is not None

    def count(self) -> int:
        """Number of stored rows."""
        return len(self._bindings)
