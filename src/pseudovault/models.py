"""
Domain records and public result shapes.

Store rows (PersonalDataRecord, AuthRecord, PseudonymBinding) hold ciphertext
or plaintext exactly as persisted. User, UserSummary and DeleteResult are what
UserService hands back to its caller; none of them carries a row id.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .errors import ValidationError


class Role(Enum):
    """User role (matches the auth store ENUM)."""

    ADMIN = "ADMIN"
    STAFF = "STAFF"
    ORGANIZATION_OWNER = "ORGANIZATION_OWNER"
    ORGANIZATION_STAFF = "ORGANIZATION_STAFF"
    AGRICULTURAL_PRODUCER = "AGRICULTURAL_PRODUCER"
    TECHNICIAN = "TECHNICIAN"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_str(cls, s: str) -> Role:
        """Parse from string."""
        try:
            return cls(s.upper())
        except (AttributeError, ValueError):
            raise ValidationError(f"Invalid role: {s}")


@dataclass
class PersonalFields:
    """Randomized ciphertext of each personal field plus the shadow indexes."""

    name: str
    address: str
    national_id: str
    phone: str
    email: str
    email_index: str  # deterministic ciphertext of the normalized email
    national_id_index: str  # deterministic ciphertext of the national id


@dataclass
class PersonalDataRecord:
    """Row of the personal-data store."""

    row_id: int
    fields: PersonalFields


@dataclass
class AuthRecord:
    """Row of the auth store."""

    row_id: int
    username: str
    password_hash: str
    organization_id: str
    role: Role


@dataclass
class PseudonymBinding:
    """Row of the pseudonym directory store."""

    pseudonym_cipher: str  # deterministic
    personal_row_id_cipher: str  # randomized
    auth_row_id_cipher: str  # deterministic


@dataclass(frozen=True)
class ResolvedIds:
    """Internal row ids a pseudonym resolves to."""

    personal_row_id: int
    auth_row_id: int


@dataclass
class UserInput:
    """Raw personal and credential data supplied by the caller."""

    username: str
    password: str
    email: str
    name: str
    address: str
    national_id: int
    phone: str
    organization_id: str
    role: Role


@dataclass
class User:
    """A logical user; id is the pseudonym. The password is never returned."""

    id: str
    username: str
    email: str
    name: str
    address: str
    national_id: int
    phone: str
    organization_id: str
    role: Role


@dataclass
class UserSummary:
    """Listing entry without personal fields."""

    id: str
    username: str
    organization_id: str
    role: Role


@dataclass
class DeleteResult:
    """Outcome of delete_user."""

    success: bool
    message: str
