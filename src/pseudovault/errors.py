"""
Exception classes for pseudonymization and cross-store operations.

Public errors are raised by UserService and PseudonymDirectory. StorageError
and UniqueViolationError are raised by store backends only; UserService
translates them before they reach a caller.
"""

from __future__ import annotations

from typing import Optional


class PseudoVaultError(Exception):
    """Base exception for all pseudovault operations."""

    pass


class ValidationError(PseudoVaultError):
    """User input is malformed or out of range."""

    pass


class DuplicateNationalIdError(PseudoVaultError):
    """National id already belongs to another user."""

    def __init__(self, message: str = "The provided national id is invalid.") -> None:
        super().__init__(message)


class DuplicateEmailError(PseudoVaultError):
    """Email already belongs to another user."""

    def __init__(self, message: str = "The provided email is invalid.") -> None:
        super().__init__(message)


class DuplicateUsernameError(PseudoVaultError):
    """Username already taken in the auth store."""

    def __init__(self, message: str = "The provided username is invalid.") -> None:
        super().__init__(message)


class DuplicatePseudonymError(PseudoVaultError):
    """Pseudonym ciphertext already present in the directory."""

    pass


class NotFoundError(PseudoVaultError):
    """Pseudonym or row cannot be resolved."""

    pass


class IntegrityFaultError(NotFoundError):
    """A binding exists without its target rows, or the reverse.

    Callers that only handle NotFoundError see the user as absent.
    """

    pass


class CryptoError(PseudoVaultError):
    """Cryptographic operation failed (bad key, IV or ciphertext)."""

    pass


class SecretUnavailableError(PseudoVaultError):
    """Secret store unreachable or the requested field is missing."""

    pass


class KeyUnavailableError(SecretUnavailableError):
    """Key material could not be obtained within the fetch timeout."""

    pass


class StoreUnavailableError(PseudoVaultError):
    """Store connection or transaction failure unrelated to constraints."""

    pass


class ConfigError(PseudoVaultError):
    """Configuration error."""

    pass


class StorageError(PseudoVaultError):
    """Storage backend error (database, in-memory, etc.)."""

    pass


class UniqueViolationError(StorageError):
    """A store uniqueness constraint rejected the write."""

    def __init__(self, constraint: Optional[str], message: str = "") -> None:
        super().__init__(message or f"Unique constraint violated: {constraint}")
        self.constraint = constraint
