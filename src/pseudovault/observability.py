"""Domain probes for user lifecycle and key material events.

Probes keep logging out of the orchestration code. Events never carry
plaintext PII, key material, or row ids next to a pseudonym.
"""

from __future__ import annotations

from typing import Protocol, Sequence

import structlog


class UserServiceProbe(Protocol):
    """Observability probe for cross-store user operations."""

    def user_created(self, pseudonym: str) -> None:
        """Called after all three rows of a new user are committed."""
        ...

    def user_creation_failed(self, reason: str) -> None:
        """Called when create_user gives up, after compensation ran."""
        ...

    def user_updated(self, pseudonym: str) -> None:
        """Called after the personal-data row is overwritten."""
        ...

    def user_deleted(self, pseudonym: str) -> None:
        """Called after personal row, auth row and binding are gone."""
        ...

    def integrity_fault(self, operation: str, detail: str) -> None:
        """Called when the one-binding-per-user invariant is found broken."""
        ...

    def compensation_failed(self, saga: str, step: str, error: Exception) -> None:
        """Called when a compensating action itself fails."""
        ...

    def partial_delete(
        self, pseudonym: str, completed: Sequence[str], error: Exception
    ) -> None:
        """Called when delete_user stops part way, leaving rows to repair."""
        ...

    def store_error(self, operation: str, error: Exception) -> None:
        """Called when a raw store error is replaced by a public one."""
        ...

    def read_retried(self, operation: str, attempt: int, error: Exception) -> None:
        """Called before an idempotent read is retried."""
        ...


class KeyProviderProbe(Protocol):
    """Observability probe for key material fetches."""

    def key_material_refreshed(self, source: str) -> None:
        """Called when the cache is filled from the backing provider."""
        ...

    def key_material_invalidated(self) -> None:
        """Called on the rotation signal."""
        ...

    def key_fetch_failed(self, source: str, attempt: int, error: Exception) -> None:
        """Called when one fetch attempt fails."""
        ...


class DefaultUserServiceProbe:
    """Default implementation of UserServiceProbe using structlog."""

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self._logger = logger or structlog.get_logger(__name__)

    def user_created(self, pseudonym: str) -> None:
        self._logger.info("user_created", pseudonym=pseudonym)

    def user_creation_failed(self, reason: str) -> None:
        self._logger.warning("user_creation_failed", reason=reason)

    def user_updated(self, pseudonym: str) -> None:
        self._logger.info("user_updated", pseudonym=pseudonym)

    def user_deleted(self, pseudonym: str) -> None:
        self._logger.info("user_deleted", pseudonym=pseudonym)

    def integrity_fault(self, operation: str, detail: str) -> None:
        self._logger.error("integrity_fault", operation=operation, detail=detail)

    def compensation_failed(self, saga: str, step: str, error: Exception) -> None:
        self._logger.error(
            "compensation_failed",
            saga=saga,
            step=step,
            error=str(error),
            error_type=type(error).__name__,
        )

    def partial_delete(
        self, pseudonym: str, completed: Sequence[str], error: Exception
    ) -> None:
        self._logger.error(
            "partial_delete",
            pseudonym=pseudonym,
            completed=list(completed),
            error=str(error),
            error_type=type(error).__name__,
        )

    def store_error(self, operation: str, error: Exception) -> None:
        self._logger.error(
            "store_error",
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
        )

    def read_retried(self, operation: str, attempt: int, error: Exception) -> None:
        self._logger.warning(
            "read_retried",
            operation=operation,
            attempt=attempt,
            error_type=type(error).__name__,
        )


class DefaultKeyProviderProbe:
    """Default implementation of KeyProviderProbe using structlog."""

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self._logger = logger or structlog.get_logger(__name__)

    def key_material_refreshed(self, source: str) -> None:
        self._logger.info("key_material_refreshed", source=source)

    def key_material_invalidated(self) -> None:
        self._logger.info("key_material_invalidated")

    def key_fetch_failed(self, source: str, attempt: int, error: Exception) -> None:
        self._logger.warning(
            "key_fetch_failed",
            source=source,
            attempt=attempt,
            error=str(error),
            error_type=type(error).__name__,
        )
