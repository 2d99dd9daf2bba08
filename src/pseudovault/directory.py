"""
Pseudonym directory: the only path from a pseudonym to internal row ids.

Column encryption:
- pseudonym:        deterministic (lookup key)
- auth_row_id:      deterministic (reverse lookup key)
- personal_row_id:  randomized (never searched)

Key material is fetched from the key provider on every call; put a
CachedKeyProvider in front of a remote provider.
"""

from __future__ import annotations

from .crypto import EncryptionEngine, EncryptionMode
from .errors import (
    DuplicatePseudonymError,
    IntegrityFaultError,
    NotFoundError,
    UniqueViolationError,
)
from .key_provider import KeyProvider
from .models import PseudonymBinding, ResolvedIds
from .schema import PSEUDONYM_CONSTRAINT
from .storage import PseudonymStore

DET = EncryptionMode.DETERMINISTIC
RND = EncryptionMode.RANDOMIZED


class PseudonymDirectory:
    """Repository over the pseudonym directory store."""

    def __init__(self, store: PseudonymStore, key_provider: KeyProvider) -> None:
        self._store = store
        self._key_provider = key_provider

    async def save(self, pseudonym: str, personal_row_id: int, auth_row_id: int) -> None:
        """
        Encrypt and insert one binding.

        Raises:
            DuplicatePseudonymError: If the pseudonym ciphertext already exists
            UniqueViolationError: If the auth row id is already bound
            CryptoError, StorageError
        """
        engine = await self._engine()
        binding = PseudonymBinding(
            pseudonym_cipher=engine.encrypt(pseudonym, DET),
            personal_row_id_cipher=engine.encrypt(str(personal_row_id), RND),
            auth_row_id_cipher=engine.encrypt(str(auth_row_id), DET),
        )
        try:
            await self._store.insert(binding)
        except UniqueViolationError as e:
            if e.constraint == PSEUDONYM_CONSTRAINT:
                raise DuplicatePseudonymError("Pseudonym already registered") from e
            raise

    async def resolve(self, pseudonym: str) -> ResolvedIds:
        """
        Resolve a pseudonym to its personal and auth row ids.

        Raises:
            NotFoundError: If no binding matches
            CryptoError: If the stored ciphertext does not decrypt
        """
        engine = await self._engine()
        binding = await self._store.find_by_pseudonym(engine.encrypt(pseudonym, DET))
        if binding is None:
            raise NotFoundError("Invalid user id.")
        return ResolvedIds(
            personal_row_id=_to_row_id(engine.decrypt(binding.personal_row_id_cipher, RND)),
            auth_row_id=_to_row_id(engine.decrypt(binding.auth_row_id_cipher, DET)),
        )

    async def resolve_by_auth_row_id(self, auth_row_id: int) -> str:
        """
        Find the pseudonym bound to an auth row.

        Raises:
            NotFoundError: If no binding matches
        """
        engine = await self._engine()
        binding = await self._store.find_by_auth_row_id(engine.encrypt(str(auth_row_id), DET))
        if binding is None:
            raise NotFoundError(f"No pseudonym bound to auth row {auth_row_id}")
        return engine.decrypt(binding.pseudonym_cipher, DET)

    async def delete(self, pseudonym: str) -> bool:
        """Delete a binding. Absent bindings are not an error (returns False)."""
        engine = await self._engine()
        return await self._store.delete_by_pseudonym(engine.encrypt(pseudonym, DET))

    async def _engine(self) -> EncryptionEngine:
        return EncryptionEngine(await self._key_provider.get_key_material())


def _to_row_id(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        # Decrypted but not an id: the binding row is corrupt
        raise IntegrityFaultError("Binding holds a malformed row id")
