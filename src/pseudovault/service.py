"""
Cross-store orchestration of a logical user.

A user is three rows in three stores with no shared transaction:

    personal_data       (randomized ciphertext + deterministic shadow indexes)
    auth_users          (plaintext username, bcrypt hash, organization, role)
    pseudonym_bindings  (pseudonym -> both row ids, ciphertext only)

create_user and delete_user run as sagas (see saga.py). Store errors are
classified at this boundary; raw store text is logged through the probe and
never reaches the caller. Only idempotent reads and deletes by key are
retried.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Optional, TypeVar
from uuid import uuid4

from .crypto import EncryptionEngine, EncryptionMode
from .directory import PseudonymDirectory
from .errors import (
    DuplicateEmailError,
    DuplicateNationalIdError,
    DuplicatePseudonymError,
    DuplicateUsernameError,
    IntegrityFaultError,
    NotFoundError,
    PseudoVaultError,
    StorageError,
    StoreUnavailableError,
    UniqueViolationError,
)
from .key_provider import KeyProvider
from .models import (
    AuthRecord,
    DeleteResult,
    PersonalDataRecord,
    PersonalFields,
    ResolvedIds,
    User,
    UserInput,
    UserSummary,
)
from .observability import DefaultUserServiceProbe, UserServiceProbe
from .passwords import hash_password
from .retry import retry_async
from .saga import Saga
from .schema import (
    AUTH_USERNAME_CONSTRAINT,
    PERSONAL_EMAIL_CONSTRAINT,
    PERSONAL_NATIONAL_ID_CONSTRAINT,
)
from .storage import AuthStore, PersonalDataStore, PseudonymStore
from .validation import normalize_email, sanitize_user, validate_user

T = TypeVar("T")

DET = EncryptionMode.DETERMINISTIC
RND = EncryptionMode.RANDOMIZED


def new_pseudonym() -> str:
    """Mint a 128-bit random pseudonym."""
    return str(uuid4())


class UserService:
    """
    Create, read, update and delete users spread over three stores.

    All collaborators are injected; the service holds no mutable state of
    its own, so one instance can serve concurrent requests.
    """

    def __init__(
        self,
        personal_store: PersonalDataStore,
        auth_store: AuthStore,
        pseudonym_store: PseudonymStore,
        key_provider: KeyProvider,
        password_hasher: Callable[[str], str] = hash_password,
        probe: Optional[UserServiceProbe] = None,
        read_attempts: int = 3,
        pseudonym_factory: Callable[[], str] = new_pseudonym,
    ) -> None:
        """
        Initialize the service.

        Args:
            personal_store: Personal-data store
            auth_store: Auth store
            pseudonym_store: Pseudonym directory store
            key_provider: Source of key material (cache it for remote sources)
            password_hasher: One-way password hash, run in a worker thread
            probe: Observability probe
            read_attempts: Total attempts for idempotent reads and deletes
            pseudonym_factory: Pseudonym generator
        """
        self._personal = personal_store
        self._auth = auth_store
        self._key_provider = key_provider
        self._directory = PseudonymDirectory(pseudonym_store, key_provider)
        self._hash_password = password_hasher
        self._probe = probe or DefaultUserServiceProbe()
        self._read_attempts = read_attempts
        self._new_pseudonym = pseudonym_factory

    @property
    def directory(self) -> PseudonymDirectory:
        """The pseudonym directory used by this service."""
        return self._directory

    # =========================================================================
    # Create
    # =========================================================================

    async def create_user(self, user_input: UserInput) -> User:
        """
        Register a new user across the three stores.

        Steps (compensation in brackets):
        1. Insert personal data          [delete personal row]
        2. Hash password, insert auth    [delete auth row]
        3. Mint pseudonym, save binding  (retried once on a pseudonym clash)

        Raises:
            ValidationError: Malformed input; nothing was written
            DuplicateEmailError, DuplicateNationalIdError, DuplicateUsernameError
            StoreUnavailableError: Any other store failure
            CryptoError, SecretUnavailableError
        """
        user = sanitize_user(user_input)
        validate_user(user)

        engine = await self._engine()
        fields = self._encrypt_personal(engine, user)

        saga = Saga("create_user", self._probe)
        personal = saga.add_step(
            "insert_personal_data",
            lambda: self._personal.insert(fields),
            self._personal.delete,
        )
        auth = saga.add_step(
            "insert_auth_user",
            lambda: self._insert_auth(user),
            self._auth.delete,
        )
        binding = saga.add_step(
            "save_pseudonym",
            lambda: self._save_binding(personal.result, auth.result),
        )

        try:
            await saga.run()
        except UniqueViolationError as e:
            self._probe.user_creation_failed(f"unique violation: {e.constraint}")
            raise self._duplicate_error("create_user", e, "Registration failed.") from None
        except StorageError as e:
            self._probe.user_creation_failed("store error")
            self._probe.store_error("create_user", e)
            raise StoreUnavailableError("Registration failed.") from None
        except PseudoVaultError as e:
            self._probe.user_creation_failed(type(e).__name__)
            raise

        pseudonym = binding.result
        self._probe.user_created(pseudonym)
        return User(
            id=pseudonym,
            username=user.username,
            email=user.email,
            name=user.name,
            address=user.address,
            national_id=user.national_id,
            phone=user.phone,
            organization_id=user.organization_id,
            role=user.role,
        )

    async def _insert_auth(self, user: UserInput) -> int:
        password_hash = await asyncio.to_thread(self._hash_password, user.password)
        return await self._auth.insert(
            user.username, password_hash, user.organization_id, user.role
        )

    async def _save_binding(self, personal_row_id: int, auth_row_id: int) -> str:
        pseudonym = self._new_pseudonym()
        try:
            await self._directory.save(pseudonym, personal_row_id, auth_row_id)
        except DuplicatePseudonymError:
            pseudonym = self._new_pseudonym()
            await self._directory.save(pseudonym, personal_row_id, auth_row_id)
        return pseudonym

    # =========================================================================
    # Read
    # =========================================================================

    async def get_user_by_id(self, pseudonym: str) -> User:
        """
        Fetch and decrypt one user.

        Raises:
            NotFoundError: No binding for the pseudonym
            IntegrityFaultError: Binding present but a target row is missing
            StoreUnavailableError, CryptoError, SecretUnavailableError
        """
        ids = await self._resolve(pseudonym)
        personal = await self._read(
            "get_personal_data", lambda: self._personal.get(ids.personal_row_id)
        )
        auth = await self._read("get_auth_user", lambda: self._auth.get(ids.auth_row_id))

        if personal is None or auth is None:
            missing = "personal data" if personal is None else "auth"
            await self._raise_missing_row("get_user_by_id", pseudonym, missing)

        engine = await self._engine()
        return self._to_user(pseudonym, engine, personal, auth)

    async def get_users(self) -> List[UserSummary]:
        """
        List every user without touching personal data.

        An auth row whose binding is not saved yet belongs to a create still in
        flight; it is re-checked with backoff and skipped if the create is
        compensated.

        Raises:
            IntegrityFaultError: An auth row stays without a binding
            StoreUnavailableError
        """
        records = await self._read("list_auth_users", self._auth.list_all)

        summaries: List[UserSummary] = []
        for record in records:
            pseudonym = await self._pseudonym_for(record)
            if pseudonym is None:
                continue
            summaries.append(
                UserSummary(
                    id=pseudonym,
                    username=record.username,
                    organization_id=record.organization_id,
                    role=record.role,
                )
            )
        return summaries

    async def _pseudonym_for(self, record: AuthRecord) -> Optional[str]:
        def on_retry(attempt: int, error: BaseException) -> None:
            self._probe.read_retried("resolve_by_auth_row_id", attempt, error)

        try:
            return await self._read(
                "resolve_by_auth_row_id",
                lambda: retry_async(
                    lambda: self._directory.resolve_by_auth_row_id(record.row_id),
                    retry_on=(NotFoundError,),
                    attempts=self._read_attempts,
                    on_retry=on_retry,
                ),
            )
        except NotFoundError:
            pass

        current = await self._read("get_auth_user", lambda: self._auth.get(record.row_id))
        if current is None:
            # Row gone: the create was compensated or a delete got there first
            return None
        self._probe.integrity_fault(
            "get_users", f"auth row {record.row_id} has no pseudonym binding"
        )
        raise IntegrityFaultError("User listing is incomplete.")

    # =========================================================================
    # Update
    # =========================================================================

    async def update_user(self, pseudonym: str, user_input: UserInput) -> User:
        """
        Re-encrypt and overwrite the personal-data row.

        The auth row and the binding are left untouched; the returned user
        carries the stored username, organization and role.

        Raises:
            ValidationError, NotFoundError, IntegrityFaultError
            DuplicateEmailError, DuplicateNationalIdError
            StoreUnavailableError, CryptoError, SecretUnavailableError
        """
        user = sanitize_user(user_input)
        validate_user(user)

        ids = await self._resolve(pseudonym)
        engine = await self._engine()
        fields = self._encrypt_personal(engine, user)

        try:
            updated = await self._personal.update(ids.personal_row_id, fields)
        except UniqueViolationError as e:
            raise self._duplicate_error("update_user", e, "Update failed.") from None
        except StorageError as e:
            self._probe.store_error("update_user", e)
            raise StoreUnavailableError("Update failed.") from None

        if not updated:
            await self._raise_missing_row("update_user", pseudonym, "personal data")

        auth = await self._read("get_auth_user", lambda: self._auth.get(ids.auth_row_id))
        if auth is None:
            await self._raise_missing_row("update_user", pseudonym, "auth")

        self._probe.user_updated(pseudonym)
        return User(
            id=pseudonym,
            username=auth.username,
            email=user.email,
            name=user.name,
            address=user.address,
            national_id=user.national_id,
            phone=user.phone,
            organization_id=auth.organization_id,
            role=auth.role,
        )

    # =========================================================================
    # Delete
    # =========================================================================

    async def delete_user(self, pseudonym: str) -> DeleteResult:
        """
        Delete personal row, auth row, then the binding.

        The binding goes last so a failed deletion can be retried: the
        pseudonym still resolves and the remaining deletes are idempotent.

        Raises:
            NotFoundError: No binding for the pseudonym
            StoreUnavailableError: Deletion stopped part way (logged for repair)
        """
        ids = await self._resolve(pseudonym)

        saga = Saga("delete_user", self._probe)
        personal = saga.add_step(
            "delete_personal_data",
            lambda: self._read_retry(lambda: self._personal.delete(ids.personal_row_id)),
        )
        auth = saga.add_step(
            "delete_auth_user",
            lambda: self._read_retry(lambda: self._auth.delete(ids.auth_row_id)),
        )
        saga.add_step(
            "delete_pseudonym_binding",
            lambda: self._read_retry(lambda: self._directory.delete(pseudonym)),
        )

        try:
            await saga.run()
        except StorageError as e:
            self._probe.partial_delete(pseudonym, saga.completed, e)
            raise StoreUnavailableError(
                "Deletion failed. The user may be partially deleted; retry the deletion."
            ) from None
        except PseudoVaultError as e:
            self._probe.partial_delete(pseudonym, saga.completed, e)
            raise

        if not personal.result:
            self._probe.integrity_fault("delete_user", "binding had no personal data row")
        if not auth.result:
            self._probe.integrity_fault("delete_user", "binding had no auth row")

        self._probe.user_deleted(pseudonym)
        return DeleteResult(success=True, message="User deleted successfully.")

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _engine(self) -> EncryptionEngine:
        return EncryptionEngine(await self._key_provider.get_key_material())

    async def _resolve(self, pseudonym: str) -> ResolvedIds:
        if not isinstance(pseudonym, str) or not pseudonym:
            raise NotFoundError("Invalid user id.")
        return await self._read("resolve", lambda: self._directory.resolve(pseudonym))

    async def _read_retry(self, fn: Callable[[], Awaitable[T]]) -> T:
        return await retry_async(
            fn, retry_on=(StorageError,), attempts=self._read_attempts
        )

    async def _read(self, operation: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run an idempotent read with retries; map store errors to StoreUnavailableError."""

        def on_retry(attempt: int, error: BaseException) -> None:
            self._probe.read_retried(operation, attempt, error)

        try:
            return await retry_async(
                fn,
                retry_on=(StorageError,),
                attempts=self._read_attempts,
                on_retry=on_retry,
            )
        except StorageError as e:
            self._probe.store_error(operation, e)
            raise StoreUnavailableError("Failed to fetch user.") from None

    async def _raise_missing_row(self, operation: str, pseudonym: str, missing: str) -> None:
        # A concurrent delete removes the binding last; once it is gone the
        # user simply no longer exists.
        try:
            await self._resolve(pseudonym)
        except IntegrityFaultError:
            raise
        except NotFoundError:
            raise NotFoundError("Invalid user id.") from None
        self._probe.integrity_fault(operation, f"binding without {missing} row")
        raise IntegrityFaultError("User record is incomplete.")

    def _duplicate_error(
        self, operation: str, error: UniqueViolationError, summary: str
    ) -> PseudoVaultError:
        if error.constraint == PERSONAL_EMAIL_CONSTRAINT:
            return DuplicateEmailError()
        if error.constraint == PERSONAL_NATIONAL_ID_CONSTRAINT:
            return DuplicateNationalIdError()
        if error.constraint == AUTH_USERNAME_CONSTRAINT:
            return DuplicateUsernameError()
        self._probe.store_error(operation, error)
        return StoreUnavailableError(summary)

    @staticmethod
    def _encrypt_personal(engine: EncryptionEngine, user: UserInput) -> PersonalFields:
        national_id = str(user.national_id)
        return PersonalFields(
            name=engine.encrypt(user.name, RND),
            address=engine.encrypt(user.address, RND),
            national_id=engine.encrypt(national_id, RND),
            phone=engine.encrypt(user.phone, RND),
            email=engine.encrypt(user.email, RND),
            email_index=engine.encrypt(normalize_email(user.email), DET),
            national_id_index=engine.encrypt(national_id, DET),
        )

    @staticmethod
    def _to_user(
        pseudonym: str,
        engine: EncryptionEngine,
        personal: PersonalDataRecord,
        auth: AuthRecord,
    ) -> User:
        # Decrypt everything before building, so a crypto failure never
        # yields a partially decrypted record
        fields = personal.fields
        name = engine.decrypt(fields.name, RND)
        address = engine.decrypt(fields.address, RND)
        national_id = engine.decrypt(fields.national_id, RND)
        phone = engine.decrypt(fields.phone, RND)
        email = engine.decrypt(fields.email, RND)
        return User(
            id=pseudonym,
            username=auth.username,
            email=email,
            name=name,
            address=address,
            national_id=_to_national_id(national_id),
            phone=phone,
            organization_id=auth.organization_id,
            role=auth.role,
        )


def _to_national_id(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        # Decrypted but not a number: the personal row is corrupt
        raise IntegrityFaultError("User record is incomplete.")
