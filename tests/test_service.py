"""
Tests for UserService: the cross-store create, read, update and delete flows.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Iterator, Optional

import pytest

from pseudovault import (
    DeleteResult,
    DuplicateEmailError,
    DuplicateNationalIdError,
    DuplicatePseudonymError,
    DuplicateUsernameError,
    EncryptionEngine,
    EncryptionMode,
    InMemoryAuthStore,
    InMemoryPersonalDataStore,
    InMemoryPseudonymStore,
    IntegrityFaultError,
    KeyMaterial,
    KeyProvider,
    NotFoundError,
    Role,
    StorageError,
    StoreUnavailableError,
    UserInput,
    UserService,
    ValidationError,
)
from pseudovault.passwords import verify_password

from conftest import RecordingProbe, fast_hash


class FlakyPersonalStore(InMemoryPersonalDataStore):
    """Personal store whose operations can be made to fail a number of times."""

    def __init__(self) -> None:
        super().__init__()
        self.get_failures = 0
        self.delete_failures = 0
        self.fail_update = False
        self.before_get = None

    async def get(self, row_id):
        if self.before_get is not None:
            await self.before_get()
        if self.get_failures:
            self.get_failures -= 1
            raise StorageError("connection reset by peer")
        return await super().get(row_id)

    async def update(self, row_id, fields):
        if self.fail_update:
            raise StorageError("deadlock detected")
        return await super().update(row_id, fields)

    async def delete(self, row_id):
        if self.delete_failures:
            self.delete_failures -= 1
            raise StorageError("connection reset by peer")
        return await super().delete(row_id)


class FlakyAuthStore(InMemoryAuthStore):
    def __init__(self) -> None:
        super().__init__()
        self.fail_insert = False
        self.delete_failures = 0

    async def insert(self, username, password_hash, organization_id, role):
        if self.fail_insert:
            raise StorageError("password authentication failed for user \"auth\"")
        return await super().insert(username, password_hash, organization_id, role)

    async def delete(self, row_id):
        if self.delete_failures:
            self.delete_failures -= 1
            raise StorageError("server closed the connection unexpectedly")
        return await super().delete(row_id)


class FlakyPseudonymStore(InMemoryPseudonymStore):
    def __init__(self) -> None:
        super().__init__()
        self.fail_insert = False
        self.held = asyncio.Event()
        self.release: Optional[asyncio.Event] = None

    async def insert(self, binding):
        if self.release is not None:
            self.held.set()
            await self.release.wait()
        if self.fail_insert:
            raise StorageError("relation \"pseudonym_bindings\" does not exist")
        return await super().insert(binding)


def sequence(*values: str):
    it: Iterator[str] = iter(values)
    return lambda: next(it)


@pytest.fixture
def flaky_personal() -> FlakyPersonalStore:
    return FlakyPersonalStore()


@pytest.fixture
def flaky_auth() -> FlakyAuthStore:
    return FlakyAuthStore()


@pytest.fixture
def flaky_pseudonyms() -> FlakyPseudonymStore:
    return FlakyPseudonymStore()


@pytest.fixture
def flaky_service(
    flaky_personal: FlakyPersonalStore,
    flaky_auth: FlakyAuthStore,
    flaky_pseudonyms: FlakyPseudonymStore,
    key_provider: KeyProvider,
    probe: RecordingProbe,
) -> UserService:
    return UserService(
        flaky_personal,
        flaky_auth,
        flaky_pseudonyms,
        key_provider,
        password_hasher=fast_hash,
        probe=probe,
    )


class TestCreateUser:
    async def test_round_trip(self, service: UserService, ana: UserInput) -> None:
        created = await service.create_user(ana)

        fetched = await service.get_user_by_id(created.id)

        assert fetched == created
        assert fetched.name == "Ana Silva"
        assert fetched.national_id == 123456789
        assert fetched.email == "ana@x.com"
        assert fetched.role is Role.ORGANIZATION_STAFF
        assert not hasattr(fetched, "password")

    async def test_writes_one_row_per_store(
        self,
        service: UserService,
        personal_store: InMemoryPersonalDataStore,
        auth_store: InMemoryAuthStore,
        pseudonym_store: InMemoryPseudonymStore,
        ana: UserInput,
        probe: RecordingProbe,
    ) -> None:
        await service.create_user(ana)

        assert personal_store.count() == 1
        assert auth_store.count() == 1
        assert pseudonym_store.count() == 1
        assert "user_created" in probe.names()

    async def test_personal_store_holds_no_plaintext(
        self,
        service: UserService,
        personal_store: InMemoryPersonalDataStore,
        ana: UserInput,
    ) -> None:
        await service.create_user(ana)

        record = await personal_store.get(1)
        stored = list(vars(record.fields).values())
        for plaintext in ("Ana Silva", "Rua Central 1, Lisboa", "123456789", "ana@x.com"):
            assert all(plaintext not in value for value in stored)

    async def test_equal_values_encrypt_differently(
        self,
        service: UserService,
        personal_store: InMemoryPersonalDataStore,
        ana: UserInput,
        bruno: UserInput,
    ) -> None:
        await service.create_user(ana)
        await service.create_user(replace(bruno, name="Ana Silva"))

        first = await personal_store.get(1)
        second = await personal_store.get(2)
        assert first.fields.name != second.fields.name

    async def test_password_is_hashed(
        self, service: UserService, auth_store: InMemoryAuthStore, ana: UserInput
    ) -> None:
        await service.create_user(ana)

        record = await auth_store.get(1)
        assert record.password_hash != ana.password
        assert verify_password(ana.password, record.password_hash)

    async def test_pseudonym_is_opaque(self, service: UserService, ana: UserInput) -> None:
        created = await service.create_user(ana)

        assert created.id not in ("1", "ana.silva")
        assert len(created.id) == 36

    async def test_sanitizes_input(self, service: UserService, ana: UserInput) -> None:
        created = await service.create_user(replace(ana, email="  ANA@X.com", name=" Ana Silva "))

        fetched = await service.get_user_by_id(created.id)
        assert fetched.email == "ana@x.com"
        assert fetched.name == "Ana Silva"

    async def test_invalid_input_writes_nothing(
        self,
        service: UserService,
        personal_store: InMemoryPersonalDataStore,
        auth_store: InMemoryAuthStore,
        ana: UserInput,
    ) -> None:
        with pytest.raises(ValidationError):
            await service.create_user(replace(ana, national_id=12))

        assert personal_store.count() == 0
        assert auth_store.count() == 0

    async def test_duplicate_email(
        self,
        service: UserService,
        personal_store: InMemoryPersonalDataStore,
        auth_store: InMemoryAuthStore,
        pseudonym_store: InMemoryPseudonymStore,
        ana: UserInput,
        bruno: UserInput,
    ) -> None:
        await service.create_user(ana)

        with pytest.raises(DuplicateEmailError, match="The provided email is invalid."):
            await service.create_user(replace(bruno, email="ANA@x.com"))

        assert personal_store.count() == 1
        assert auth_store.count() == 1
        assert pseudonym_store.count() == 1

    async def test_duplicate_national_id(
        self, service: UserService, ana: UserInput, bruno: UserInput
    ) -> None:
        await service.create_user(ana)

        with pytest.raises(DuplicateNationalIdError, match="national id"):
            await service.create_user(replace(bruno, national_id=ana.national_id))

    async def test_duplicate_username_compensates_personal_row(
        self,
        service: UserService,
        personal_store: InMemoryPersonalDataStore,
        auth_store: InMemoryAuthStore,
        pseudonym_store: InMemoryPseudonymStore,
        ana: UserInput,
        bruno: UserInput,
    ) -> None:
        await service.create_user(ana)

        with pytest.raises(DuplicateUsernameError):
            await service.create_user(replace(bruno, username=ana.username))

        assert personal_store.count() == 1
        assert auth_store.count() == 1
        assert pseudonym_store.count() == 1
        # The compensated row frees bruno's email for a later registration
        await service.create_user(bruno)

    async def test_auth_failure_compensates_personal_row(
        self,
        flaky_service: UserService,
        flaky_personal: FlakyPersonalStore,
        flaky_auth: FlakyAuthStore,
        flaky_pseudonyms: FlakyPseudonymStore,
        probe: RecordingProbe,
        ana: UserInput,
    ) -> None:
        flaky_auth.fail_insert = True

        with pytest.raises(StoreUnavailableError) as excinfo:
            await flaky_service.create_user(ana)

        assert str(excinfo.value) == "Registration failed."
        assert "password authentication" not in str(excinfo.value)
        assert excinfo.value.__cause__ is None
        assert flaky_personal.count() == 0
        assert flaky_pseudonyms.count() == 0
        assert "store_error" in probe.names()

    async def test_binding_failure_compensates_both_rows(
        self,
        flaky_service: UserService,
        flaky_personal: FlakyPersonalStore,
        flaky_auth: FlakyAuthStore,
        flaky_pseudonyms: FlakyPseudonymStore,
        ana: UserInput,
    ) -> None:
        flaky_pseudonyms.fail_insert = True

        with pytest.raises(StoreUnavailableError):
            await flaky_service.create_user(ana)

        assert flaky_personal.count() == 0
        assert flaky_auth.count() == 0
        assert flaky_pseudonyms.count() == 0

    async def test_failed_compensation_is_reported(
        self,
        flaky_service: UserService,
        flaky_personal: FlakyPersonalStore,
        flaky_auth: FlakyAuthStore,
        probe: RecordingProbe,
        ana: UserInput,
    ) -> None:
        flaky_auth.fail_insert = True
        flaky_personal.delete_failures = 1

        with pytest.raises(StoreUnavailableError):
            await flaky_service.create_user(ana)

        assert "compensation_failed" in probe.names()
        assert flaky_personal.count() == 1

    async def test_pseudonym_clash_is_retried(
        self,
        personal_store: InMemoryPersonalDataStore,
        auth_store: InMemoryAuthStore,
        pseudonym_store: InMemoryPseudonymStore,
        key_provider: KeyProvider,
        ana: UserInput,
        bruno: UserInput,
    ) -> None:
        service = UserService(
            personal_store,
            auth_store,
            pseudonym_store,
            key_provider,
            password_hasher=fast_hash,
            pseudonym_factory=sequence("p-1", "p-1", "p-2"),
        )
        first = await service.create_user(ana)
        second = await service.create_user(bruno)

        assert (first.id, second.id) == ("p-1", "p-2")
        assert (await service.get_user_by_id("p-2")).username == "bruno"

    async def test_repeated_pseudonym_clash_fails_cleanly(
        self,
        personal_store: InMemoryPersonalDataStore,
        auth_store: InMemoryAuthStore,
        pseudonym_store: InMemoryPseudonymStore,
        key_provider: KeyProvider,
        ana: UserInput,
        bruno: UserInput,
    ) -> None:
        service = UserService(
            personal_store,
            auth_store,
            pseudonym_store,
            key_provider,
            password_hasher=fast_hash,
            pseudonym_factory=lambda: "stuck",
        )
        await service.create_user(ana)

        with pytest.raises(DuplicatePseudonymError):
            await service.create_user(bruno)

        assert personal_store.count() == 1
        assert auth_store.count() == 1


    async def test_concurrent_creates_with_same_email(
        self,
        service: UserService,
        personal_store: InMemoryPersonalDataStore,
        auth_store: InMemoryAuthStore,
        pseudonym_store: InMemoryPseudonymStore,
        ana: UserInput,
        bruno: UserInput,
    ) -> None:
        results = await asyncio.gather(
            service.create_user(ana),
            service.create_user(replace(bruno, email="ANA@x.com ")),
            return_exceptions=True,
        )

        assert sorted(type(r).__name__ for r in results) == ["DuplicateEmailError", "User"]
        assert personal_store.count() == 1
        assert auth_store.count() == 1
        assert pseudonym_store.count() == 1

    async def test_concurrent_creates_with_same_national_id(
        self,
        service: UserService,
        personal_store: InMemoryPersonalDataStore,
        auth_store: InMemoryAuthStore,
        pseudonym_store: InMemoryPseudonymStore,
        ana: UserInput,
        bruno: UserInput,
    ) -> None:
        results = await asyncio.gather(
            service.create_user(ana),
            service.create_user(replace(bruno, national_id=ana.national_id)),
            return_exceptions=True,
        )

        assert sum(isinstance(r, DuplicateNationalIdError) for r in results) == 1
        winner = next(r for r in results if not isinstance(r, Exception))
        assert (await service.get_user_by_id(winner.id)).national_id == ana.national_id
        assert personal_store.count() == 1
        assert auth_store.count() == 1
        assert pseudonym_store.count() == 1


class TestReadUser:
    async def test_unknown_pseudonym(self, service: UserService) -> None:
        with pytest.raises(NotFoundError, match="Invalid user id."):
            await service.get_user_by_id("no-such-user")

    @pytest.mark.parametrize("pseudonym", ["", None, 7])
    async def test_malformed_pseudonym(self, service: UserService, pseudonym) -> None:
        with pytest.raises(NotFoundError):
            await service.get_user_by_id(pseudonym)

    async def test_row_id_is_not_an_identifier(self, service: UserService, ana: UserInput) -> None:
        await service.create_user(ana)

        with pytest.raises(NotFoundError):
            await service.get_user_by_id("1")

    async def test_missing_personal_row_is_integrity_fault(
        self,
        service: UserService,
        personal_store: InMemoryPersonalDataStore,
        probe: RecordingProbe,
        ana: UserInput,
    ) -> None:
        created = await service.create_user(ana)
        await personal_store.delete(1)

        with pytest.raises(IntegrityFaultError):
            await service.get_user_by_id(created.id)

        assert "integrity_fault" in probe.names()

    async def test_missing_auth_row_is_integrity_fault(
        self,
        service: UserService,
        auth_store: InMemoryAuthStore,
        ana: UserInput,
    ) -> None:
        created = await service.create_user(ana)
        await auth_store.delete(1)

        with pytest.raises(IntegrityFaultError, match="incomplete"):
            await service.get_user_by_id(created.id)

    async def test_transient_read_errors_are_retried(
        self,
        flaky_service: UserService,
        flaky_personal: FlakyPersonalStore,
        probe: RecordingProbe,
        ana: UserInput,
    ) -> None:
        created = await flaky_service.create_user(ana)
        flaky_personal.get_failures = 2

        fetched = await flaky_service.get_user_by_id(created.id)

        assert fetched.name == "Ana Silva"
        assert probe.names().count("read_retried") == 2

    async def test_persistent_read_errors_are_classified(
        self,
        flaky_service: UserService,
        flaky_personal: FlakyPersonalStore,
        ana: UserInput,
    ) -> None:
        created = await flaky_service.create_user(ana)
        flaky_personal.get_failures = 10

        with pytest.raises(StoreUnavailableError, match="Failed to fetch user.") as excinfo:
            await flaky_service.get_user_by_id(created.id)

        assert "connection reset" not in str(excinfo.value)


    async def test_corrupt_national_id_is_integrity_fault(
        self,
        service: UserService,
        personal_store: InMemoryPersonalDataStore,
        key_material: KeyMaterial,
        ana: UserInput,
    ) -> None:
        created = await service.create_user(ana)
        record = await personal_store.get(1)
        engine = EncryptionEngine(key_material)
        corrupt = replace(
            record.fields,
            national_id=engine.encrypt("not-a-number", EncryptionMode.RANDOMIZED),
        )
        await personal_store.update(1, corrupt)

        with pytest.raises(IntegrityFaultError):
            await service.get_user_by_id(created.id)


class TestListUsers:
    async def test_lists_summaries(
        self, service: UserService, ana: UserInput, bruno: UserInput
    ) -> None:
        first = await service.create_user(ana)
        second = await service.create_user(bruno)

        summaries = await service.get_users()

        assert [s.id for s in summaries] == [first.id, second.id]
        assert summaries[0].username == "ana.silva"
        assert summaries[1].organization_id == "org-2"
        assert summaries[1].role is Role.TECHNICIAN
        assert not hasattr(summaries[0], "email")

    async def test_empty(self, service: UserService) -> None:
        assert await service.get_users() == []

    async def test_auth_row_without_binding(
        self,
        service: UserService,
        auth_store: InMemoryAuthStore,
        probe: RecordingProbe,
        ana: UserInput,
    ) -> None:
        await service.create_user(ana)
        await auth_store.insert("orphan", "hash", "org-9", Role.STAFF)

        with pytest.raises(IntegrityFaultError):
            await service.get_users()

        assert "integrity_fault" in probe.names()


    async def test_lists_while_create_in_flight(
        self,
        flaky_service: UserService,
        flaky_pseudonyms: FlakyPseudonymStore,
        probe: RecordingProbe,
        ana: UserInput,
        bruno: UserInput,
    ) -> None:
        first = await flaky_service.create_user(ana)
        flaky_pseudonyms.release = asyncio.Event()
        creating = asyncio.create_task(flaky_service.create_user(bruno))
        await flaky_pseudonyms.held.wait()

        listing = asyncio.create_task(flaky_service.get_users())
        await asyncio.sleep(0.01)
        flaky_pseudonyms.release.set()
        second = await creating
        summaries = await listing

        assert [s.id for s in summaries] == [first.id, second.id]
        assert "integrity_fault" not in probe.names()

    async def test_compensated_create_is_skipped(
        self,
        flaky_service: UserService,
        flaky_auth: FlakyAuthStore,
        flaky_pseudonyms: FlakyPseudonymStore,
        probe: RecordingProbe,
        ana: UserInput,
        bruno: UserInput,
    ) -> None:
        first = await flaky_service.create_user(ana)
        flaky_pseudonyms.release = asyncio.Event()
        flaky_pseudonyms.fail_insert = True
        creating = asyncio.create_task(flaky_service.create_user(bruno))
        await flaky_pseudonyms.held.wait()

        listing = asyncio.create_task(flaky_service.get_users())
        await asyncio.sleep(0.01)
        flaky_pseudonyms.release.set()
        with pytest.raises(StoreUnavailableError):
            await creating
        summaries = await listing

        assert [s.id for s in summaries] == [first.id]
        assert flaky_auth.count() == 1
        assert "integrity_fault" not in probe.names()


class TestUpdateUser:
    async def test_update_personal_fields(
        self, service: UserService, ana: UserInput
    ) -> None:
        created = await service.create_user(ana)
        changes = replace(
            ana,
            name="Ana Maria Silva",
            address="Rua Nova 5, Braga",
            phone="+351911111111",
            email="ana.maria@x.com",
        )

        updated = await service.update_user(created.id, changes)
        fetched = await service.get_user_by_id(created.id)

        assert updated == fetched
        assert fetched.name == "Ana Maria Silva"
        assert fetched.email == "ana.maria@x.com"
        assert fetched.id == created.id

    async def test_auth_fields_are_not_changed(
        self, service: UserService, auth_store: InMemoryAuthStore, ana: UserInput
    ) -> None:
        created = await service.create_user(ana)
        before = await auth_store.get(1)

        updated = await service.update_user(
            created.id, replace(ana, username="hacker", role=Role.ADMIN, password="new-pass")
        )

        assert updated.username == "ana.silva"
        assert updated.role is Role.ORGANIZATION_STAFF
        assert await auth_store.get(1) == before

    async def test_keeping_own_email_is_allowed(
        self, service: UserService, ana: UserInput
    ) -> None:
        created = await service.create_user(ana)

        updated = await service.update_user(created.id, replace(ana, name="Ana Costa"))

        assert updated.email == ana.email

    async def test_taking_another_users_email(
        self, service: UserService, ana: UserInput, bruno: UserInput
    ) -> None:
        created = await service.create_user(ana)
        await service.create_user(bruno)

        with pytest.raises(DuplicateEmailError):
            await service.update_user(created.id, replace(ana, email=bruno.email))

        assert (await service.get_user_by_id(created.id)).email == "ana@x.com"

    async def test_taking_another_users_national_id(
        self, service: UserService, ana: UserInput, bruno: UserInput
    ) -> None:
        created = await service.create_user(ana)
        await service.create_user(bruno)

        with pytest.raises(DuplicateNationalIdError):
            await service.update_user(created.id, replace(ana, national_id=bruno.national_id))

    async def test_unknown_pseudonym(self, service: UserService, ana: UserInput) -> None:
        with pytest.raises(NotFoundError):
            await service.update_user("missing", ana)

    async def test_invalid_input(self, service: UserService, ana: UserInput) -> None:
        created = await service.create_user(ana)

        with pytest.raises(ValidationError):
            await service.update_user(created.id, replace(ana, phone="n/a"))

    async def test_store_failure_is_classified(
        self,
        flaky_service: UserService,
        flaky_personal: FlakyPersonalStore,
        ana: UserInput,
    ) -> None:
        created = await flaky_service.create_user(ana)
        flaky_personal.fail_update = True

        with pytest.raises(StoreUnavailableError, match="Update failed."):
            await flaky_service.update_user(created.id, replace(ana, name="Ana Costa"))

    async def test_missing_personal_row(
        self,
        service: UserService,
        personal_store: InMemoryPersonalDataStore,
        ana: UserInput,
    ) -> None:
        created = await service.create_user(ana)
        await personal_store.delete(1)

        with pytest.raises(IntegrityFaultError):
            await service.update_user(created.id, ana)


class TestDeleteUser:
    async def test_delete_removes_all_rows(
        self,
        service: UserService,
        personal_store: InMemoryPersonalDataStore,
        auth_store: InMemoryAuthStore,
        pseudonym_store: InMemoryPseudonymStore,
        ana: UserInput,
        bruno: UserInput,
    ) -> None:
        created = await service.create_user(ana)
        await service.create_user(bruno)

        result = await service.delete_user(created.id)

        assert result == DeleteResult(success=True, message="User deleted successfully.")
        assert personal_store.count() == 1
        assert auth_store.count() == 1
        assert pseudonym_store.count() == 1
        with pytest.raises(NotFoundError):
            await service.get_user_by_id(created.id)

    async def test_delete_leaves_other_users_alone(
        self, service: UserService, ana: UserInput, bruno: UserInput
    ) -> None:
        first = await service.create_user(ana)
        second = await service.create_user(bruno)

        await service.delete_user(first.id)

        assert (await service.get_user_by_id(second.id)).username == "bruno"
        assert [s.id for s in await service.get_users()] == [second.id]

    async def test_delete_unknown(self, service: UserService) -> None:
        with pytest.raises(NotFoundError):
            await service.delete_user("missing")

    async def test_delete_twice(self, service: UserService, ana: UserInput) -> None:
        created = await service.create_user(ana)
        await service.delete_user(created.id)

        with pytest.raises(NotFoundError):
            await service.delete_user(created.id)

    async def test_email_reusable_after_delete(
        self, service: UserService, ana: UserInput
    ) -> None:
        created = await service.create_user(ana)
        await service.delete_user(created.id)

        again = await service.create_user(ana)

        assert again.id != created.id

    async def test_transient_delete_errors_are_retried(
        self,
        flaky_service: UserService,
        flaky_auth: FlakyAuthStore,
        flaky_pseudonyms: FlakyPseudonymStore,
        ana: UserInput,
    ) -> None:
        created = await flaky_service.create_user(ana)
        flaky_auth.delete_failures = 2

        result = await flaky_service.delete_user(created.id)

        assert result.success
        assert flaky_auth.count() == 0
        assert flaky_pseudonyms.count() == 0

    async def test_partial_delete_is_retryable(
        self,
        flaky_service: UserService,
        flaky_personal: FlakyPersonalStore,
        flaky_auth: FlakyAuthStore,
        flaky_pseudonyms: FlakyPseudonymStore,
        probe: RecordingProbe,
        ana: UserInput,
    ) -> None:
        created = await flaky_service.create_user(ana)
        flaky_auth.delete_failures = 10

        with pytest.raises(StoreUnavailableError, match="partially deleted"):
            await flaky_service.delete_user(created.id)

        assert "partial_delete" in probe.names()
        assert flaky_personal.count() == 0
        assert flaky_auth.count() == 1
        # Binding is deleted last, so the pseudonym still resolves
        assert flaky_pseudonyms.count() == 1

        flaky_auth.delete_failures = 0
        result = await flaky_service.delete_user(created.id)

        assert result.success
        assert flaky_auth.count() == 0
        assert flaky_pseudonyms.count() == 0
        assert "integrity_fault" in probe.names()

    async def test_concurrent_reader_sees_not_found(
        self,
        flaky_service: UserService,
        flaky_personal: FlakyPersonalStore,
        probe: RecordingProbe,
        ana: UserInput,
    ) -> None:
        created = await flaky_service.create_user(ana)

        async def delete_first() -> None:
            flaky_personal.before_get = None
            await flaky_service.delete_user(created.id)

        # The delete completes between the reader's resolve and its fetch
        flaky_personal.before_get = delete_first

        with pytest.raises(NotFoundError) as excinfo:
            await flaky_service.get_user_by_id(created.id)

        assert not isinstance(excinfo.value, IntegrityFaultError)
        assert "integrity_fault" not in probe.names()

    async def test_integrity_fault_reads_as_not_found(
        self, service: UserService, auth_store: InMemoryAuthStore, ana: UserInput
    ) -> None:
        created = await service.create_user(ana)
        await auth_store.delete(1)

        with pytest.raises(NotFoundError):
            await service.get_user_by_id(created.id)
