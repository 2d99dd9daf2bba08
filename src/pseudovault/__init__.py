"""
Pseudonymized User Storage

A Python implementation of pseudonymized personal data split across three
independently administered PostgreSQL stores.

Overview
--------
- **Personal-data store** holds name, address, national id, phone and email,
  each under randomized AES-256-CBC encryption
- **Auth store** holds username, bcrypt password hash, organization and role
- **Pseudonym directory** binds an opaque pseudonym to the row ids of the
  other two stores, storing ciphertext only

Clients only ever see the pseudonym. No store holds enough to both identify
a person and learn their credentials, and none persists plaintext PII.

Quick Start
-----------
```python
import asyncio
from pseudovault import Settings, UserInput, Role, open_user_service

async def main():
    settings = Settings.from_env()
    async with open_user_service(settings) as service:
        user = await service.create_user(UserInput(
            username="ana",
            password="s3cret-pass",
            email="ana@x.com",
            name="Ana Silva",
            address="Rua Central 1, Lisboa",
            national_id=123456789,
            phone="+351912345678",
            organization_id="org-1",
            role=Role.STAFF,
        ))
        same = await service.get_user_by_id(user.id)
        await service.delete_user(user.id)

asyncio.run(main())
```

Key Features
------------
- **Dual-mode encryption**: deterministic (searchable) and randomized fields
- **Saga orchestration**: compensating deletes keep the three stores consistent
- **Uniqueness on ciphertext**: deterministic shadow indexes for email and national id
- **Cached key material**: TTL cache with explicit invalidation on rotation
- **No raw store errors**: failures are classified before they reach callers

Modules
-------
- `crypto`: AES-256-CBC deterministic and randomized modes
- `key_provider`: Vault, static and cached key material providers
- `storage`: Store interfaces and in-memory stores for testing
- `postgres`: asyncpg-backed stores
- `schema`: DDL and constraint names
- `directory`: Pseudonym directory
- `saga`: Ordered steps with compensations
- `service`: UserService, the cross-store orchestrator
- `validation`: Input sanitization and validation
- `errors`: Error types and exception classes
"""

__version__ = "0.1.0"

# ============================================================================
# Crypto Exports
# ============================================================================

from .crypto import (
    AES_256_KEY_SIZE,
    IV_SIZE,
    EncryptionEngine,
    EncryptionMode,
    KeyMaterial,
    decrypt_deterministic,
    decrypt_random,
    encrypt_deterministic,
    encrypt_random,
)

# ============================================================================
# Error Exports
# ============================================================================

from .errors import (
    ConfigError,
    CryptoError,
    DuplicateEmailError,
    DuplicateNationalIdError,
    DuplicatePseudonymError,
    DuplicateUsernameError,
    IntegrityFaultError,
    KeyUnavailableError,
    NotFoundError,
    PseudoVaultError,
    SecretUnavailableError,
    StorageError,
    StoreUnavailableError,
    UniqueViolationError,
    ValidationError,
)

# ============================================================================
# Model Exports
# ============================================================================

from .models import (
    AuthRecord,
    DeleteResult,
    PersonalDataRecord,
    PersonalFields,
    PseudonymBinding,
    ResolvedIds,
    Role,
    User,
    UserInput,
    UserSummary,
)

# ============================================================================
# Key Provider Exports
# ============================================================================

from .key_provider import (
    CachedKeyProvider,
    KeyProvider,
    StaticKeyProvider,
    VaultKeyProvider,
)

# ============================================================================
# Storage Exports
# ============================================================================

from .storage import (
    AuthStore,
    InMemoryAuthStore,
    InMemoryPersonalDataStore,
    InMemoryPseudonymStore,
    PersonalDataStore,
    PseudonymStore,
)

from .postgres import (
    PostgresAuthStore,
    PostgresPersonalDataStore,
    PostgresPseudonymStore,
)

# ============================================================================
# Service Exports (Primary API)
# ============================================================================

from .bootstrap import open_user_service
from .config import Settings
from .directory import PseudonymDirectory
from .service import UserService

# ============================================================================
# Public API
# ============================================================================

__all__ = [
    # Version
    "__version__",
    # Crypto
    "AES_256_KEY_SIZE",
    "IV_SIZE",
    "EncryptionEngine",
    "EncryptionMode",
    "KeyMaterial",
    "encrypt_deterministic",
    "decrypt_deterministic",
    "encrypt_random",
    "decrypt_random",
    # Errors
    "PseudoVaultError",
    "ValidationError",
    "DuplicateNationalIdError",
    "DuplicateEmailError",
    "DuplicateUsernameError",
    "DuplicatePseudonymError",
    "NotFoundError",
    "IntegrityFaultError",
    "CryptoError",
    "SecretUnavailableError",
    "KeyUnavailableError",
    "StoreUnavailableError",
    "StorageError",
    "UniqueViolationError",
    "ConfigError",
    # Models
    "Role",
    "UserInput",
    "User",
    "UserSummary",
    "DeleteResult",
    "PersonalFields",
    "PersonalDataRecord",
    "AuthRecord",
    "PseudonymBinding",
    "ResolvedIds",
    # Key providers
    "KeyProvider",
    "StaticKeyProvider",
    "VaultKeyProvider",
    "CachedKeyProvider",
    # Storage
    "PersonalDataStore",
    "AuthStore",
    "PseudonymStore",
    "InMemoryPersonalDataStore",
    "InMemoryAuthStore",
    "InMemoryPseudonymStore",
    "PostgresPersonalDataStore",
    "PostgresAuthStore",
    "PostgresPseudonymStore",
    # Service (Primary API)
    "PseudonymDirectory",
    "UserService",
    "Settings",
    "open_user_service",
]
