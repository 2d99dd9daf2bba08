"""
Key material providers.

This module provides:
- KeyProvider: Abstract interface for key material sources
- StaticKeyProvider: Fixed key material for development and tests
- VaultKeyProvider: HashiCorp Vault KV v2 over its HTTP API
- CachedKeyProvider: Process-wide TTL cache in front of any provider

The secret store holds one secret (default kv/keys) with three fields:
- super_key:  master AES-256 key, hex encoded
- iv:         fixed IV for deterministic encryption, base64 encoded
- jwt_secret: token signing secret
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from .crypto import KeyMaterial
from .errors import CryptoError, KeyUnavailableError, SecretUnavailableError
from .observability import DefaultKeyProviderProbe, KeyProviderProbe
from .retry import retry_async

DEFAULT_CACHE_TTL: float = 300.0  # seconds
DEFAULT_FETCH_TIMEOUT: float = 5.0  # seconds


class KeyProvider(ABC):
    """
    Abstract source of key material.

    get_key_material is the primitive; the three field getters are derived
    from it so one fetch serves a whole operation.
    """

    @abstractmethod
    async def get_key_material(self) -> KeyMaterial:
        """Fetch master key, IV and signing secret together."""
        ...

    async def get_encryption_key(self) -> bytes:
        """Get the master symmetric key."""
        return (await self.get_key_material()).key

    async def get_initialization_vector(self) -> bytes:
        """Get the fixed IV used by deterministic encryption."""
        return (await self.get_key_material()).iv

    async def get_signing_secret(self) -> bytes:
        """Get the token signing secret."""
        return (await self.get_key_material()).signing_secret


class StaticKeyProvider(KeyProvider):
    """Key provider returning fixed material."""

    def __init__(self, material: KeyMaterial) -> None:
        self._material = material

    async def get_key_material(self) -> KeyMaterial:
        return self._material


class VaultKeyProvider(KeyProvider):
    """
    Reads key material from a Vault KV v2 secret.

    Every request is bounded by the client timeout. Transport errors are
    retried with bounded backoff; HTTP errors and missing fields are not.
    """

    SOURCE = "vault"

    def __init__(
        self,
        client: httpx.AsyncClient,
        token: str,
        mount: str = "kv",
        path: str = "keys",
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        attempts: int = 3,
        probe: Optional[KeyProviderProbe] = None,
    ) -> None:
        """
        Initialize the Vault provider.

        Args:
            client: httpx client with base_url pointing at the Vault server
            token: Vault token sent as X-Vault-Token
            mount: KV v2 mount point
            path: Secret path under the mount
            timeout: Per-request timeout in seconds
            attempts: Total attempts on transport errors
            probe: Observability probe
        """
        self._client = client
        self._token = token
        self._url = f"/v1/{mount.strip('/')}/data/{path.strip('/')}"
        self._timeout = timeout
        self._attempts = attempts
        self._probe = probe or DefaultKeyProviderProbe()

    async def get_key_material(self) -> KeyMaterial:
        data = await self._read_secret()
        try:
            super_key = data["super_key"]
            iv = data["iv"]
        except KeyError as e:
            raise SecretUnavailableError(f"Secret field missing: {e.args[0]}")
        try:
            return KeyMaterial.from_encoded(super_key, iv, data.get("jwt_secret") or "")
        except CryptoError as e:
            raise SecretUnavailableError(f"Secret field malformed: {e}")

    async def _read_secret(self) -> Dict[str, Any]:
        def on_retry(attempt: int, error: BaseException) -> None:
            self._probe.key_fetch_failed(self.SOURCE, attempt, error)

        try:
            response = await retry_async(
                self._get,
                retry_on=(httpx.TransportError,),
                attempts=self._attempts,
                on_retry=on_retry,
            )
        except httpx.HTTPError as e:
            self._probe.key_fetch_failed(self.SOURCE, self._attempts, e)
            raise SecretUnavailableError(f"Secret store unreachable: {type(e).__name__}")

        if response.status_code != 200:
            raise SecretUnavailableError(
                f"Secret store returned HTTP {response.status_code}"
            )
        try:
            return response.json()["data"]["data"]
        except (ValueError, KeyError, TypeError):
            raise SecretUnavailableError("Secret not found at configured path")

    async def _get(self) -> httpx.Response:
        return await self._client.get(
            self._url,
            headers={"X-Vault-Token": self._token},
            timeout=self._timeout,
        )


class CachedKeyProvider(KeyProvider):
    """
    TTL cache in front of another provider.

    One instance is shared by the whole process. Concurrent misses trigger a
    single fetch. A fetch that fails or exceeds fetch_timeout raises
    KeyUnavailableError; the stale value is never served past its TTL.
    """

    def __init__(
        self,
        inner: KeyProvider,
        ttl: float = DEFAULT_CACHE_TTL,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        probe: Optional[KeyProviderProbe] = None,
    ) -> None:
        self._inner = inner
        self._ttl = ttl
        self._fetch_timeout = fetch_timeout
        self._probe = probe or DefaultKeyProviderProbe()

        self._material: Optional[KeyMaterial] = None
        self._fetched_at: Optional[float] = None
        self._lock = asyncio.Lock()

    async def get_key_material(self) -> KeyMaterial:
        material = self._fresh()
        if material is not None:
            return material

        async with self._lock:
            # Another waiter may have refreshed while we queued
            material = self._fresh()
            if material is not None:
                return material

            try:
                material = await asyncio.wait_for(
                    self._inner.get_key_material(), timeout=self._fetch_timeout
                )
            except asyncio.TimeoutError as e:
                self._probe.key_fetch_failed("cache", 1, e)
                raise KeyUnavailableError("Key material fetch timed out")
            except SecretUnavailableError as e:
                self._probe.key_fetch_failed("cache", 1, e)
                raise KeyUnavailableError(f"Key material unavailable: {e}") from e

            self._material = material
            self._fetched_at = time.monotonic()
            self._probe.key_material_refreshed(type(self._inner).__name__)
            return material

    def invalidate(self) -> None:
        """Drop cached material; the next call fetches again (rotation signal)."""
        self._material = None
        self._fetched_at = None
        self._probe.key_material_invalidated()

    def _fresh(self) -> Optional[KeyMaterial]:
        if self._material is None or self._fetched_at is None:
            return None
        if time.monotonic() - self._fetched_at >= self._ttl:
            return None
        return self._material
