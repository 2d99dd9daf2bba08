"""
Cryptographic primitives for dual-mode AES-256-CBC field encryption.

This module provides:
- KeyMaterial: master key, fixed IV and signing secret with a redacted repr
- EncryptionMode: DETERMINISTIC (fixed IV, searchable) or RANDOMIZED (fresh IV)
- encrypt_deterministic / decrypt_deterministic
- encrypt_random / decrypt_random
- EncryptionEngine: mode-selecting facade bound to one KeyMaterial

Wire formats (hex text, safe for TEXT columns):
- Deterministic: hex(ciphertext)
- Randomized:    hex(iv) || hex(ciphertext), the IV prefix is 32 hex chars

Deterministic mode leaks equality across rows. Use it only for high-entropy
tokens (pseudonyms, row ids) and for the uniqueness shadow indexes.
"""

from __future__ import annotations

import base64
import binascii
import secrets
from dataclasses import dataclass, field
from enum import Enum

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .errors import CryptoError

# Cryptographic constants
AES_256_KEY_SIZE: int = 32  # 256 bits
IV_SIZE: int = 16  # 128 bits (AES block size)
IV_HEX_LENGTH: int = IV_SIZE * 2
BLOCK_SIZE_BITS: int = 128


class EncryptionMode(Enum):
    """Field encryption mode."""

    DETERMINISTIC = "deterministic"  # fixed IV, equal plaintext -> equal ciphertext
    RANDOMIZED = "randomized"  # fresh IV per call, IV prepended

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class KeyMaterial:
    """
    Key material fetched from the key provider.

    repr is redacted to prevent accidental key disclosure in logs and tracebacks.
    """

    key: bytes = field(repr=False)
    iv: bytes = field(repr=False)
    signing_secret: bytes = field(default=b"", repr=False)

    @classmethod
    def from_encoded(
        cls, super_key_hex: str, iv_base64: str, signing_secret: str = ""
    ) -> KeyMaterial:
        """
        Decode the secret store's text encodings.

        Args:
            super_key_hex: Master key as 64 hex characters
            iv_base64: Fixed IV as base64 (16 bytes decoded)
            signing_secret: Token signing secret, kept as UTF-8 bytes

        Raises:
            CryptoError: If either value cannot be decoded to the right size
        """
        try:
            key = bytes.fromhex(super_key_hex)
        except (TypeError, ValueError):
            raise CryptoError("Master key is not valid hex")
        try:
            iv = base64.b64decode(iv_base64, validate=True)
        except (TypeError, ValueError, binascii.Error):
            raise CryptoError("IV is not valid base64")
        _check_key(key)
        _check_iv(iv)
        return cls(key=key, iv=iv, signing_secret=signing_secret.encode("utf-8"))

    def __repr__(self) -> str:
        return "KeyMaterial([REDACTED])"


def _check_key(key: bytes) -> None:
    if not isinstance(key, (bytes, bytearray)):
        raise CryptoError("Key must be bytes or bytearray")
    if len(key) != AES_256_KEY_SIZE:
        raise CryptoError(
            f"Invalid key size: expected {AES_256_KEY_SIZE}, got {len(key)}"
        )


def _check_iv(iv: bytes) -> None:
    if not isinstance(iv, (bytes, bytearray)):
        raise CryptoError("IV must be bytes or bytearray")
    if len(iv) != IV_SIZE:
        raise CryptoError(f"Invalid IV size: expected {IV_SIZE}, got {len(iv)}")


def _encrypt(plaintext: str, key: bytes, iv: bytes) -> bytes:
    if not isinstance(plaintext, str):
        raise CryptoError("Plaintext must be str")
    padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    try:
        encryptor = Cipher(algorithms.AES(bytes(key)), modes.CBC(bytes(iv))).encryptor()
        return encryptor.update(padded) + encryptor.finalize()
    except Exception as e:
        raise CryptoError(f"Encryption error: {e}")


def _decrypt(ciphertext: bytes, key: bytes, iv: bytes) -> str:
    if not ciphertext or len(ciphertext) % IV_SIZE:
        raise CryptoError("Decryption failed")
    try:
        decryptor = Cipher(algorithms.AES(bytes(key)), modes.CBC(bytes(iv))).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
        data = unpadder.update(padded) + unpadder.finalize()
        return data.decode("utf-8")
    except Exception:
        # Generic error to prevent padding oracle attacks
        raise CryptoError("Decryption failed")


def _from_hex(value: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except (TypeError, ValueError):
        raise CryptoError("Ciphertext is not valid hex")


def encrypt_deterministic(plaintext: str, key: bytes, iv: bytes) -> str:
    """
    Encrypt with a fixed IV so equal plaintexts give equal ciphertext.

    Args:
        plaintext: Text to encrypt
        key: 32-byte AES key
        iv: 16-byte IV shared by all deterministic values

    Returns:
        Ciphertext as lowercase hex

    Raises:
        CryptoError: If key or IV is malformed or encryption fails
    """
    _check_key(key)
    _check_iv(iv)
    return _encrypt(plaintext, key, iv).hex()


def decrypt_deterministic(ciphertext_hex: str, key: bytes, iv: bytes) -> str:
    """
    Decrypt a value produced by encrypt_deterministic.

    Raises:
        CryptoError: If key/IV is malformed or the ciphertext is corrupted
    """
    _check_key(key)
    _check_iv(iv)
    return _decrypt(_from_hex(ciphertext_hex), key, iv)


def encrypt_random(plaintext: str, key: bytes) -> str:
    """
    Encrypt with a fresh random IV, prepended to the output.

    Args:
        plaintext: Text to encrypt
        key: 32-byte AES key

    Returns:
        hex(iv) || hex(ciphertext)

    Raises:
        CryptoError: If key is malformed or encryption fails
    """
    _check_key(key)
    iv = secrets.token_bytes(IV_SIZE)
    return iv.hex() + _encrypt(plaintext, key, iv).hex()


def decrypt_random(blob: str, key: bytes) -> str:
    """
    Split the IV prefix from the blob and decrypt the remainder.

    Raises:
        CryptoError: If key is malformed or the blob is truncated or corrupted
    """
    _check_key(key)
    if not isinstance(blob, str) or len(blob) <= IV_HEX_LENGTH:
        raise CryptoError("Encrypted blob too small")
    iv = _from_hex(blob[:IV_HEX_LENGTH])
    return _decrypt(_from_hex(blob[IV_HEX_LENGTH:]), key, iv)


class EncryptionEngine:
    """
    Dual-mode field encryption bound to one KeyMaterial.

    Stateless apart from the key material; callers pick the mode per field
    depending on whether equality search is needed.
    """

    __slots__ = ("_material",)

    def __init__(self, material: KeyMaterial) -> None:
        self._material = material

    def encrypt(self, plaintext: str, mode: EncryptionMode) -> str:
        """Encrypt plaintext under the requested mode."""
        if mode is EncryptionMode.DETERMINISTIC:
            return encrypt_deterministic(plaintext, self._material.key, self._material.iv)
        if mode is EncryptionMode.RANDOMIZED:
            return encrypt_random(plaintext, self._material.key)
        raise CryptoError(f"Unknown encryption mode: {mode}")

    def decrypt(self, ciphertext: str, mode: EncryptionMode) -> str:
        """Decrypt ciphertext produced under the same mode."""
        if mode is EncryptionMode.DETERMINISTIC:
            return decrypt_deterministic(ciphertext, self._material.key, self._material.iv)
        if mode is EncryptionMode.RANDOMIZED:
            return decrypt_random(ciphertext, self._material.key)
        raise CryptoError(f"Unknown encryption mode: {mode}")

    def __repr__(self) -> str:
        return "EncryptionEngine([REDACTED])"
