"""
Vault Crypto Core — Key derivation, authenticated encryption and serialization.

- Key derivation: PBKDF2-HMAC-SHA256(secret, salt, iterations) → 32-byte key
- Encryption: AEAD (AES-GCM or ChaCha20-Poly1305) → base64([nonce 12B][payload + tag 16B])

Keys are never cached nor persisted; callers re-derive them on demand, which
is why derivation must be deterministic.

Security Note:
    Never log plaintext, ciphertext or key values.
    Nonces are random 96-bit; collision probability negligible under normal usage.
"""
import os
import base64
import asyncio
import binascii
import logging
from typing import Any
from functools import partial

import orjson
from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from ..exceptions import KeyDerivationError, DecryptionError

logger = logging.getLogger("wallet_session.vault")

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16
KEY_LENGTH = 32  # AES-256

_CIPHERS = {
    "aesgcm": AESGCM,
    "chacha20": ChaCha20Poly1305,
}


def get_cipher_cls(backend: str = "aesgcm") -> type:
    """Return the AEAD cipher class for a backend name."""
    try:
        return _CIPHERS[backend.lower()]
    except KeyError:
        raise ValueError(f"Unsupported cipher backend: {backend}") from None


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(secret: str, salt: bytes, iterations: int) -> bytes:
    """Derive a 32-byte encryption key using PBKDF2-HMAC-SHA256.

    Args:
        secret: Input secret (the device fingerprint).
        salt: Application-wide salt.
        iterations: PBKDF2 iteration count.

    Returns:
        32-byte derived key.

    Raises:
        KeyDerivationError: If the secret is empty, iterations are not
            positive, or the primitive is unavailable.
    """
    if not secret:
        raise KeyDerivationError("Cannot derive a key from an empty secret")
    if iterations <= 0:
        raise KeyDerivationError(
            f"Iteration count must be positive, got {iterations}"
        )
    try:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=iterations,
        )
        return kdf.derive(secret.encode("utf-8"))
    except UnsupportedAlgorithm as err:
        raise KeyDerivationError(
            f"PBKDF2-HMAC-SHA256 unavailable: {err}"
        ) from err


# ---------------------------------------------------------------------------
# Authenticated encryption
# ---------------------------------------------------------------------------

def encrypt(plaintext: str, key: bytes, cipher_cls: type = AESGCM) -> str:
    """Encrypt text with a fresh random nonce.

    Format: base64([nonce 12B][encrypted_payload + tag 16B])

    Args:
        plaintext: Text to encrypt.
        key: 32-byte key from ``derive_key``.
        cipher_cls: AEAD class (AESGCM or ChaCha20Poly1305).

    Returns:
        ASCII base64 blob suitable for text storage.
    """
    cipher = cipher_cls(key)
    nonce = os.urandom(NONCE_SIZE)
    ct = cipher.encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.b64encode(nonce + ct).decode("ascii")


def decrypt(blob: str, key: bytes, cipher_cls: type = AESGCM) -> str:
    """Decrypt a blob produced by ``encrypt``.

    Raises:
        DecryptionError: On tag mismatch, wrong key, corrupted or truncated
            input. Never returns the input unchanged.
    """
    try:
        raw = base64.b64decode(blob, validate=True)
    except (binascii.Error, ValueError, TypeError) as err:
        raise DecryptionError(f"Ciphertext is not valid base64: {err}") from err
    _min = NONCE_SIZE + TAG_SIZE
    if len(raw) < _min:
        raise DecryptionError(
            f"Ciphertext too short: {len(raw)} bytes (minimum {_min})"
        )
    nonce = raw[:NONCE_SIZE]
    ct = raw[NONCE_SIZE:]
    try:
        data = cipher_cls(key).decrypt(nonce, ct, None)
    except InvalidTag as err:
        raise DecryptionError(
            "Authentication tag mismatch (wrong key or tampered data)"
        ) from err
    except ValueError as err:
        # invalid key size
        raise DecryptionError(str(err)) from err
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as err:
        raise DecryptionError("Decrypted payload is not valid UTF-8") from err


# ---------------------------------------------------------------------------
# Cipher capability
# ---------------------------------------------------------------------------

class AEADCipher:
    """Async ``Cipher`` capability over the functions above.

    Key derivation and AEAD work are CPU-bound, so they run in the default
    executor and only suspend the caller.
    """

    def __init__(
        self,
        salt: str,
        iterations: int,
        backend: str = "aesgcm",
    ):
        self._salt = salt.encode("utf-8")
        self._iterations = iterations
        self._cipher_cls = get_cipher_cls(backend)

    @property
    def backend(self) -> str:
        return self._cipher_cls.__name__

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    async def derive_key(self, secret: str) -> bytes:
        return await self._run(derive_key, secret, self._salt, self._iterations)

    async def encrypt(self, plaintext: str, key: bytes) -> str:
        return await self._run(encrypt, plaintext, key, self._cipher_cls)

    async def decrypt(self, blob: str, key: bytes) -> str:
        return await self._run(decrypt, blob, key, self._cipher_cls)


# ---------------------------------------------------------------------------
# Value serialization
# ---------------------------------------------------------------------------

def serialize_value(value: Any) -> str:
    """Serialize a JSON-compatible value to text for encryption."""
    return orjson.dumps(value).decode("utf-8")


def deserialize_value(data: str) -> Any:
    """Deserialize text produced by ``serialize_value``.

    Raises:
        orjson.JSONDecodeError: If ``data`` is not valid JSON.
    """
    return orjson.loads(data)
