"""
SessionStore — Encrypted bearer token persisted in the local store.

Provides:
- ``save(token, expires_at)`` — encrypt the token with the device key and persist
- ``load()`` — decrypt and return the token (``None`` if absent/expired/unreadable)
- ``is_valid()`` — expiry check on the plaintext ``expiresAt``, no decryption
- ``clear()`` — drop the session and the cached dashboard ciphertext

Stored entry (JSON): ``{"token": <base64 nonce||ciphertext>, "expiresAt": <epoch seconds>}``

Security Note:
    Never log the token or its ciphertext. Only log storage keys and expiry.
"""
import math
import logging
from typing import TYPE_CHECKING, Any, Optional

import orjson

from ..data import SessionToken, to_timestamp
from ..exceptions import DecryptionError

if TYPE_CHECKING:
    from ..context import WalletContext

logger = logging.getLogger("wallet_session.vault")


class SessionStore:
    """Device-bound persistence of the session token."""

    def __init__(self, context: "WalletContext"):
        self._ctx = context
        self._key = context.config.session_key

    def _read_entry(self) -> Optional[dict]:
        """Return the raw stored entry, or None if missing or malformed."""
        raw = self._ctx.store.get(self._key)
        if raw is None:
            return None
        try:
            entry = orjson.loads(raw)
            entry["expiresAt"] = float(entry["expiresAt"])
            if not math.isfinite(entry["expiresAt"]):
                raise ValueError("expiresAt is not a finite number")
            if not isinstance(entry["token"], str):
                raise TypeError("token is not a string")
        except (orjson.JSONDecodeError, KeyError, TypeError, ValueError) as err:
            logger.warning("Discarding malformed session entry %s: %s", self._key, err)
            return None
        return entry

    async def save(self, token: str, expires_at: Any) -> SessionToken:
        """Encrypt and persist a session token.

        Args:
            token: Bearer token from the remote authority.
            expires_at: Expiry (epoch seconds/ms, ISO-8601 or datetime).

        Raises:
            KeyDerivationError: If the device key cannot be derived. Nothing
                is written in that case.
        """
        session = SessionToken(token=token, expires_at=to_timestamp(expires_at))
        key = await self._ctx.device_key()
        ciphertext = await self._ctx.cipher.encrypt(session.token, key)
        self._ctx.store.set(
            self._key,
            orjson.dumps({
                "token": ciphertext,
                "expiresAt": session.expires_at,
            }).decode("utf-8"),
        )
        logger.debug("Session saved: key=%s expires_at=%s", self._key, session.expires_at)
        return session

    def is_valid(self) -> bool:
        """True if a stored session exists and has not expired.

        Expired entries are removed.
        """
        entry = self._read_entry()
        if entry is None:
            return False
        if self._ctx.clock() >= entry["expiresAt"]:
            logger.info("Session expired at %s, removing", entry["expiresAt"])
            self._ctx.store.delete(self._key)
            return False
        return True

    async def load(self) -> Optional[SessionToken]:
        """Return the decrypted session token, or None.

        A session that fails to decrypt is reported as absent, never as an
        authentication error.
        """
        if not self.is_valid():
            return None
        entry = self._read_entry()
        if entry is None:
            return None
        key = await self._ctx.device_key()
        try:
            token = await self._ctx.cipher.decrypt(entry["token"], key)
        except DecryptionError as err:
            logger.warning("Stored session could not be decrypted: %s", err)
            return None
        return SessionToken(token=token, expires_at=entry["expiresAt"])

    def clear(self) -> None:
        """Remove the session and any cached user-data ciphertext."""
        self._ctx.store.delete(self._key)
        self._ctx.store.delete(self._ctx.config.dashboard_key)
        logger.debug("Session cleared: key=%s", self._key)
