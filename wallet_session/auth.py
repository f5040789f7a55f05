"""
Wallet Authentication — nonce challenge-response producing a session token.

Flow::

    disconnected → nonce_requested → signed → verifying → authenticated
                         └──────────────┴──────────┴──────→ failed

1. ``request_nonce(address)`` — single-use nonce from the remote authority
2. ``sign(provider)`` — the wallet signs the challenge text embedding the nonce
3. ``verify()`` — the authority checks signature and nonce, returns a token
4. the token is encrypted and persisted through the ``SessionStore``

Failures are never retried: a new attempt needs a fresh nonce.

Security Note:
    Never log signatures or tokens. Only log addresses and state changes.
"""
import inspect
import logging
from enum import Enum
from typing import Any, Optional, Protocol, Union

from .context import WalletContext
from .exceptions import (
    AuthenticationError,
    KeyDerivationError,
    NetworkError,
    NonceError,
    SignatureRejected,
    StorageError,
)
from .vault.session_store import SessionStore

logger = logging.getLogger("wallet_session.auth")


class AuthState(str, Enum):
    DISCONNECTED = "disconnected"
    NONCE_REQUESTED = "nonce_requested"
    SIGNED = "signed"
    VERIFYING = "verifying"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class WalletProvider(Protocol):
    """Anything able to sign a text message. ``sign_message`` may be async."""

    def sign_message(self, text: str) -> Union[str, Any]:
        ...


class WalletAuthenticator:
    """One authentication attempt at a time for a given context."""

    def __init__(
        self,
        context: WalletContext,
        session_store: Optional[SessionStore] = None,
    ):
        self._ctx = context
        self._sessions = session_store or SessionStore(context)
        self._state = AuthState.DISCONNECTED
        self._address: Optional[str] = None
        self._nonce: Optional[str] = None
        self._signature: Optional[str] = None
        self._consumed: set[str] = set()
        self.last_error: Optional[Exception] = None

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def address(self) -> Optional[str]:
        return self._address

    def _transition(self, state: AuthState) -> None:
        logger.debug(
            "Auth %s: %s -> %s", self._address, self._state.value, state.value
        )
        self._state = state

    def _fail(self, err: Exception) -> None:
        self.last_error = err
        self._nonce = None
        self._signature = None
        self._transition(AuthState.FAILED)

    def reset(self) -> None:
        """Forget the current attempt; consumed nonces are kept."""
        self._state = AuthState.DISCONNECTED
        self._address = None
        self._nonce = None
        self._signature = None
        self.last_error = None

    async def request_nonce(self, address: str) -> str:
        """Step 1: obtain a nonce for ``address``.

        Raises:
            NonceError: If the authority issues a nonce already used here.
            NetworkError: If the authority is unreachable.
        """
        self.reset()
        self._address = address
        try:
            nonce = await self._ctx.remote.request_nonce(address)
            if nonce in self._consumed:
                raise NonceError(f"Nonce for {address} was already consumed")
        except (AuthenticationError, NetworkError) as err:
            self._fail(err)
            raise
        self._nonce = nonce
        self._transition(AuthState.NONCE_REQUESTED)
        return nonce

    async def sign(self, provider: WalletProvider) -> str:
        """Step 2: ask the wallet to sign the challenge.

        Raises:
            NonceError: If no nonce is outstanding.
            SignatureRejected: If the wallet refuses or returns nothing.
        """
        if self._state is not AuthState.NONCE_REQUESTED or not self._nonce:
            err = NonceError("Request a nonce before signing")
            self._fail(err)
            raise err
        message = self._ctx.config.signing_message(self._nonce)
        try:
            signature = provider.sign_message(message)
            if inspect.isawaitable(signature):
                signature = await signature
        except Exception as err:
            rejected = SignatureRejected(f"Wallet refused to sign: {err}")
            self._fail(rejected)
            raise rejected from err
        if not signature:
            rejected = SignatureRejected("Wallet returned an empty signature")
            self._fail(rejected)
            raise rejected
        self._signature = str(signature)
        self._transition(AuthState.SIGNED)
        return self._signature

    async def verify(self) -> bool:
        """Step 3+4: submit the signature and persist the issued token.

        Raises:
            NonceError: If no signed nonce is outstanding, or it was consumed.
            VerificationFailed: If the authority rejects the signature.
            NetworkError: If the authority is unreachable.
            KeyDerivationError: If the token cannot be encrypted.
        """
        nonce = self._nonce
        if self._state is not AuthState.SIGNED or not nonce or not self._signature:
            err = NonceError("Verify called before a nonce was requested and signed")
            self._fail(err)
            raise err
        if nonce in self._consumed:
            err = NonceError(f"Nonce for {self._address} was already consumed")
            self._fail(err)
            raise err
        self._transition(AuthState.VERIFYING)
        # a submitted nonce is spent whatever the outcome
        self._consumed.add(nonce)
        try:
            token, expires_at = await self._ctx.remote.verify(
                self._address, self._signature, nonce
            )
            if expires_at is None:
                raise AuthenticationError("Authority returned no expiry")
            await self._sessions.save(token, expires_at)
        except (
            AuthenticationError, NetworkError, KeyDerivationError, StorageError
        ) as err:
            self._fail(err)
            raise
        except ValueError as err:
            failed = AuthenticationError(f"Invalid expiry from authority: {err}")
            self._fail(failed)
            raise failed from err
        self._nonce = None
        self._signature = None
        self._transition(AuthState.AUTHENTICATED)
        logger.info("Wallet %s authenticated", self._address)
        return True

    async def authenticate(self, address: str, provider: WalletProvider) -> bool:
        """Run the whole flow; report failures as ``False``.

        The reason for a failure is kept in ``last_error``.
        """
        try:
            await self.request_nonce(address)
            await self.sign(provider)
            return await self.verify()
        except (
            AuthenticationError, NetworkError, KeyDerivationError, StorageError
        ) as err:
            logger.warning(
                "Authentication failed for %s: %s", address, type(err).__name__
            )
            return False
