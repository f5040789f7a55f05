"""Wallet Session exceptions."""


class WalletSessionError(Exception):
    """Base class for all Wallet Session errors."""


class KeyDerivationError(WalletSessionError):
    """Symmetric key material could not be derived.

    Fatal to the current operation: callers never fall back to plaintext.
    """


class DecryptionError(WalletSessionError):
    """Ciphertext failed authentication, was corrupted or the key is wrong."""


class StorageError(WalletSessionError):
    """The local key-value store could not be read or written."""


class NetworkError(WalletSessionError):
    """The remote authority could not be reached or answered with an error."""

    def __init__(self, message: str, status: int = None):
        super().__init__(message)
        self.status = status


class AuthenticationError(WalletSessionError):
    """Base class for wallet authentication failures."""


class NonceError(AuthenticationError):
    """No usable nonce: never requested, missing, or already consumed."""


class SignatureRejected(AuthenticationError):
    """The wallet provider refused or failed to sign the challenge."""


class VerificationFailed(AuthenticationError):
    """The remote authority rejected the signed challenge."""
