"""Wallet Session.

Wallet signature authentication with a device-bound, encrypted,
local-first cache of user dashboard data.
"""
from .version import __version__
from .exceptions import (
    WalletSessionError,
    KeyDerivationError,
    DecryptionError,
    StorageError,
    NetworkError,
    AuthenticationError,
    NonceError,
    SignatureRejected,
    VerificationFailed,
)
from .fingerprint import DeviceInfo, fingerprint
from .storage import KeyValueStore, MemoryStore, FileStore
from .data import SessionToken, SyncStatus, UserDataSnapshot
from .context import WalletContext
from .vault import AEADCipher, VaultConfig, SessionStore
from .remote import RemoteAuthority
from .auth import AuthState, WalletAuthenticator
from .sync import DebouncedTask, SyncEngine
from .manager import WalletSessionManager

__all__ = [
    "__version__",
    "WalletSessionError",
    "KeyDerivationError",
    "DecryptionError",
    "StorageError",
    "NetworkError",
    "AuthenticationError",
    "NonceError",
    "SignatureRejected",
    "VerificationFailed",
    "DeviceInfo",
    "fingerprint",
    "KeyValueStore",
    "MemoryStore",
    "FileStore",
    "SessionToken",
    "SyncStatus",
    "UserDataSnapshot",
    "WalletContext",
    "AEADCipher",
    "VaultConfig",
    "SessionStore",
    "RemoteAuthority",
    "AuthState",
    "WalletAuthenticator",
    "DebouncedTask",
    "SyncEngine",
    "WalletSessionManager",
]
