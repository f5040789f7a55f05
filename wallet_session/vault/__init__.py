"""Vault — Device-bound encryption of session and dashboard data.

Security Note (Threat Model):
    The encryption key is derived from the device fingerprint, which is
    computed from non-secret device characteristics. The vault protects data
    at rest against casual inspection and copying to another device; it does
    not protect against code running on the same device and install.
"""

from .crypto import AEADCipher, derive_key, encrypt, decrypt
from .config import VaultConfig
from .session_store import SessionStore

__all__ = [
    "AEADCipher",
    "derive_key",
    "encrypt",
    "decrypt",
    "VaultConfig",
    "SessionStore",
]
