"""
Vault Configuration — validated settings for key derivation, storage and sync.

Reads overrides from environment variables:
    WALLET_SESSION_API_URL = <base url of the remote authority>
    WALLET_SESSION_SALT = <application-wide KDF salt>
    WALLET_SESSION_KDF_ITERATIONS = <integer, >= 100000>
    WALLET_SESSION_CIPHER_BACKEND = aesgcm | chacha20
    WALLET_SESSION_STORAGE_PATH = <directory for the file store, default ~/.wallet_session>
    WALLET_SESSION_REQUEST_TIMEOUT = <seconds>

Security Note:
    Never log key material. The salt is not secret but is not logged either.
"""
import os
import logging
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .. import conf

logger = logging.getLogger("wallet_session.vault")

_ENV_PREFIX = "WALLET_SESSION_"


def _env(name: str) -> Optional[str]:
    return os.environ.get(f"{_ENV_PREFIX}{name}")


class VaultConfig(BaseModel):
    """Validated wallet session configuration."""

    api_url: str = Field(default=conf.API_URL)
    salt: str = Field(default=conf.KDF_SALT, min_length=1)
    kdf_iterations: int = Field(
        default=conf.KDF_ITERATIONS, ge=conf.MIN_KDF_ITERATIONS
    )
    cipher_backend: str = Field(default=conf.CIPHER_BACKEND)
    session_key: str = Field(default=conf.SESSION_KEY, min_length=1)
    dashboard_key: str = Field(default=conf.DASHBOARD_KEY, min_length=1)
    message_template: str = Field(default=conf.MESSAGE_TEMPLATE)
    debounce_delay: float = Field(default=conf.DEBOUNCE_DELAY, gt=0)
    saved_grace: float = Field(default=conf.SAVED_GRACE, ge=0)
    request_timeout: Optional[float] = Field(default=None, gt=0)
    # None keeps everything in memory for the life of the process
    storage_path: Optional[str] = Field(default=conf.STORAGE_PATH)

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Accept bare hosts (``example.com``) by assuming https."""
        v = v.strip().rstrip("/")
        if not v:
            raise ValueError("api_url cannot be empty")
        if "://" not in v:
            v = f"https://{v}"
        return v

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in ("aesgcm", "chacha20"):
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @field_validator("message_template")
    @classmethod
    def validate_template(cls, v: str) -> str:
        """The signed message must embed the nonce."""
        if "{nonce}" not in v:
            raise ValueError("message_template must contain '{nonce}'")
        return v

    def signing_message(self, nonce: str) -> str:
        """Render the challenge text the wallet is asked to sign."""
        return self.message_template.format(nonce=nonce)

    @classmethod
    def from_env(cls, **overrides) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Keyword arguments take precedence over environment variables.

        Returns:
            Populated VaultConfig instance.
        """
        values = {}
        env_map = {
            "api_url": "API_URL",
            "salt": "SALT",
            "kdf_iterations": "KDF_ITERATIONS",
            "cipher_backend": "CIPHER_BACKEND",
            "storage_path": "STORAGE_PATH",
            "request_timeout": "REQUEST_TIMEOUT",
        }
        for field, name in env_map.items():
            value = _env(name)
            if value is not None:
                values[field] = value
        values.update(overrides)
        config = cls(**values)
        logger.debug(
            "Loaded vault config: api_url=%s backend=%s iterations=%d",
            config.api_url, config.cipher_backend, config.kdf_iterations,
        )
        return config
