"""
WalletContext — the collaborators shared by every component.

Built once and passed to the session store, authenticator and sync engine,
so tests can swap the remote authority, the store, the clock or the
scheduler for doubles.
"""
import time
import asyncio
from typing import Any, Callable, Optional, Protocol

from .fingerprint import DeviceInfo, fingerprint
from .remote import RemoteAuthority
from .storage import KeyValueStore, MemoryStore, FileStore
from .vault.config import VaultConfig
from .vault.crypto import AEADCipher


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Anything with ``call_later``; the asyncio event loop qualifies."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        ...


class Cipher(Protocol):
    async def derive_key(self, secret: str) -> bytes:
        ...

    async def encrypt(self, plaintext: str, key: bytes) -> str:
        ...

    async def decrypt(self, blob: str, key: bytes) -> str:
        ...


class WalletContext:
    """Explicit container for configuration and capabilities."""

    def __init__(
        self,
        config: Optional[VaultConfig] = None,
        store: Optional[KeyValueStore] = None,
        cipher: Optional[Cipher] = None,
        remote: Any = None,
        device: Optional[DeviceInfo] = None,
        clock: Callable[[], float] = time.time,
        scheduler: Optional[Scheduler] = None,
    ):
        self.config = config or VaultConfig()
        if store is None:
            if self.config.storage_path:
                store = FileStore(self.config.storage_path)
            else:
                store = MemoryStore()
        self.store = store
        self.cipher = cipher or AEADCipher(
            salt=self.config.salt,
            iterations=self.config.kdf_iterations,
            backend=self.config.cipher_backend,
        )
        if remote is None:
            remote = RemoteAuthority(
                self.config.api_url,
                timeout=self.config.request_timeout,
            )
        self.remote = remote
        self.device = device or DeviceInfo.from_environment()
        self.clock = clock
        self._scheduler = scheduler

    @property
    def scheduler(self) -> Scheduler:
        if self._scheduler is not None:
            return self._scheduler
        return asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        return self.scheduler.call_later(delay, callback, *args)

    def fingerprint(self) -> str:
        return fingerprint(self.device)

    async def device_key(self) -> bytes:
        """Derive the device-bound key. Never cached."""
        return await self.cipher.derive_key(self.fingerprint())

    async def close(self) -> None:
        close = getattr(self.remote, "close", None)
        if close is not None:
            await close()
