"""Shared fixtures: in-memory doubles for the remote authority, the KDF,
the clock and the scheduler."""
import heapq
import hashlib
import itertools

import pytest

from wallet_session.context import WalletContext
from wallet_session.exceptions import (
    KeyDerivationError,
    NetworkError,
    VerificationFailed,
)
from wallet_session.fingerprint import DeviceInfo
from wallet_session.storage import MemoryStore
from wallet_session.vault import crypto
from wallet_session.vault.config import VaultConfig


class Clock:
    """Controllable wall clock (epoch seconds)."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class _Handle:
    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """``call_later`` driven by ``advance()`` instead of the event loop."""

    def __init__(self):
        self.now = 0.0
        self._queue = []
        self._seq = itertools.count()

    def call_later(self, delay, callback, *args):
        handle = _Handle()
        heapq.heappush(
            self._queue, (self.now + delay, next(self._seq), handle, callback, args)
        )
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for item in self._queue if not item[2].cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback, args = heapq.heappop(self._queue)
            self.now = due
            if not handle.cancelled:
                callback(*args)
        self.now = target


class FastCipher:
    """Real AES-GCM with a cheap deterministic KDF (SHA-256 of salt+secret)."""

    def __init__(self, salt: str = "test-salt"):
        self.salt = salt
        self.derivations = 0
        self.broken = False

    async def derive_key(self, secret: str) -> bytes:
        if self.broken or not secret:
            raise KeyDerivationError("KDF unavailable")
        self.derivations += 1
        return hashlib.sha256(f"{self.salt}{secret}".encode()).digest()

    async def encrypt(self, plaintext: str, key: bytes) -> str:
        return crypto.encrypt(plaintext, key)

    async def decrypt(self, blob: str, key: bytes) -> str:
        return crypto.decrypt(blob, key)


class FakeAuthority:
    """Remote authority double with single-use nonces and a dashboard store."""

    def __init__(self, clock: Clock, ttl: float = 3600):
        self.clock = clock
        self.ttl = ttl
        self.nonces = []  # scripted nonces, issued first
        self._counter = itertools.count(1)
        self.issued = {}
        self.consumed = set()
        self.tokens = set()
        self.verify_calls = []
        self.dashboard = None
        self.stored = []
        self.fail_nonce = False
        self.fail_fetch = False
        self.fail_store = False
        self.reject_signatures = False
        self.fetch_started = None
        self.fetch_gate = None
        self.store_gate = None
        self.in_flight = 0
        self.max_in_flight = 0

    async def request_nonce(self, address: str) -> str:
        if self.fail_nonce:
            raise NetworkError("authority unreachable")
        nonce = self.nonces.pop(0) if self.nonces else f"n{next(self._counter)}"
        self.issued[nonce] = address
        return nonce

    async def verify(self, address: str, signature: str, nonce: str):
        self.verify_calls.append((address, signature, nonce))
        if nonce not in self.issued or nonce in self.consumed:
            raise VerificationFailed("unknown or consumed nonce")
        self.consumed.add(nonce)
        if self.issued[nonce] != address or self.reject_signatures:
            raise VerificationFailed("signature does not recover to address")
        token = f"tok{len(self.tokens) + 1}"
        self.tokens.add(token)
        return token, self.clock() + self.ttl

    async def fetch_dashboard(self, token: str) -> dict:
        if self.fetch_started is not None:
            self.fetch_started.set()
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.fail_fetch:
            raise NetworkError("authority unreachable")
        if token not in self.tokens:
            raise NetworkError("unauthorized", 401)
        if self.dashboard is None:
            raise NetworkError("not found", 404)
        return dict(self.dashboard)

    async def store_dashboard(self, token: str, data: dict) -> None:
        if self.fail_store:
            raise NetworkError("authority unreachable")
        if token not in self.tokens:
            raise NetworkError("unauthorized", 401)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.store_gate is not None:
                await self.store_gate.wait()
            self.stored.append(data)
            self.dashboard = data
        finally:
            self.in_flight -= 1


class FakeWallet:
    def __init__(self, signature="sig1"):
        self.signature = signature
        self.messages = []

    def sign_message(self, text):
        self.messages.append(text)
        return self.signature


class AsyncWallet(FakeWallet):
    async def sign_message(self, text):
        self.messages.append(text)
        return self.signature


class RejectingWallet:
    def sign_message(self, text):
        raise PermissionError("user rejected the request")


DEVICE = DeviceInfo(
    screen_width=1920,
    screen_height=1080,
    color_depth=24,
    timezone_offset=-60,
    locale="en-US",
    platform="Linux x86_64",
    user_agent="Mozilla/5.0 (X11; Linux x86_64)",
)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def authority(clock):
    return FakeAuthority(clock)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def cipher():
    return FastCipher()


@pytest.fixture
def config():
    return VaultConfig(api_url="http://authority.test")


@pytest.fixture
def context(config, store, cipher, authority, clock, scheduler):
    return WalletContext(
        config=config,
        store=store,
        cipher=cipher,
        remote=authority,
        device=DEVICE,
        clock=clock,
        scheduler=scheduler,
    )


@pytest.fixture
def wallet():
    return FakeWallet()
