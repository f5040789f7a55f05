"""
Local-First Sync — encrypted local dashboard cache replicated to the remote.

- ``load()`` — local copy first, then the remote copy (which supersedes it and
  is written back locally); empty snapshot when neither has data
- ``update(snapshot)`` — record an edit and (re)start the debounce timer
- ``save(snapshot)`` — persist now: local write first, remote best-effort
- ``status`` — ``idle → saving → saved|error → idle`` with listener callbacks

Every edit bumps a sequence number and every save bumps a save counter. A
load that starts with unsaved edits, or that overlaps an edit or a save,
keeps the in-memory state: the loaded data neither replaces the in-memory
snapshot nor overwrites the local copy. ``reset()`` bumps a generation, and
saves already in flight then write nothing.

Security Note:
    Never log dashboard contents, ciphertext or tokens.
"""
import asyncio
import logging
from typing import Callable, Optional

import orjson
from pydantic import ValidationError

from .context import Scheduler, TimerHandle, WalletContext
from .data import SessionToken, SyncStatus, UserDataSnapshot
from .exceptions import (
    DecryptionError,
    KeyDerivationError,
    NetworkError,
    StorageError,
)
from .vault.crypto import serialize_value, deserialize_value
from .vault.session_store import SessionStore

logger = logging.getLogger("wallet_session.sync")

StatusListener = Callable[[SyncStatus], None]


class DebouncedTask:
    """Cancellable, resettable delayed call.

    ``trigger()`` restarts the delay; ``callback`` runs once the delay
    elapses without another trigger.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], None],
        scheduler: Optional[Scheduler] = None,
    ):
        self.delay = delay
        self._callback = callback
        self._scheduler = scheduler
        self._handle: Optional[TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        self.cancel()
        scheduler = self._scheduler or asyncio.get_running_loop()
        self._handle = scheduler.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._callback()


class SyncEngine:
    """In-memory working copy of the dashboard with debounced persistence."""

    def __init__(
        self,
        context: WalletContext,
        session_store: Optional[SessionStore] = None,
    ):
        self._ctx = context
        self._sessions = session_store or SessionStore(context)
        self._key = context.config.dashboard_key
        self._snapshot: Optional[UserDataSnapshot] = None
        self._edit_seq = 0
        self._saved_seq = 0
        # bumped by reset(); saves started before a reset write nothing
        self._generation = 0
        self._persists = 0
        self._status = SyncStatus.IDLE
        self._listeners: list[StatusListener] = []
        self._grace: Optional[TimerHandle] = None
        self._save_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()
        self._debounce = DebouncedTask(
            context.config.debounce_delay,
            self._on_debounce,
            context,
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def snapshot(self) -> Optional[UserDataSnapshot]:
        """Current in-memory snapshot (a copy), None before the first load."""
        if self._snapshot is None:
            return None
        return self._snapshot.copy_snapshot()

    @property
    def dirty(self) -> bool:
        """True while an edit has not been persisted yet."""
        return self._edit_seq != self._saved_seq and self._snapshot is not None

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StatusListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _set_status(self, status: SyncStatus) -> None:
        if status is self._status:
            return
        logger.debug("Sync status %s -> %s", self._status.value, status.value)
        self._status = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception as err:
                logger.error("Sync status listener %r failed: %s", listener, err)

    def _cancel_grace(self) -> None:
        if self._grace is not None:
            self._grace.cancel()
            self._grace = None

    def _back_to_idle(self) -> None:
        self._grace = None
        self._set_status(SyncStatus.IDLE)

    # ------------------------------------------------------------------
    # Local copy
    # ------------------------------------------------------------------

    async def _read_local(self) -> Optional[UserDataSnapshot]:
        """Decrypt the local snapshot; discard it if unreadable."""
        try:
            blob = self._ctx.store.get(self._key)
        except StorageError as err:
            logger.warning("Local dashboard %s unavailable: %s", self._key, err)
            return None
        if blob is None:
            return None
        key = await self._ctx.device_key()
        try:
            plaintext = await self._ctx.cipher.decrypt(blob, key)
            return UserDataSnapshot.model_validate(deserialize_value(plaintext))
        except (DecryptionError, orjson.JSONDecodeError, ValidationError) as err:
            logger.warning("Discarding unreadable local dashboard %s: %s", self._key, err)
            return None

    async def _write_local(
        self,
        snapshot: UserDataSnapshot,
        generation: int,
        seq: Optional[int] = None,
    ) -> bool:
        """Encrypt and store the snapshot.

        Nothing is written if ``reset()`` ran since ``generation`` was taken,
        or, when ``seq`` is given, if an edit arrived since then.

        Returns:
            True if the ciphertext was stored.

        Raises:
            KeyDerivationError: Nothing is written, never plaintext.
            StorageError: If the store rejects the write.
        """
        key = await self._ctx.device_key()
        blob = await self._ctx.cipher.encrypt(
            serialize_value(snapshot.to_dict()), key
        )
        if generation != self._generation:
            return False
        if seq is not None and seq != self._edit_seq:
            return False
        self._ctx.store.set(self._key, blob)
        return True

    async def _load_session(self) -> Optional[SessionToken]:
        try:
            return await self._sessions.load()
        except StorageError as err:
            logger.warning("Session unavailable: %s", err)
            return None

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def _superseded(self, seq: int, generation: int, persists: int) -> bool:
        return (
            self._edit_seq != seq
            or self._generation != generation
            or self._persists != persists
            or self._save_lock.locked()
        )

    async def load(self) -> UserDataSnapshot:
        """Load the dashboard: local copy, superseded by the remote copy.

        Remote failures are logged and the local copy is kept. Unsaved
        edits and saves in flight win over whatever the load read.

        Raises:
            KeyDerivationError: If the device key cannot be derived.
        """
        seq = self._edit_seq
        generation = self._generation
        persists = self._persists
        pending = self.dirty or self._save_lock.locked()

        snapshot = await self._read_local()
        source = "local" if snapshot is not None else None

        session = await self._load_session()
        if session is not None:
            try:
                payload = await self._ctx.remote.fetch_dashboard(session.token)
                remote = UserDataSnapshot.model_validate(payload)
            except NetworkError as err:
                logger.warning("Remote dashboard unavailable, keeping %s copy: %s", source, err)
            except ValidationError as err:
                logger.warning("Remote dashboard malformed, keeping %s copy: %s", source, err)
            else:
                snapshot, source = remote, "remote"

        if pending or self._superseded(seq, generation, persists):
            logger.info(
                "Dashboard changed while loading (seq %d -> %d), keeping the in-memory copy",
                seq, self._edit_seq,
            )
            if self._snapshot is None:
                # reset while loading
                return UserDataSnapshot.empty()
            return self.snapshot

        if snapshot is None:
            snapshot = UserDataSnapshot.empty()
        self._snapshot = snapshot
        self._saved_seq = self._edit_seq
        if source == "remote":
            try:
                await self._write_local(snapshot, generation, self._edit_seq)
            except StorageError as err:
                logger.warning("Could not refresh local dashboard copy: %s", err)
        logger.debug("Dashboard loaded from %s", source or "defaults")
        return self.snapshot

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def update(self, snapshot: UserDataSnapshot) -> None:
        """Record an edit; persisted once edits pause for ``debounce_delay``."""
        self._snapshot = snapshot.copy_snapshot()
        self._edit_seq += 1
        self._debounce.trigger()

    def _on_debounce(self) -> None:
        task = asyncio.get_running_loop().create_task(self._save_current())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _save_current(self) -> bool:
        async with self._save_lock:
            if self._snapshot is None or self._edit_seq == self._saved_seq:
                return self._status is not SyncStatus.ERROR
            return await self._persist(self._edit_seq, self._snapshot.copy_snapshot())

    async def save(self, snapshot: Optional[UserDataSnapshot] = None) -> bool:
        """Persist immediately, bypassing the debounce timer.

        Args:
            snapshot: New state; the current in-memory snapshot if omitted.

        Returns:
            True if the local write succeeded and the remote accepted the
            snapshot (or there is no session to replicate with). False if
            ``reset()`` ran before the save completed.
        """
        if snapshot is not None:
            self._snapshot = snapshot.copy_snapshot()
            self._edit_seq += 1
        self._debounce.cancel()
        async with self._save_lock:
            if self._snapshot is None:
                self._snapshot = UserDataSnapshot.empty()
            return await self._persist(self._edit_seq, self._snapshot.copy_snapshot())

    async def _persist(self, seq: int, snapshot: UserDataSnapshot) -> bool:
        generation = self._generation
        self._persists += 1
        self._cancel_grace()
        if self._status is not SyncStatus.IDLE:
            self._set_status(SyncStatus.IDLE)
        self._set_status(SyncStatus.SAVING)
        try:
            written = await self._write_local(snapshot, generation)
        except (KeyDerivationError, StorageError) as err:
            logger.error("Local dashboard save failed: %s", err)
            self._set_status(SyncStatus.ERROR)
            return False
        if not written:
            logger.info("Dashboard reset while saving, save dropped")
            return False
        self._saved_seq = seq

        ok = True
        try:
            session = await self._sessions.load()
        except StorageError as err:
            logger.error("Session unavailable, dashboard not replicated: %s", err)
            session, ok = None, False
        if generation != self._generation:
            logger.info("Dashboard reset while saving, remote save skipped")
            return False
        if session is None:
            if ok:
                logger.debug("No session, dashboard kept locally only")
        else:
            try:
                await self._ctx.remote.store_dashboard(session.token, snapshot.to_dict())
            except NetworkError as err:
                logger.warning("Remote dashboard save failed: %s", err)
                ok = False
            if generation != self._generation:
                return False

        if not ok:
            self._set_status(SyncStatus.ERROR)
            return False
        self._set_status(SyncStatus.SAVED)
        self._grace = self._ctx.call_later(
            self._ctx.config.saved_grace, self._back_to_idle
        )
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def drain(self) -> None:
        """Wait for saves already fired by the debounce timer."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def flush(self) -> None:
        """Run a pending debounced save now and wait for in-flight saves."""
        if self._debounce.pending:
            self._debounce.cancel()
            self._on_debounce()
        await self.drain()

    def reset(self) -> None:
        """Drop the in-memory snapshot and the local ciphertext."""
        self._debounce.cancel()
        self._cancel_grace()
        self._snapshot = None
        self._generation += 1
        self._edit_seq += 1
        self._saved_seq = self._edit_seq
        self._ctx.store.delete(self._key)
        self._set_status(SyncStatus.IDLE)

    def close(self) -> None:
        """Cancel timers. Pending edits that were not flushed are lost."""
        self._debounce.cancel()
        self._cancel_grace()
