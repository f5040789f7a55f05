"""
WalletSessionManager — public library surface.

Wires a ``WalletContext`` into the session store, the authenticator and the
sync engine, and exposes::

    await manager.authenticate(address, provider) -> bool
    manager.is_authenticated() -> bool
    manager.logout()
    await manager.get_auth_token() -> str | None
    await manager.load_dashboard_data() -> UserDataSnapshot
    await manager.save_dashboard_data(snapshot) -> bool
    manager.update_dashboard_data(snapshot)       # debounced
"""
import logging
from typing import Optional

from .auth import AuthState, WalletAuthenticator, WalletProvider
from .context import WalletContext
from .data import SyncStatus, UserDataSnapshot
from .sync import StatusListener, SyncEngine
from .vault.session_store import SessionStore

logger = logging.getLogger("wallet_session")


class WalletSessionManager:
    """Wallet authentication plus the encrypted local-first dashboard."""

    def __init__(self, context: Optional[WalletContext] = None):
        self.context = context or WalletContext()
        self.sessions = SessionStore(self.context)
        self.authenticator = WalletAuthenticator(self.context, self.sessions)
        self.sync = SyncEngine(self.context, self.sessions)

    async def __aenter__(self) -> "WalletSessionManager":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def authenticate(self, address: str, provider: WalletProvider) -> bool:
        """Sign in with a wallet. The failure reason is in ``last_error``."""
        return await self.authenticator.authenticate(address, provider)

    @property
    def auth_state(self) -> AuthState:
        return self.authenticator.state

    @property
    def last_error(self) -> Optional[Exception]:
        return self.authenticator.last_error

    def is_authenticated(self) -> bool:
        return self.sessions.is_valid()

    async def get_auth_token(self) -> Optional[str]:
        session = await self.sessions.load()
        return session.token if session is not None else None

    def logout(self) -> None:
        """Forget the session, the cached dashboard and pending edits."""
        self.sync.reset()
        self.sessions.clear()
        self.authenticator.reset()
        logger.info("Logged out")

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    @property
    def sync_status(self) -> SyncStatus:
        return self.sync.status

    def on_sync_status(self, listener: StatusListener) -> None:
        self.sync.add_listener(listener)

    async def load_dashboard_data(self) -> UserDataSnapshot:
        return await self.sync.load()

    async def save_dashboard_data(self, snapshot: UserDataSnapshot) -> bool:
        return await self.sync.save(snapshot)

    def update_dashboard_data(self, snapshot: UserDataSnapshot) -> None:
        self.sync.update(snapshot)

    async def close(self) -> None:
        """Persist pending edits, then release timers and HTTP resources."""
        try:
            await self.sync.flush()
        finally:
            self.sync.close()
            await self.context.close()
