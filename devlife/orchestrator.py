"""
Session Orchestrator for DevLife

Ties the components together for one signed-in session:
1. Local store (owned, injected everywhere state is read or written)
2. Sync engine (background push/pull against the remote store)
3. Vault and task services on top of the store

DESIGN DECISION: Nothing here is a module-level singleton.
A session is constructed at sign-in, started explicitly, and torn down
with sign_out() (which wipes the local replica) or close() (which keeps it).
"""

import asyncio
from typing import Optional

import structlog

from devlife.audit import SyncActivityLogger
from devlife.config import Settings, get_settings
from devlife.models.records import AppState, utc_now
from devlife.queries import DashboardStats, dashboard_stats
from devlife.services.crypto import Cipher, FernetCipher
from devlife.services.storage import (
    AuthProvider,
    FileStorage,
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
    InMemoryRemoteStore,
    PersistentStorage,
    RemoteStore,
    StaticAuthProvider,
)
from devlife.services.tasks import TaskService
from devlife.services.vault import VaultService
from devlife.store import LocalStore
from devlife.sync import SyncEngine, SyncReport

logger = structlog.get_logger(__name__)


class DevLifeSession:
    """
    One user's session: store, sync engine and services.

    Usage:
        session = create_app_components(auth=my_auth)
        await session.start()
        session.tasks.save_task("Ship release")
        ...
        await session.sign_out()
    """

    def __init__(
        self,
        store: LocalStore,
        engine: SyncEngine,
        auth: AuthProvider,
        cipher: Optional[Cipher] = None,
    ):
        self.store = store
        self.engine = engine
        self.auth = auth
        self.tasks = TaskService(store)
        self.vault = VaultService(store, cipher) if cipher is not None else None

        if store.reset_reason:
            self.activity.log_store_reset(store.reset_reason)

    @property
    def activity(self) -> SyncActivityLogger:
        return self.engine.activity

    async def start(self) -> SyncReport:
        """Start background sync and wait for the first sweep."""
        return await self.engine.start()

    def on_network_restored(self) -> asyncio.Task:
        return self.engine.notify_online()

    def state(self) -> AppState:
        return self.store.get_state()

    def dashboard(self) -> DashboardStats:
        return dashboard_stats(
            self.store.get_state(),
            now=utc_now(),
            pending_sync=self.store.pending_count(),
        )

    async def close(self) -> None:
        """Stop syncing and drop subscribers. Local data is kept."""
        await self.engine.stop()
        self.store.dispose()

    async def sign_out(self) -> None:
        """
        Stop syncing and wipe the local replica.

        The session is signed out even if the replica cannot be wiped;
        the storage error is raised afterwards.
        """
        await self.engine.stop()
        try:
            self.store.clear()
            self.activity.log_store_reset("sign_out")
        finally:
            self.store.dispose()
            if isinstance(self.auth, StaticAuthProvider):
                self.auth.sign_out()


def create_app_components(
    auth: AuthProvider,
    storage: Optional[PersistentStorage] = None,
    remote: Optional[RemoteStore] = None,
    cipher: Optional[Cipher] = None,
    settings: Optional[Settings] = None,
    use_remote: bool = True,
) -> DevLifeSession:
    """
    Factory function to build a session from configuration.

    Args:
        auth: Source of the signed-in principal
        storage: Local persistence; defaults to files under StoreSettings.data_dir
        remote: Remote store; defaults to Google Sheets when configured
        cipher: Vault cipher; defaults to one derived from VaultSettings
        settings: Settings root; defaults to get_settings()
        use_remote: Set to False to sync against an in-memory remote

    Returns:
        A session that has not been started yet
    """
    settings = settings or get_settings()
    store_settings = settings.store
    sync_settings = settings.sync

    storage = storage or FileStorage(store_settings.data_dir)
    store = LocalStore(storage, storage_key=store_settings.storage_key)

    if remote is None and use_remote:
        try:
            remote = GoogleSheetsRemoteStore(GoogleSheetsClient(settings.google_sheets))
        except Exception as e:
            # Remote not configured - keep working offline
            logger.warning("remote_store_not_configured", error=str(e))
    if remote is None:
        remote = InMemoryRemoteStore()

    if cipher is None:
        try:
            cipher = FernetCipher.from_settings(settings.vault)
        except Exception as e:
            # Vault stays locked without a passphrase
            logger.warning("vault_not_configured", error=str(e))

    activity = SyncActivityLogger(sync_settings.history_size)
    engine = SyncEngine(store, remote, auth, settings=sync_settings, activity=activity)
    return DevLifeSession(store, engine, auth, cipher)
