"""
Persistence coordinator for match state.

Sits between the caller's in-memory match state and the two stores:

- On login, loads the user's match (remote first, local fallback) and hands
  it to the caller.
- On logout, resets the caller to an empty setup state.
- On every state change, waits for a quiet period (800ms by default) and
  then writes the latest state: local first, then remote.
- On explicit clear, wipes both stores.

The coordinator never keeps its own copy of the match beyond what a pending
save needs. A remote failure never rolls back the local write; it is
reported through last_error and the state is parked in a pending queue that
is only retried on request.

Usage:
    coordinator = PersistenceCoordinator(remote_store, local_store, set_state)
    await coordinator.set_user(user_id)
    coordinator.notify_state_changed(new_state)
    ...
    await coordinator.close()
"""

import asyncio
from enum import Enum
from typing import Callable, Optional

from config import PersistenceConfig, config as default_config
from constants import CONNECTION_LOST_MESSAGE
from logging_config import get_logger
from models.match_state import MatchState, default_match_state
from stores.local_store import LocalStore
from stores.remote_store import RemoteStore, get_remote_store
from stores.share_store import ShareStore

logger = get_logger(__name__)

SetMatchState = Callable[[MatchState], None]


class CoordinatorStatus(str, Enum):
    """Where the coordinator is in its load/save cycle."""
    IDLE = "idle"
    LOADING_FOR_USER = "loading_for_user"
    READY = "ready"
    SAVING_PENDING = "saving_pending"


class PersistenceCoordinator:
    """
    Loads, debounce-saves, and clears match state across a remote store
    and a local fallback store.

    All methods must be called from within a running event loop.
    """

    def __init__(
        self,
        remote_store: Optional[RemoteStore],
        local_store: LocalStore,
        set_match_state: SetMatchState,
        debounce_seconds: Optional[float] = None,
        offline_resume: Optional[bool] = None,
        share_store: Optional[ShareStore] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            remote_store: Authoritative per-user store, or None when no
                database is configured.
            local_store: Device-local fallback store.
            set_match_state: Callback that replaces the caller's state.
            debounce_seconds: Quiet period before a save fires.
            offline_resume: Adopt the local snapshot when nobody is logged in.
            share_store: If given, share codes are deactivated on clear.
        """
        self.remote_store = remote_store
        self.local_store = local_store
        self.share_store = share_store
        self._set_match_state = set_match_state
        self.debounce_seconds = (
            default_config.save_debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        self.offline_resume = (
            default_config.OFFLINE_RESUME if offline_resume is None else offline_resume
        )

        self.user_id: Optional[str] = None
        self.status = CoordinatorStatus.IDLE
        self.loading = False
        self.last_error: Optional[str] = None

        # No save may fire until the first identity load resolves
        self._initial_load = True
        # Bumped on every identity change; stale loads check it and bail
        self._session = 0
        self._closed = False

        self._save_task: Optional[asyncio.Task] = None
        self._pending_state: Optional[MatchState] = None
        self._pending_user: Optional[str] = None
        self._writes: set[asyncio.Task] = set()
        self._write_lock = asyncio.Lock()
        self._pending_remote_writes: dict[str, MatchState] = {}

    # -------------------------------------------------------------------------
    # Caller-facing state
    # -------------------------------------------------------------------------

    @property
    def error(self) -> Optional[str]:
        """Alias of last_error for UI bindings."""
        return self.last_error

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @property
    def has_pending_save(self) -> bool:
        return self._save_task is not None and not self._save_task.done()

    @property
    def pending_remote_writes(self) -> dict[str, MatchState]:
        """States whose remote save failed, keyed by user (latest wins)."""
        return dict(self._pending_remote_writes)

    def _log(self, user_id: Optional[str] = None, **context):
        user_id = user_id if user_id is not None else self.user_id
        if user_id:
            context["user_id"] = user_id
        return logger.with_context(**context) if context else logger

    def _local_state_for(self, user_id: Optional[str]) -> Optional[MatchState]:
        """
        The local snapshot, if user_id may adopt it.

        A snapshot belongs to the user who wrote it. An anonymous snapshot is
        also open to whoever logs in next, but only with offline_resume on.
        """
        snapshot = self.local_store.load_snapshot()
        if snapshot is None:
            return None
        if snapshot.owner == user_id:
            return snapshot.state
        if snapshot.owner is None and self.offline_resume:
            return snapshot.state
        self._log(user_id, store="local").debug(
            "Ignoring local snapshot saved by another user"
        )
        return None

    # -------------------------------------------------------------------------
    # Identity changes
    # -------------------------------------------------------------------------

    async def set_user(self, user_id: Optional[str]) -> None:
        """
        React to login, logout, or a switch between users.

        Any save still waiting on its debounce timer is dropped; it belonged
        to the previous identity.
        """
        if self._closed:
            return

        user_id = user_id or None
        if user_id == self.user_id and self.status != CoordinatorStatus.IDLE:
            return

        self._cancel_pending_save()
        self._session += 1
        self._initial_load = True
        self.user_id = user_id

        if user_id is None:
            await self._reset_for_logout(self._session)
        else:
            await self._load_for_user(user_id, self._session)

    async def _load_for_user(self, user_id: str, session: int) -> None:
        self.status = CoordinatorStatus.LOADING_FOR_USER
        self.loading = True
        self.last_error = None
        log = self._log(user_id)

        try:
            state = None
            if self.remote_store is not None:
                try:
                    state = await self.remote_store.load(user_id)
                except Exception as e:
                    self._log(user_id, store="remote").error(f"Error loading match state: {e}")
                    self.last_error = CONNECTION_LOST_MESSAGE

            if state is None:
                state = self._local_state_for(user_id)
                if state is not None:
                    self._log(user_id, store="local").info("Resumed match from local store")

            # Identity changed (or torn down) while we were waiting
            if session != self._session or self._closed:
                log.debug("Discarding stale load result")
                return

            if state is not None:
                self._set_match_state(state)
        finally:
            if session == self._session and not self._closed:
                self.loading = False
                self._initial_load = False
                self.status = CoordinatorStatus.READY

    async def _reset_for_logout(self, session: int) -> None:
        self.loading = False
        self.last_error = None
        try:
            self._set_match_state(default_match_state())

            if self.offline_resume:
                snapshot = self._local_state_for(None)
                if snapshot is not None and session == self._session:
                    logger.with_context(store="local").info("Resumed anonymous match from local store")
                    self._set_match_state(snapshot)
        finally:
            if session == self._session and not self._closed:
                self._initial_load = False
                self.status = CoordinatorStatus.READY

    # -------------------------------------------------------------------------
    # Debounced saves
    # -------------------------------------------------------------------------

    def notify_state_changed(self, state: MatchState) -> None:
        """
        Schedule a save of state after the debounce window.

        A change arriving before the timer fires replaces the pending one.
        Ignored while a load is in progress or after close().
        """
        if self._closed or self._initial_load:
            return

        self._cancel_pending_save()
        self._pending_state = state
        self._pending_user = self.user_id
        self._save_task = asyncio.create_task(self._debounced_save(state, self.user_id))
        self.status = CoordinatorStatus.SAVING_PENDING

    def _cancel_pending_save(self) -> None:
        if self._save_task is not None and not self._save_task.done():
            self._save_task.cancel()
        self._save_task = None
        self._pending_state = None
        self._pending_user = None

    async def _debounced_save(self, state: MatchState, user_id: Optional[str]) -> None:
        await asyncio.sleep(self.debounce_seconds)

        # Timer fired: a later change starts a new timer rather than
        # cancelling this write
        if self._save_task is asyncio.current_task():
            self._save_task = None
            self._pending_state = None
            self._pending_user = None
        await self._run_write(state, user_id)

    async def _run_write(self, state: MatchState, user_id: Optional[str]) -> None:
        task = asyncio.current_task()
        self._writes.add(task)
        try:
            await self._write(state, user_id)
        finally:
            self._writes.discard(task)
            if self.status == CoordinatorStatus.SAVING_PENDING and not self.has_pending_save:
                self.status = CoordinatorStatus.READY

    async def _write(self, state: MatchState, user_id: Optional[str]) -> None:
        log = self._log(user_id, phase=state.phase.value, hole=state.current_hole)

        async with self._write_lock:
            if state.is_empty_setup:
                log.debug("Skipping save of empty setup state")
                return

            if user_id is None and not self.offline_resume:
                return

            self.local_store.save(state, user_id)

            if user_id is None or self.remote_store is None:
                return

            try:
                saved = await self.remote_store.save(state, user_id)
            except Exception as e:
                log.with_context(store="remote").error(f"Error saving match state: {e}")
                saved = False

            if saved:
                self._pending_remote_writes.pop(user_id, None)
                self.last_error = None
            else:
                log.with_context(store="remote").warning("Remote save failed; local copy kept")
                self._pending_remote_writes[user_id] = state
                self.last_error = CONNECTION_LOST_MESSAGE

    async def flush(self) -> None:
        """Fire a pending debounced save now, and wait for writes in flight."""
        if self.has_pending_save:
            state, user_id = self._pending_state, self._pending_user
            self._cancel_pending_save()
            if state is not None:
                await self._run_write(state, user_id)

        in_flight = [t for t in self._writes if t is not asyncio.current_task()]
        if in_flight:
            await asyncio.gather(*in_flight, return_exceptions=True)

    async def retry_pending_remote_writes(self) -> int:
        """
        Re-attempt remote saves that failed earlier.

        Nothing calls this automatically.

        Returns:
            Number of states written.
        """
        if self.remote_store is None:
            return 0

        written = 0
        async with self._write_lock:
            for user_id, state in list(self._pending_remote_writes.items()):
                try:
                    saved = await self.remote_store.save(state, user_id)
                except Exception as e:
                    self._log(user_id, store="remote").error(f"Retry of remote save failed: {e}")
                    saved = False
                if saved:
                    self._pending_remote_writes.pop(user_id, None)
                    written += 1

        if written and not self._pending_remote_writes:
            self.last_error = None
        return written

    # -------------------------------------------------------------------------
    # Clear / resume
    # -------------------------------------------------------------------------

    async def clear_persisted_state(self) -> bool:
        """
        Wipe the saved match from both stores.

        Returns:
            False if the remote clear failed (last_error is set), else True.
        """
        self.loading = True
        self.last_error = None
        self._cancel_pending_save()
        user_id = self.user_id
        cleared = True

        try:
            # Wait out any write already in flight so it can't land afterwards
            async with self._write_lock:
                self.local_store.clear()

                if user_id:
                    self._pending_remote_writes.pop(user_id, None)

                    if self.remote_store is not None:
                        try:
                            cleared = await self.remote_store.clear(user_id)
                        except Exception as e:
                            self._log(user_id, store="remote").error(f"Error clearing persisted state: {e}")
                            cleared = False
                        if not cleared:
                            self.last_error = CONNECTION_LOST_MESSAGE

                    if self.share_store is not None:
                        if not await self.share_store.deactivate_share_codes(user_id):
                            self._log(user_id).warning("Could not deactivate share codes")
        finally:
            self.loading = False
            if self.status == CoordinatorStatus.SAVING_PENDING:
                self.status = CoordinatorStatus.READY

        return cleared

    async def can_resume_match(self) -> bool:
        """
        Check whether there is a saved match to pick up.

        Asks the remote store when logged in, and the local store when
        logged out or when the remote store can't be reached.
        """
        if self.user_id and self.remote_store is not None:
            try:
                return await self.remote_store.exists(self.user_id)
            except Exception as e:
                self._log(store="remote").warning(f"Falling back to local store for resume check: {e}")
                self.last_error = CONNECTION_LOST_MESSAGE

        return self._local_state_for(self.user_id) is not None

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """
        Tear down: cancel any pending save and let in-flight writes finish.

        Later calls on this coordinator are ignored.
        """
        if self._closed:
            return
        self._closed = True
        self._cancel_pending_save()

        if self._writes:
            await asyncio.gather(*self._writes, return_exceptions=True)

        self.status = CoordinatorStatus.IDLE
        logger.debug("Persistence coordinator closed")


async def create_persistence_coordinator(
    set_match_state: SetMatchState,
    cfg: Optional[PersistenceConfig] = None,
) -> PersistenceCoordinator:
    """
    Build a coordinator from configuration.

    The remote store is only connected when a database URL is configured.
    """
    cfg = cfg or default_config
    remote_store = await get_remote_store(cfg.DATABASE_URL) if cfg.remote_enabled else None
    return PersistenceCoordinator(
        remote_store=remote_store,
        local_store=LocalStore(cfg.LOCAL_STORE_PATH),
        set_match_state=set_match_state,
        debounce_seconds=cfg.save_debounce_seconds,
        offline_resume=cfg.OFFLINE_RESUME,
    )
