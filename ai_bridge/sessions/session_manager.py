# ai_bridge/sessions/session_manager.py
import asyncio
import logging
import time
from typing import Callable, Dict, Optional
from uuid import uuid4

from .session_data import ChatSession
from .session_store import AbstractSessionStore, InMemorySessionStore
from ..core.periodic import PeriodicSweeper
from ..salesforce_auth.models import SalesforceAuth

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TIMEOUT_SECONDS = 1800


class ChatSessionManager:
    """Manages chat session lifecycle: creation, retrieval, updates, deletion and idle eviction."""

    def __init__(
        self,
        store: Optional[AbstractSessionStore] = None,
        timeout_seconds: float = DEFAULT_SESSION_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        if store is not None and not isinstance(store, AbstractSessionStore):
            raise TypeError("ChatSessionManager requires an instance of AbstractSessionStore.")
        self.store = store if store is not None else InMemorySessionStore()
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._locks: Dict[str, asyncio.Lock] = {}
        self._sweeper: Optional[PeriodicSweeper] = None
        logger.info(
            f"ChatSessionManager initialized with store: {type(self.store).__name__}, "
            f"idle timeout: {timeout_seconds}s"
        )

    @staticmethod
    def generate_session_id() -> str:
        """Generate a unique session identifier using UUID4."""
        return str(uuid4())

    def create_session(self, session_id: str, salesforce_auth: Optional[SalesforceAuth] = None) -> ChatSession:
        now = self._clock()
        session = ChatSession(
            session_id=session_id,
            created_at=now,
            last_activity_at=now,
            salesforce_auth=salesforce_auth,
        )
        self.store.save_session(session)
        logger.info(f"create_session: New session created: {session_id}")
        return session

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        """
        Return the session, touching its activity time, or None if it is absent.

        A session idle past the timeout is evicted here even when the sweep
        has not reached it yet.
        """
        session = self.store.load_session(session_id)
        if session is None:
            return None
        now = self._clock()
        if self._is_expired(session, now):
            logger.info(f"get_session: Session {session_id} expired; evicting")
            self.store.delete_session(session_id)
            self._release_lock(session_id)
            return None
        session.touch(now)
        return session

    def _is_expired(self, session: ChatSession, now: float) -> bool:
        return now - session.last_activity_at > self.timeout_seconds

    def update_session(self, session_id: str, session: ChatSession) -> None:
        if session.session_id != session_id:
            raise ValueError(
                f"update_session: session id mismatch ('{session_id}' vs '{session.session_id}')"
            )
        if self.store.load_session(session_id) is None:
            # Deleted or evicted while the turn was running
            logger.info(f"update_session: Session {session_id} was removed; not saving")
            return
        session.touch(self._clock())
        self.store.save_session(session)
        logger.debug(f"update_session: Saved session {session_id} ({len(session.messages)} messages)")

    def update_auth(self, session_id: str, salesforce_auth: SalesforceAuth) -> None:
        """Replace the stored auth context only. Latest validation wins."""
        session = self.store.load_session(session_id)
        if not session:
            logger.warning(f"update_auth: No session found for {session_id}")
            return
        session.salesforce_auth = salesforce_auth
        session.touch(self._clock())
        logger.debug(
            f"update_auth: Session {session_id} now bound to user {salesforce_auth.user_info.user_id}"
        )

    def delete_session(self, session_id: str) -> None:
        """Remove a session. Deleting an unknown session is a no-op."""
        removed = self.store.delete_session(session_id)
        self._release_lock(session_id)
        if removed:
            logger.info(f"delete_session: Session deleted: {session_id}")
        else:
            logger.debug(f"delete_session: No session found to delete for {session_id}")

    def session_lock(self, session_id: str) -> asyncio.Lock:
        """
        Per-session lock held for the duration of a chat turn.

        Two turns for the same session run one after the other instead of
        racing on the message list.
        """
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    def _release_lock(self, session_id: str) -> None:
        lock = self._locks.get(session_id)
        if lock is not None and not lock.locked():
            del self._locks[session_id]

    @property
    def active_sessions(self) -> int:
        return len(self.store)

    def cleanup_expired_sessions(self) -> int:
        """Evict sessions idle longer than the timeout. Returns the number evicted."""
        now = self._clock()
        evicted = 0
        for session_id, session in self.store.iter_sessions():
            if self._is_expired(session, now):
                logger.info(f"Cleaning up expired session: {session_id}")
                self.store.delete_session(session_id)
                self._release_lock(session_id)
                evicted += 1
        return evicted

    def start_sweeper(self, interval_seconds: float) -> None:
        if self._sweeper is None:
            self._sweeper = PeriodicSweeper("sessions", self.cleanup_expired_sessions, interval_seconds)
        self._sweeper.start()

    async def shutdown(self) -> None:
        if self._sweeper:
            await self._sweeper.stop()
        self.store.clear()
        self._locks.clear()
        logger.info("ChatSessionManager shut down.")
