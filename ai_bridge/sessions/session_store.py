# ai_bridge/sessions/session_store.py
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterator, Optional, Tuple

from .session_data import ChatSession

logger = logging.getLogger(__name__)


class AbstractSessionStore(ABC):
    """
    Abstract base class defining the interface for chat session storage.
    """

    @abstractmethod
    def load_session(self, session_id: str) -> Optional[ChatSession]:
        """Load a session by id."""
        pass

    @abstractmethod
    def save_session(self, session: ChatSession) -> None:
        """Insert or replace a session."""
        pass

    @abstractmethod
    def delete_session(self, session_id: str) -> bool:
        """Delete a session. Returns True if one was removed."""
        pass

    @abstractmethod
    def iter_sessions(self) -> Iterator[Tuple[str, ChatSession]]:
        """Iterate over a snapshot of (session_id, session) pairs."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Drop every session."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass


class InMemorySessionStore(AbstractSessionStore):
    """
    Process-local session storage. All state is volatile and lost on restart.
    """

    def __init__(self):
        self._sessions: Dict[str, ChatSession] = {}
        logger.info("InMemorySessionStore initialized.")

    def load_session(self, session_id: str) -> Optional[ChatSession]:
        return self._sessions.get(session_id)

    def save_session(self, session: ChatSession) -> None:
        if not isinstance(session, ChatSession):
            raise TypeError("session must be an instance of ChatSession.")
        self._sessions[session.session_id] = session

    def delete_session(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def iter_sessions(self) -> Iterator[Tuple[str, ChatSession]]:
        # Snapshot so callers may delete while iterating
        return iter(list(self._sessions.items()))

    def clear(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)
