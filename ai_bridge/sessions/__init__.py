# ai_bridge/sessions/__init__.py
"""
Chat session management for the bridge.

This module provides the conversation data structures, the storage
abstraction and the session manager that owns idle eviction.
"""

from .session_data import ChatMessage, ChatSession, RecordContext
from .session_store import AbstractSessionStore, InMemorySessionStore
from .session_manager import ChatSessionManager

# Export public API components for session management
__all__ = [
    "ChatMessage",
    "ChatSession",
    "RecordContext",
    "AbstractSessionStore",
    "InMemorySessionStore",
    "ChatSessionManager",
]
