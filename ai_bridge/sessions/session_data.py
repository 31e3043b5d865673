# ai_bridge/sessions/session_data.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Literal, Optional
import time

from ..salesforce_auth.models import SalesforceAuth

MessageRole = Literal["user", "assistant", "tool", "system"]


def now_ms() -> int:
    return int(time.time() * 1000)


class ChatMessage(BaseModel):
    """A single conversation turn. Immutable once appended to a session."""
    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str
    timestamp: Optional[int] = Field(default=None, description="Epoch milliseconds.")
    tool_calls: Optional[List[Dict[str, Any]]] = Field(
        default=None, description="Structured tool-invocation metadata, when the turn requested tools."
    )
    tool_call_id: Optional[str] = None
    name: Optional[str] = None


class RecordContext(BaseModel):
    """Caller-supplied Salesforce record the user is looking at."""
    model_config = ConfigDict(frozen=True)

    record: Dict[str, Any] = Field(description="Opaque record payload (field name -> value).")
    object_api_name: str = Field(description="Salesforce object type, e.g. 'Account'.")
    record_id: str


class ChatSession(BaseModel):
    """
    Conversation state for one chat session.

    ``messages`` is append-only; insertion order is conversation order.
    ``last_activity_at`` moves on every read or write through the session
    manager and drives idle eviction.
    """

    session_id: str = Field(description="Opaque session identifier, caller- or server-generated.")
    messages: List[ChatMessage] = Field(default_factory=list)
    created_at: float = Field(default_factory=time.time)
    last_activity_at: float = Field(default_factory=time.time)
    salesforce_auth: Optional[SalesforceAuth] = None
    record_context: Optional[RecordContext] = None

    def append_message(self, message: ChatMessage) -> None:
        self.messages.append(message)

    def touch(self, now: Optional[float] = None) -> None:
        """Updates last_activity_at to the given (or current) time."""
        self.last_activity_at = now if now is not None else time.time()
