# ai_bridge/chat/models.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional

from ..errors import InvalidChatRequestError
from ..sessions.session_data import ChatMessage, ChatSession, RecordContext


class ChatRequest(BaseModel):
    """Body of POST /api/chat."""
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(min_length=1, description="The user's natural-language request.")
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    include_record_context: bool = Field(default=False, alias="includeRecordContext")
    record: Optional[Dict[str, Any]] = None
    object_api_name: Optional[str] = Field(default=None, alias="objectApiName")
    record_id: Optional[str] = Field(default=None, alias="recordId")

    def resolve_record_context(self) -> Optional[RecordContext]:
        """
        The attached record, when ``includeRecordContext`` is set.

        Raises:
            InvalidChatRequestError: the flag is set but record, objectApiName
                or recordId is missing
        """
        if not self.include_record_context:
            return None
        missing = [
            alias for alias, value in (
                ("record", self.record),
                ("objectApiName", self.object_api_name),
                ("recordId", self.record_id),
            )
            if value is None or (isinstance(value, str) and not value)
        ]
        if missing:
            raise InvalidChatRequestError(
                "record, objectApiName, and recordId are required when includeRecordContext is true",
                missing_fields=missing
            )
        return RecordContext(
            record=self.record,
            object_api_name=self.object_api_name,
            record_id=self.record_id,
        )


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    message: str
    timestamp: int = Field(description="Epoch milliseconds of the assistant reply.")


class HistoryMessage(BaseModel):
    role: str
    content: str
    timestamp: Optional[int] = None

    @classmethod
    def from_chat_message(cls, message: ChatMessage) -> "HistoryMessage":
        return cls(role=message.role, content=message.content, timestamp=message.timestamp)


class ChatHistoryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    messages: List[HistoryMessage]
    created_at: int = Field(alias="createdAt", description="Epoch milliseconds.")
    last_activity_at: int = Field(alias="lastActivityAt", description="Epoch milliseconds.")

    @classmethod
    def from_session(cls, session: ChatSession) -> "ChatHistoryResponse":
        return cls(
            session_id=session.session_id,
            messages=[HistoryMessage.from_chat_message(m) for m in session.messages],
            created_at=int(session.created_at * 1000),
            last_activity_at=int(session.last_activity_at * 1000),
        )


class ClearSessionResponse(BaseModel):
    success: bool = True
    message: str = "Session cleared"
