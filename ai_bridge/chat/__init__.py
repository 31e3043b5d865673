# ai_bridge/chat/__init__.py
from .endpoints import chat_router
from .models import ChatRequest, ChatResponse, ChatHistoryResponse

__all__ = ["chat_router", "ChatRequest", "ChatResponse", "ChatHistoryResponse"]
