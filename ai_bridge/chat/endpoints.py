# ai_bridge/chat/endpoints.py
import logging
from fastapi import APIRouter, Depends, Path
from typing import Optional, Annotated

from .models import ChatRequest, ChatResponse, ChatHistoryResponse, ClearSessionResponse
from ..core.components import BridgeComponents
from ..dependencies import get_components, get_salesforce_auth, enforce_rate_limit
from ..errors import BridgeError, InternalError, SessionNotFoundError
from ..salesforce_auth.models import SalesforceAuth
from ..sessions.session_data import ChatMessage, now_ms

logger = logging.getLogger(__name__)

chat_router = APIRouter(prefix="/api/chat", tags=["Chat"])


@chat_router.post("", response_model=ChatResponse)
async def chat_endpoint(
    chat_request: ChatRequest,
    components: Annotated[BridgeComponents, Depends(get_components)],
    salesforce_auth: Annotated[Optional[SalesforceAuth], Depends(get_salesforce_auth)]
):
    """
    Answer one user message within a session, creating the session if needed.

    A failed turn keeps the user's message in the history but records no
    assistant reply.
    """
    record_context = chat_request.resolve_record_context()
    enforce_rate_limit(components, salesforce_auth)

    manager = components.session_manager
    session_id = chat_request.session_id or manager.generate_session_id()

    async with manager.session_lock(session_id):
        session = manager.get_session(session_id)
        if session is None:
            session = manager.create_session(session_id, salesforce_auth)
        elif salesforce_auth is not None:
            manager.update_auth(session_id, salesforce_auth)
        if record_context is not None:
            session.record_context = record_context

        history = list(session.messages)
        session.append_message(ChatMessage(role="user", content=chat_request.message, timestamp=now_ms()))

        user_label = salesforce_auth.user_info.username if salesforce_auth else "anonymous"
        logger.info(f"Chat turn for session {session_id} ({user_label}), {len(history)} prior messages")

        try:
            reply = await components.ai_service.chat(
                history, chat_request.message, salesforce_auth, record_context
            )
        except BridgeError as e:
            manager.update_session(session_id, session)
            logger.error(f"Chat turn failed for session {session_id}: {e.error}: {e.message}")
            raise
        except Exception as e:
            manager.update_session(session_id, session)
            logger.error(f"Unexpected error in chat turn for session {session_id}: {e}", exc_info=True)
            raise InternalError() from e

        assistant_message = ChatMessage(role="assistant", content=reply, timestamp=now_ms())
        session.append_message(assistant_message)
        manager.update_session(session_id, session)

    return ChatResponse(session_id=session_id, message=reply, timestamp=assistant_message.timestamp)


@chat_router.get("/{session_id}", response_model=ChatHistoryResponse)
async def get_chat_history_endpoint(
    session_id: Annotated[str, Path(description="The chat session to read")],
    components: Annotated[BridgeComponents, Depends(get_components)],
    salesforce_auth: Annotated[Optional[SalesforceAuth], Depends(get_salesforce_auth)]
):
    session = components.session_manager.get_session(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    return ChatHistoryResponse.from_session(session)


@chat_router.delete("/{session_id}", response_model=ClearSessionResponse)
async def clear_chat_session_endpoint(
    session_id: Annotated[str, Path(description="The chat session to remove")],
    components: Annotated[BridgeComponents, Depends(get_components)],
    salesforce_auth: Annotated[Optional[SalesforceAuth], Depends(get_salesforce_auth)]
):
    """Remove a session. Clearing an unknown session still succeeds."""
    components.session_manager.delete_session(session_id)
    return ClearSessionResponse()
