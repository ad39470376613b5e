# src/goal_chat/api/v1/endpoints/chat.py
"""Chat endpoints: conversation listings, history and the live socket."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Path, Query, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse

from goal_chat.api.v1.dependencies import ChatServicesDep, CurrentUserIdDep
from goal_chat.core.errors import StoreUnavailableError
from goal_chat.core.settings import settings
from goal_chat.schemas.common import ApiResponse
from goal_chat.schemas.message import USER_ID_PATTERN, MessageOut
from goal_chat.services.connections import WebSocketConnection
from goal_chat.services.events import ChatEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

CONVERSATIONS_FETCHED = "Conversations fetched successfully"
CHAT_HISTORY_FETCHED = "Chat history fetched successfully"
MALFORMED_FRAME = "Malformed frame"

LimitQuery = Query(
    settings.chat_default_page_size,
    ge=1,
    le=settings.chat_max_page_size,
    description="Page size",
)
PageQuery = Query(1, ge=1, description="1-based page number")


def _failure(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ApiResponse[Any](success=False, message=message).model_dump(mode="json"),
    )


@router.get("/conversations")
async def get_recent_conversations(
    user_id: CurrentUserIdDep,
    services: ChatServicesDep,
    limit: int = LimitQuery,
    page: int = PageQuery,
) -> Any:
    """List the caller's conversations, one per counterpart, newest first."""
    try:
        conversations = await services.conversations.recent_conversations(user_id, page, limit)
    except StoreUnavailableError as exc:
        logger.error("Error fetching recent chats for %s: %s", user_id, exc)
        return _failure(str(exc))

    return ApiResponse(data=conversations, message=CONVERSATIONS_FETCHED).model_dump(
        mode="json", by_alias=True
    )


@router.get("/history/{counterpart_id}")
async def get_chat_history(
    user_id: CurrentUserIdDep,
    services: ChatServicesDep,
    counterpart_id: str = Path(..., pattern=USER_ID_PATTERN),
    limit: int = LimitQuery,
    page: int = PageQuery,
) -> Any:
    """Return the messages exchanged with one counterpart, newest first."""
    try:
        messages = await services.conversations.history(user_id, counterpart_id, page, limit)
    except StoreUnavailableError as exc:
        logger.error("Error fetching chat history for %s: %s", user_id, exc)
        return _failure(str(exc))

    data = [MessageOut.model_validate(message) for message in messages]
    return ApiResponse(data=data, message=CHAT_HISTORY_FETCHED).model_dump(
        mode="json", by_alias=True
    )


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket, services: ChatServicesDep) -> None:
    """Bidirectional chat channel carrying ``{"event", "data"}`` JSON frames."""
    await websocket.accept()
    connection = WebSocketConnection(websocket)
    session = services.open_session(connection)
    logger.debug("Socket %s opened", session.handle)

    try:
        while True:
            text = await websocket.receive_text()
            try:
                raw = json.loads(text)
            except ValueError:
                await connection.send(ChatEvent.ERROR, {"message": MALFORMED_FRAME})
                continue
            await session.feed(raw)
    except WebSocketDisconnect:
        pass
    finally:
        await session.close()
        logger.debug("Socket %s closed", session.handle)
