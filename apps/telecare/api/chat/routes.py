from __future__ import annotations

from typing import List, Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    Query,
    Response,
    UploadFile,
    WebSocket,
    WebSocketDisconnect,
    status,
)

from telecare.api.dependencies import require_user_id
from telecare.core.dependencies import get_message_dispatcher, get_realtime_router
from telecare.schemas.chat import (
    Conversation,
    ConversationCreateRequest,
    Message,
    MessageContent,
    MessageDeletedResponse,
    MessageSendRequest,
    SharedFileMessageRequest,
)
from telecare.services.messaging import MessageDispatcher
from telecare.services.realtime import RealtimeRouter

router = APIRouter(prefix="/api/chat", tags=["chat"])
ws_router = APIRouter(tags=["chat"])


@router.post("/conversations", response_model=Conversation)
async def create_conversation(
    payload: ConversationCreateRequest,
    response: Response,
    user_id: str = Depends(require_user_id),
    dispatcher: MessageDispatcher = Depends(get_message_dispatcher),
) -> Conversation:
    conversation, created = await dispatcher.create_or_get_conversation(
        user_id, payload.recipient_id
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return conversation


@router.get("/conversations", response_model=List[Conversation])
async def list_conversations(
    user_id: str = Depends(require_user_id),
    dispatcher: MessageDispatcher = Depends(get_message_dispatcher),
) -> List[Conversation]:
    return await dispatcher.list_conversations(user_id)


@router.get("/messages/{conversation_id}", response_model=List[Message])
async def list_messages(
    conversation_id: str,
    user_id: str = Depends(require_user_id),
    dispatcher: MessageDispatcher = Depends(get_message_dispatcher),
) -> List[Message]:
    return await dispatcher.list_messages(conversation_id, user_id)


@router.post("/messages", response_model=Message, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: MessageSendRequest,
    user_id: str = Depends(require_user_id),
    dispatcher: MessageDispatcher = Depends(get_message_dispatcher),
) -> Message:
    return await dispatcher.send_message(
        payload.conversation_id, user_id, MessageContent(text=payload.text)
    )


@router.post("/messages/file", response_model=Message, status_code=status.HTTP_201_CREATED)
async def send_file_message(
    conversation_id: str = Form(...),
    file: UploadFile = File(...),
    user_id: str = Depends(require_user_id),
    dispatcher: MessageDispatcher = Depends(get_message_dispatcher),
) -> Message:
    data = await file.read()
    return await dispatcher.send_file_message(
        conversation_id, user_id, data, file.content_type, file.filename
    )


@router.post("/messages/shared", response_model=Message, status_code=status.HTTP_201_CREATED)
async def share_stored_file(
    payload: SharedFileMessageRequest,
    user_id: str = Depends(require_user_id),
    dispatcher: MessageDispatcher = Depends(get_message_dispatcher),
) -> Message:
    return await dispatcher.share_stored_file(
        payload.conversation_id,
        user_id,
        public_id=payload.public_id,
        url=payload.file_url,
        file_type=payload.file_type,
        file_name=payload.file_name,
    )


@router.delete("/messages/{message_id}", response_model=MessageDeletedResponse)
async def delete_message(
    message_id: str,
    user_id: str = Depends(require_user_id),
    dispatcher: MessageDispatcher = Depends(get_message_dispatcher),
) -> MessageDeletedResponse:
    deleted_id = await dispatcher.delete_message(message_id, user_id)
    return MessageDeletedResponse(message_id=deleted_id)


@ws_router.websocket("/ws/chat")
async def chat_ws(
    websocket: WebSocket,
    user_id: Optional[str] = Query(default=None),
    hub: RealtimeRouter = Depends(get_realtime_router),
) -> None:
    identity = (user_id or "").strip()
    if not identity:
        await websocket.close(code=1008)
        return
    await hub.connect(identity, websocket)
    try:
        # Inbound frames are ignored; sends go through the HTTP API.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return
    finally:
        await hub.disconnect(websocket)
