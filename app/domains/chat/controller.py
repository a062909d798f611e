"""Chat API controller with FastAPI endpoints."""

import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Request, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import (
    auth,
    get_chat_runtime,
    get_current_customer,
    get_current_merchant,
    get_current_party,
    get_db,
    validate_token,
)
from app.database import AsyncSessionLocal
from app.domains.chat.runtime import ChatRuntime
from app.domains.chat.service import ChatService
from app.exceptions.base import BaseAppException
from app.schemas.base import ResponseSchema
from app.schemas.chat import LiveEvent, LiveMessagePayload, SendMessageRequest, StartConversationRequest
from app.schemas.identity import Party

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/chat",
    tags=["chat"],
    dependencies=[Depends(validate_token)],  # Global token validation for all routes
)

admin_router = APIRouter(
    prefix="/api/v1/admin/chat",
    tags=["admin-chat"],
    dependencies=[Depends(validate_token)],
)

ws_router = APIRouter(tags=["chat-live"])


@router.post("/start", response_model=ResponseSchema, status_code=201)
async def start_conversation(
    _request: Request,
    start_request: StartConversationRequest = Body(...),
    current_customer: Party = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
    runtime: ChatRuntime = Depends(get_chat_runtime),
):
    """Open a conversation about a product, or return the one that already exists."""
    service = ChatService(db, runtime)
    conversation = await service.start_conversation(current_customer.id, start_request)

    return ResponseSchema(
        status="success",
        message="Chat room ready",
        data=conversation.model_dump(mode="json"),
    )


@router.get("/rooms", response_model=ResponseSchema)
async def get_my_conversations(
    _request: Request,
    current_customer: Party = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
    runtime: ChatRuntime = Depends(get_chat_runtime),
):
    """Get all conversations of the current customer, newest first."""
    service = ChatService(db, runtime)
    result = await service.get_customer_conversations(current_customer.id)

    return ResponseSchema(
        status="success",
        message="Conversations retrieved successfully",
        data=result.model_dump(mode="json"),
    )


@router.get("/rooms/{conversation_id}/history", response_model=ResponseSchema)
async def get_chat_history(
    _request: Request,
    conversation_id: int = Path(..., ge=1, description="Conversation ID"),
    current_party: Party = Depends(get_current_party),
    db: AsyncSession = Depends(get_db),
    runtime: ChatRuntime = Depends(get_chat_runtime),
):
    """Get the message history of a conversation, oldest first.

    Available to the conversation's customer and to the merchant that owns it.
    """
    service = ChatService(db, runtime)
    result = await service.get_chat_history(current_party, conversation_id)

    return ResponseSchema(
        status="success",
        message="Chat history retrieved successfully",
        data=result.model_dump(mode="json"),
    )


@router.post("/rooms/{conversation_id}/send", response_model=ResponseSchema, status_code=201)
async def send_customer_message(
    _request: Request,
    conversation_id: int = Path(..., ge=1, description="Conversation ID"),
    message_request: SendMessageRequest = Body(...),
    current_customer: Party = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
    runtime: ChatRuntime = Depends(get_chat_runtime),
):
    """Send a message to the merchant as the current customer."""
    service = ChatService(db, runtime)
    message = await service.send_customer_message(current_customer.id, conversation_id, message_request)

    return ResponseSchema(
        status="success",
        message="Message sent successfully",
        data=message.model_dump(mode="json"),
    )


@admin_router.get("/rooms", response_model=ResponseSchema)
async def get_merchant_conversations(
    _request: Request,
    current_merchant: Party = Depends(get_current_merchant),
    db: AsyncSession = Depends(get_db),
    runtime: ChatRuntime = Depends(get_chat_runtime),
):
    """Get all conversations about the current merchant's products, newest first."""
    service = ChatService(db, runtime)
    result = await service.get_merchant_conversations(current_merchant.id)

    return ResponseSchema(
        status="success",
        message="Conversations retrieved successfully",
        data=result.model_dump(mode="json"),
    )


@admin_router.post("/rooms/{conversation_id}/reply", response_model=ResponseSchema, status_code=201)
async def send_merchant_reply(
    _request: Request,
    conversation_id: int = Path(..., ge=1, description="Conversation ID"),
    message_request: SendMessageRequest = Body(...),
    current_merchant: Party = Depends(get_current_merchant),
    db: AsyncSession = Depends(get_db),
    runtime: ChatRuntime = Depends(get_chat_runtime),
):
    """Reply to a customer as the merchant that owns the conversation."""
    service = ChatService(db, runtime)
    message = await service.send_merchant_message(current_merchant.id, conversation_id, message_request)

    return ResponseSchema(
        status="success",
        message="Reply sent successfully",
        data=message.model_dump(mode="json"),
    )


@ws_router.websocket("/ws/chat/{conversation_id}")
async def chat_live_channel(websocket: WebSocket, conversation_id: int):
    """Live channel for one conversation.

    Authenticates with the ``token`` query parameter. Inbound frames are
    ``{"content": "..."}`` text frames and are sent like REST messages; the
    counterparty's messages arrive as ``{"type": "message", "data": {...}}``.
    Each database operation gets its own short-lived session, so an idle
    channel holds no connection.
    """
    runtime: ChatRuntime = websocket.app.state.chat

    try:
        party = auth.authenticate(websocket.query_params.get("token", ""))
    except HTTPException as e:
        logger.warning(f"Rejected live connection to chat #{conversation_id}: {e.detail}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    try:
        async with AsyncSessionLocal() as db:
            handle = await ChatService(db, runtime).subscribe(party, conversation_id, websocket)
    except BaseAppException as e:
        logger.warning(f"Rejected live connection of {party} to chat #{conversation_id}: {e.message}")
        await _send_live_error(websocket, e.message, error_code=e.error_code)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        await websocket.send_json(
            LiveEvent(type="subscribed", data={"conversation_id": conversation_id}).model_dump(mode="json")
        )
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))

            frame = message.get("text")
            if frame is None:
                await _send_live_error(websocket, "Binary frames are not supported", error_code="INVALID_FRAME")
                continue

            try:
                payload = LiveMessagePayload.model_validate_json(frame)
                async with AsyncSessionLocal() as db:
                    await ChatService(db, runtime).send_as(party, conversation_id, payload.content)
            except ValidationError as e:
                await _send_live_error(
                    websocket,
                    "Invalid message",
                    details=e.errors(include_url=False, include_context=False),
                )
            except BaseAppException as e:
                await _send_live_error(websocket, e.message, error_code=e.error_code)
    except WebSocketDisconnect:
        logger.info(f"🔌 {party} disconnected from chat #{conversation_id}")
    finally:
        runtime.registry.unsubscribe(handle)


async def _send_live_error(websocket: WebSocket, message: str, **data) -> None:
    await websocket.send_json(LiveEvent(type="error", data={"message": message, **data}).model_dump(mode="json"))
