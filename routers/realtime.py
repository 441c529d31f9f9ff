import json
import logging
from http import cookies as http_cookies

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

import auth_utils
import crud
from database import SessionLocal
from messaging_service import MessagingService
from models import Message
from notification_service import NotificationService
from ws_manager import manager

realtime_router = APIRouter()
log = logging.getLogger(__name__)


async def _resolve_user_from_websocket(websocket: WebSocket):
    """Resolve the authenticated user from the 'token' query param or access_token cookie."""
    token = websocket.query_params.get("token")

    if not token:
        cookie_header = websocket.headers.get("cookie", "")
        if cookie_header:
            c = http_cookies.SimpleCookie()
            try:
                c.load(cookie_header)
            except http_cookies.CookieError:
                return None
            morsel = c.get("access_token")
            if morsel:
                token = morsel.value

    if not token:
        return None

    email = auth_utils.decode_access_token(token)
    if not email:
        return None

    async with SessionLocal() as db:
        user = await crud.get_user_by_email(db, email=email)
    if user is None or not user.is_active:
        return None
    return user


async def _handle_client_event(websocket: WebSocket, user, raw: str) -> None:
    try:
        event = json.loads(raw)
    except json.JSONDecodeError:
        await websocket.send_text(json.dumps({"event": "error", "data": {"message": "invalid json"}}))
        return
    if not isinstance(event, dict):
        await websocket.send_text(json.dumps({"event": "error", "data": {"message": "invalid event"}}))
        return

    kind = event.get("event")
    if kind == "ping":
        await websocket.send_text(json.dumps({"event": "pong"}))
    elif kind == "ack":
        # Client confirms it received a pushed message
        message_id = event.get("message_id")
        if not isinstance(message_id, int):
            return
        async with SessionLocal() as db:
            result = await MessagingService.mark_delivered(db, message_id, user.id)
            if result.ok and result.value:
                message = await db.get(Message, message_id)
                await NotificationService.message_delivered(message.sender_id, message.conversation_id, message_id)
    elif kind in ("typing_start", "typing_stop"):
        conversation_id = event.get("conversationId")
        if not isinstance(conversation_id, int):
            await websocket.send_text(json.dumps({"event": "error", "data": {"message": "conversationId required"}}))
            return
        async with SessionLocal() as db:
            found = await MessagingService.get_conversation(db, conversation_id, user.id)
        if not found.ok:
            await websocket.send_text(json.dumps({"event": "error", "data": {"message": found.reason}}))
            return
        await NotificationService.typing(
            found.value.counterpart_of(user.id),
            conversation_id,
            user.id,
            user.full_name,
            started=kind == "typing_start",
        )
    else:
        await websocket.send_text(json.dumps({"event": "error", "data": {"message": f"unknown type {kind}"}}))


@realtime_router.websocket("/ws")
async def user_ws(websocket: WebSocket):
    # Validate user before accepting connection
    user = await _resolve_user_from_websocket(websocket)
    if not user:
        log.info("Rejected unauthenticated WebSocket connection")
        await websocket.accept()
        await websocket.send_text(json.dumps({"error": "unauthorized"}))
        await websocket.close(code=1008)
        return

    await manager.connect(websocket, user.id)
    try:
        await websocket.send_text(json.dumps({"event": "connected", "data": {"user_id": user.id}}))
        while True:
            data = await websocket.receive_text()
            await _handle_client_event(websocket, user, data)
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(websocket, user.id)
