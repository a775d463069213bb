from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from chat_realtime.api.deps import GatewayDep, VerifierDep
from chat_realtime.application.dto.principal import Principal
from chat_realtime.application.ports.auth import TokenVerifier
from chat_realtime.config import settings
from chat_realtime.domain.entities.message import MessageIntent
from chat_realtime.domain.value_objects.enums import SignalKind
from chat_realtime.infrastructure.ws.connection import WebSocketConnection
from chat_realtime.infrastructure.ws.protocol import (
    AnswerSignalPayload,
    CallInitPayload,
    CallPayload,
    CandidatePayload,
    ConversationPayload,
    OfferPayload,
    ReadPayload,
    SendMessagePayload,
    WsInbound,
)
from chat_realtime.services.gateway import ClientSession, RealtimeGateway
from chat_realtime.services.message_relay import MESSAGE_ERROR

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

AUTH_FAILED = 4001

Handler = Callable[[RealtimeGateway, ClientSession, dict[str, Any]], Awaitable[None]]


async def _authenticate(verifier: TokenVerifier, token: str | None) -> Principal | None:
    if not token:
        return None
    try:
        return await verifier.verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


@router.websocket("/ws")
async def ws_realtime(
    websocket: WebSocket,
    gateway: GatewayDep,
    verifier: VerifierDep,
    token: str | None = Query(default=None),
) -> None:
    principal = await _authenticate(verifier, token)
    if principal is None:
        await websocket.close(code=AUTH_FAILED, reason="Authentication failed")
        return

    connection = WebSocketConnection(websocket)
    try:
        session = await gateway.connect(connection, principal.user_id)
    except Exception:
        logger.exception("WS connect failed for %s", principal.principal_key)
        await websocket.close(code=1011, reason="Connect failed")
        return
    if session is None:
        await websocket.close(code=AUTH_FAILED, reason="User not found")
        return

    try:
        await websocket.accept()
    except Exception:
        gateway.disconnect(session)
        raise
    connection.start()
    heartbeat_task = asyncio.create_task(
        _heartbeat(connection), name=f"ws-heartbeat-{connection.connection_id}",
    )
    try:
        await _read_loop(websocket, gateway, session)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", principal.principal_key)
    finally:
        heartbeat_task.cancel()
        gateway.disconnect(session)
        await connection.close()


async def _heartbeat(connection: WebSocketConnection) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            connection.send("pong", {})
    except asyncio.CancelledError:
        pass
    except ConnectionError:
        pass


async def _read_loop(ws: WebSocket, gateway: RealtimeGateway, session: ClientSession) -> None:
    conn = session.connection
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except ValidationError:
            conn.send("error", {"code": "invalid_payload"})
            continue

        handler = _HANDLERS.get(msg.type)
        if handler is None:
            conn.send("error", {"code": "unknown_type", "type": msg.type})
            continue

        try:
            await handler(gateway, session, msg.data)
        except ValidationError as exc:
            if msg.type == "message:send":
                conn.send(MESSAGE_ERROR, {"tempId": msg.data.get("tempId"), "error": "Invalid message"})
            else:
                detail = exc.errors(include_url=False, include_context=False)
                conn.send("error", {"code": "invalid_payload", "type": msg.type, "detail": detail})
        except Exception:
            logger.exception("Handler %s failed for %s", msg.type, session.user_id)
            conn.send("error", {"code": "internal_error", "type": msg.type})


async def _on_ping(gateway: RealtimeGateway, session: ClientSession, data: dict[str, Any]) -> None:
    session.connection.send("pong", {})


async def _on_message_send(gateway: RealtimeGateway, session: ClientSession, data: dict[str, Any]) -> None:
    payload = SendMessagePayload.model_validate(data)
    intent = MessageIntent(
        conversation_id=payload.conversation_id,
        sender_id=session.user_id,
        body=payload.body,
        type=payload.type.value,
        client_temp_id=payload.temp_id,
        file_url=payload.file_url,
        file_name=payload.file_name,
        file_size=payload.file_size,
        meta=payload.meta,
    )
    await gateway.send_message(session, intent)


async def _on_message_read(gateway: RealtimeGateway, session: ClientSession, data: dict[str, Any]) -> None:
    payload = ReadPayload.model_validate(data)
    await gateway.mark_read(session, payload.message_id, payload.conversation_id)


async def _on_typing_start(gateway: RealtimeGateway, session: ClientSession, data: dict[str, Any]) -> None:
    payload = ConversationPayload.model_validate(data)
    await gateway.start_typing(session, payload.conversation_id)


async def _on_typing_stop(gateway: RealtimeGateway, session: ClientSession, data: dict[str, Any]) -> None:
    payload = ConversationPayload.model_validate(data)
    gateway.stop_typing(session, payload.conversation_id)


async def _on_presence_ping(gateway: RealtimeGateway, session: ClientSession, data: dict[str, Any]) -> None:
    await gateway.ping(session)


async def _on_conversation_join(gateway: RealtimeGateway, session: ClientSession, data: dict[str, Any]) -> None:
    payload = ConversationPayload.model_validate(data)
    await gateway.join_conversation(session, payload.conversation_id)


async def _on_conversation_leave(gateway: RealtimeGateway, session: ClientSession, data: dict[str, Any]) -> None:
    payload = ConversationPayload.model_validate(data)
    gateway.leave_conversation(session, payload.conversation_id)


async def _on_call_init(gateway: RealtimeGateway, session: ClientSession, data: dict[str, Any]) -> None:
    payload = CallInitPayload.model_validate(data)
    await gateway.init_call(session, payload.target_user_id, payload.conversation_id, payload.type)


async def _on_call_answer(gateway: RealtimeGateway, session: ClientSession, data: dict[str, Any]) -> None:
    gateway.answer_call(session, CallPayload.model_validate(data).call_id)


async def _on_call_reject(gateway: RealtimeGateway, session: ClientSession, data: dict[str, Any]) -> None:
    gateway.reject_call(session, CallPayload.model_validate(data).call_id)


async def _on_call_hangup(gateway: RealtimeGateway, session: ClientSession, data: dict[str, Any]) -> None:
    gateway.hangup_call(session, CallPayload.model_validate(data).call_id)


async def _on_call_offer(gateway: RealtimeGateway, session: ClientSession, data: dict[str, Any]) -> None:
    payload = OfferPayload.model_validate(data)
    gateway.relay_signal(session, payload.call_id, SignalKind.OFFER, payload.offer)


async def _on_call_answer_signal(gateway: RealtimeGateway, session: ClientSession, data: dict[str, Any]) -> None:
    payload = AnswerSignalPayload.model_validate(data)
    gateway.relay_signal(session, payload.call_id, SignalKind.ANSWER, payload.answer)


async def _on_call_candidate(gateway: RealtimeGateway, session: ClientSession, data: dict[str, Any]) -> None:
    payload = CandidatePayload.model_validate(data)
    gateway.relay_signal(session, payload.call_id, SignalKind.CANDIDATE, payload.candidate)


_HANDLERS: dict[str, Handler] = {
    "ping": _on_ping,
    "message:send": _on_message_send,
    "message:read": _on_message_read,
    "typing:start": _on_typing_start,
    "typing:stop": _on_typing_stop,
    "presence:ping": _on_presence_ping,
    "conversation:join": _on_conversation_join,
    "conversation:leave": _on_conversation_leave,
    "call:init": _on_call_init,
    "call:answer": _on_call_answer,
    "call:reject": _on_call_reject,
    "call:hangup": _on_call_hangup,
    "call:offer": _on_call_offer,
    "call:answer-signal": _on_call_answer_signal,
    "call:candidate": _on_call_candidate,
}
