"""Chat socket events.

Inbound frames are ``{"event": <name>, "data": {...}}``. Persistent actions go
through the same services as the HTTP routes; typing and read indicators are
only relayed.
"""
import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import ValidationError

from ..application.services.chat_request_service import AcceptedRequest, ChatRequestService, ChatRequestView
from ..application.services.conversation_service import ConversationService, MessageView, ReadReceipt
from ..exceptions import ErrorKind, ServiceError
from ..schemas.chat.chat import (
    ChatRequestResponse,
    MessageResponse,
    ReadReceiptResponse,
    SendChatRequest,
    SendMessageRequest,
    UserSummaryResponse,
)
from .connection_manager import Connection, ConnectionManager, conversation_room, user_room

logger = logging.getLogger(__name__)


@dataclass
class ChatServices:
    requests: ChatRequestService
    conversations: ConversationService


ServicesFactory = Callable[[], AbstractContextManager]


def _json(model) -> Dict[str, Any]:
    return model.model_dump(mode="json")


class ChatNotifier:
    """Pushes the outcome of chat actions to the affected rooms."""

    def __init__(self, manager: ConnectionManager) -> None:
        self.manager = manager

    async def message_sent(self, view: MessageView) -> None:
        message = view.message
        await self.manager.emit_to_room(
            conversation_room(message.conversation_id), "new_message", _json(MessageResponse.from_view(view))
        )
        await self.manager.emit_to_user(message.receiver_id, "message_notification", {
            "from": message.sender_id,
            "conversation_id": message.conversation_id,
            "content": message.content,
            "timestamp": message.created_at.isoformat(),
        })

    async def messages_read(self, receipt: ReadReceipt) -> None:
        await self.manager.emit_to_room(conversation_room(receipt.conversation_id), "messages_read",
                                        _json(ReadReceiptResponse(**receipt.__dict__)))

    async def chat_request_received(self, view: ChatRequestView) -> None:
        request = view.request
        sender = UserSummaryResponse.from_summary(view.sender)
        await self.manager.emit_to_user(request.receiver_id, "chat_request_received", {
            "request_id": request.id,
            "sender": _json(sender) if sender else None,
            "message": request.message,
        })

    async def chat_request_accepted(self, accepted: AcceptedRequest) -> None:
        request = accepted.request.request
        receiver = UserSummaryResponse.from_summary(accepted.request.receiver)
        await self.manager.emit_to_user(request.sender_id, "chat_request_accepted_notification", {
            "request_id": request.id,
            "receiver": _json(receiver) if receiver else None,
            "conversation_id": accepted.conversation.id,
        })

    async def chat_request_rejected(self, view: ChatRequestView) -> None:
        await self.manager.emit_to_user(view.request.sender_id, "chat_request_rejected", {
            "request_id": view.request.id,
        })


class ChatEventHandler:
    def __init__(self, manager: ConnectionManager, services: ServicesFactory) -> None:
        self.manager = manager
        self.services = services
        self.notifier = ChatNotifier(manager)
        self._handlers: Dict[str, Callable[[Connection, Dict[str, Any]], Awaitable[None]]] = {
            "join_conversation": self.join_conversation,
            "leave_conversation": self.leave_conversation,
            "send_message": self.send_message,
            "typing": self.typing,
            "stop_typing": self.stop_typing,
            "mark_as_read": self.mark_as_read,
            "join_personal_room": self.join_personal_room,
            "send_chat_request": self.send_chat_request,
            "accept_chat_request": self.accept_chat_request,
            "reject_chat_request": self.reject_chat_request,
            "check_online": self.check_online,
        }

    async def dispatch(self, conn: Connection, frame: Any) -> None:
        """Route one inbound frame; failures are reported to the sender as an ``error`` event."""
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            await self.manager.send(conn, "error", {"error": "INVALID_EVENT", "message": "Malformed event frame"})
            return

        event = frame["event"]
        handler = self._handlers.get(event)
        if handler is None:
            await self.manager.send(conn, "error", {"error": "UNKNOWN_EVENT", "message": f"Unknown event: {event}", "event": event})
            return

        data = frame.get("data") or {}
        try:
            await handler(conn, data)
        except ServiceError as e:
            payload = {"error": e.code, "message": e.message, "event": event}
            if e.minutes_left is not None:
                payload["minutes_left"] = e.minutes_left
            await self.manager.send(conn, "error", payload)
        except Exception as e:
            logger.error(f"Error handling {event} for user {conn.user_id}: {e}", exc_info=True)
            await self.manager.send(conn, "error", {"error": "INTERNAL_ERROR", "message": f"Failed to handle {event}", "event": event})

    # ------------------------
    # Rooms
    # ------------------------
    async def join_conversation(self, conn: Connection, data: Dict[str, Any]) -> None:
        conversation_id = _int_field(data, "conversation_id")
        with self.services() as services:
            services.conversations.get_conversation(conversation_id, conn.user_id)

        room = conversation_room(conversation_id)
        self.manager.join(conn, room)
        await self.manager.emit_to_room(room, "user_joined", {
            "user_id": conn.user_id,
            "conversation_id": conversation_id,
        }, exclude=conn)

    async def leave_conversation(self, conn: Connection, data: Dict[str, Any]) -> None:
        conversation_id = _int_field(data, "conversation_id")
        room = conversation_room(conversation_id)
        if room not in conn.rooms:
            return
        self.manager.leave(conn, room)
        await self.manager.emit_to_room(room, "user_left", {
            "user_id": conn.user_id,
            "conversation_id": conversation_id,
        })

    async def join_personal_room(self, conn: Connection, data: Dict[str, Any]) -> None:
        self.manager.join(conn, user_room(conn.user_id))

    # ------------------------
    # Messages
    # ------------------------
    async def send_message(self, conn: Connection, data: Dict[str, Any]) -> None:
        payload = _parse(SendMessageRequest, data)
        with self.services() as services:
            view = services.conversations.send_message(
                conn.user_id, payload.receiver_id, payload.content, payload.attachment_url
            )
        await self.notifier.message_sent(view)

    async def typing(self, conn: Connection, data: Dict[str, Any]) -> None:
        await self._relay(conn, data, "user_typing")

    async def stop_typing(self, conn: Connection, data: Dict[str, Any]) -> None:
        await self._relay(conn, data, "user_stopped_typing")

    async def mark_as_read(self, conn: Connection, data: Dict[str, Any]) -> None:
        conversation_id = _int_field(data, "conversation_id")
        with self.services() as services:
            receipt = services.conversations.mark_as_read(conversation_id, conn.user_id)
        await self.notifier.messages_read(receipt)

    async def _relay(self, conn: Connection, data: Dict[str, Any], event: str) -> None:
        conversation_id = _int_field(data, "conversation_id")
        room = conversation_room(conversation_id)
        # Only sockets that passed the participant check on join may relay
        if room not in conn.rooms:
            raise ServiceError(ErrorKind.FORBIDDEN, "CONVERSATION_NOT_JOINED")
        await self.manager.emit_to_room(room, event, {
            "user_id": conn.user_id,
            "conversation_id": conversation_id,
        }, exclude=conn)

    # ------------------------
    # Chat requests
    # ------------------------
    async def send_chat_request(self, conn: Connection, data: Dict[str, Any]) -> None:
        payload = _parse(SendChatRequest, data)
        with self.services() as services:
            view = services.requests.send_request(conn.user_id, payload.receiver_id, payload.message)

        await self.manager.send(conn, "chat_request_sent", {
            "request_id": view.request.id,
            "receiver_id": view.request.receiver_id,
            "status": view.request.status,
        })
        await self.notifier.chat_request_received(view)

    async def accept_chat_request(self, conn: Connection, data: Dict[str, Any]) -> None:
        request_id = _int_field(data, "request_id")
        with self.services() as services:
            accepted = services.requests.accept(request_id, conn.user_id)

        await self.manager.send(conn, "chat_request_accepted", {
            "request_id": request_id,
            "conversation_id": accepted.conversation.id,
        })
        await self.notifier.chat_request_accepted(accepted)

    async def reject_chat_request(self, conn: Connection, data: Dict[str, Any]) -> None:
        request_id = _int_field(data, "request_id")
        with self.services() as services:
            view = services.requests.reject(request_id, conn.user_id)
        await self.manager.send(conn, "chat_request_rejected", {"request_id": request_id})
        await self.notifier.chat_request_rejected(view)

    # ------------------------
    # Presence
    # ------------------------
    async def check_online(self, conn: Connection, data: Dict[str, Any]) -> None:
        user_ids = data.get("user_ids")
        if not isinstance(user_ids, list):
            raise ServiceError(ErrorKind.VALIDATION, "VALIDATION_FAILED", message="user_ids must be a list")
        try:
            ids = [int(uid) for uid in user_ids]
        except (TypeError, ValueError):
            raise ServiceError(ErrorKind.VALIDATION, "VALIDATION_FAILED", message="user_ids must be integers")
        await self.manager.send(conn, "online_status", {"online_users": self.manager.online_users(ids)})


def _int_field(data: Dict[str, Any], name: str) -> int:
    value: Optional[Any] = data.get(name) if isinstance(data, dict) else None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ServiceError(ErrorKind.VALIDATION, "VALIDATION_FAILED", message=f"{name} is required")


def _parse(model, data: Dict[str, Any]):
    try:
        return model(**data)
    except (TypeError, ValidationError) as e:
        logger.debug(f"Rejected {model.__name__} payload: {e}")
        raise ServiceError(ErrorKind.VALIDATION, "VALIDATION_FAILED")
