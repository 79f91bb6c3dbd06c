"""Chat request lifecycle.

A request for an unordered pair lives in a single row: ``pending`` moves to
``accepted`` or ``rejected``; a rejected row is reopened by a new send from
either side; cancel removes a pending row entirely.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from ...core.clock import utcnow
from ...exceptions import ErrorKind, ServiceError
from ..ports.chat_request_repo import ChatRequestDto, ChatRequestRepository
from ..ports.conversation_repo import ConversationDto
from ..ports.user_repo import UserRepository, UserSummary
from .conversation_service import ConversationService
from .pagination import Page, page_offset

logger = logging.getLogger(__name__)

PENDING = "pending"
ACCEPTED = "accepted"
REJECTED = "rejected"


@dataclass
class ChatRequestView:
    request: ChatRequestDto
    sender: Optional[UserSummary]
    receiver: Optional[UserSummary]


@dataclass
class AcceptedRequest:
    request: ChatRequestView
    conversation: ConversationDto


@dataclass
class ChatRequestService:
    requests: ChatRequestRepository
    users: UserRepository
    conversations: ConversationService
    clock: Callable[[], datetime] = utcnow

    def send_request(self, sender_id: int, receiver_id: int, message: Optional[str] = None) -> ChatRequestView:
        if sender_id == receiver_id:
            raise ServiceError(ErrorKind.VALIDATION, "CANNOT_REQUEST_SELF")
        if not self.users.get_by_id(receiver_id):
            raise ServiceError(ErrorKind.NOT_FOUND, "RECEIVER_NOT_FOUND")

        existing = self.requests.find_between(sender_id, receiver_id)
        if existing:
            if existing.status == ACCEPTED:
                raise ServiceError(ErrorKind.CONFLICT, "CHAT_ALREADY_ENABLED")
            if existing.status == PENDING:
                raise ServiceError(ErrorKind.CONFLICT, "CHAT_REQUEST_PENDING")

            # Rejected: reopen the same row, now addressed from the new sender
            existing.sender_id = sender_id
            existing.receiver_id = receiver_id
            existing.status = PENDING
            existing.message = message
            existing.updated_at = self.clock()
            request = self.requests.update(existing)
            logger.info(f"Chat request {request.id} reopened by user {sender_id}")
        else:
            request = self.requests.create(sender_id, receiver_id, message)
            logger.info(f"Chat request {request.id} sent from {sender_id} to {receiver_id}")
        return self.describe(request)

    def accept(self, request_id: int, user_id: int) -> AcceptedRequest:
        request = self._get(request_id)
        if request.receiver_id != user_id:
            raise ServiceError(ErrorKind.FORBIDDEN, "ONLY_RECEIVER_CAN_ACCEPT")
        self._ensure_pending(request, "accept")

        request.status = ACCEPTED
        request.updated_at = self.clock()
        request = self.requests.update(request)
        conversation = self.conversations.get_or_create_conversation(request.sender_id, request.receiver_id)
        return AcceptedRequest(request=self.describe(request), conversation=conversation)

    def reject(self, request_id: int, user_id: int) -> ChatRequestView:
        request = self._get(request_id)
        if request.receiver_id != user_id:
            raise ServiceError(ErrorKind.FORBIDDEN, "ONLY_RECEIVER_CAN_REJECT")
        self._ensure_pending(request, "reject")

        request.status = REJECTED
        request.updated_at = self.clock()
        return self.describe(self.requests.update(request))

    def cancel(self, request_id: int, user_id: int) -> ChatRequestDto:
        request = self._get(request_id)
        if request.sender_id != user_id:
            raise ServiceError(ErrorKind.FORBIDDEN, "ONLY_SENDER_CAN_CANCEL")
        self._ensure_pending(request, "cancel")

        self.requests.delete(request.id)
        return request

    def is_chat_allowed(self, user_a: int, user_b: int) -> bool:
        return self.conversations.is_chat_allowed(user_a, user_b)

    def pending_requests(self, user_id: int, page: int = 1, limit: int = 20) -> Page[ChatRequestView]:
        rows, total = self.requests.list_received_pending(user_id, page_offset(page, limit), limit)
        return self._page(rows, total, page, limit)

    def sent_requests(self, user_id: int, page: int = 1, limit: int = 20) -> Page[ChatRequestView]:
        rows, total = self.requests.list_sent(user_id, page_offset(page, limit), limit)
        return self._page(rows, total, page, limit)

    def all_requests(self, user_id: int, page: int = 1, limit: int = 20) -> Page[ChatRequestView]:
        rows, total = self.requests.list_all(user_id, page_offset(page, limit), limit)
        return self._page(rows, total, page, limit)

    def describe(self, request: ChatRequestDto) -> ChatRequestView:
        summaries = self.users.get_summaries([request.sender_id, request.receiver_id])
        return ChatRequestView(
            request=request,
            sender=summaries.get(request.sender_id),
            receiver=summaries.get(request.receiver_id),
        )

    def _get(self, request_id: int) -> ChatRequestDto:
        request = self.requests.get(request_id)
        if not request:
            raise ServiceError(ErrorKind.NOT_FOUND, "CHAT_REQUEST_NOT_FOUND")
        return request

    @staticmethod
    def _ensure_pending(request: ChatRequestDto, action: str) -> None:
        if request.status != PENDING:
            raise ServiceError(ErrorKind.CONFLICT, "INVALID_REQUEST_STATE", action=action, status=request.status)

    def _page(self, rows, total: int, page: int, limit: int) -> Page[ChatRequestView]:
        ids = {r.sender_id for r in rows} | {r.receiver_id for r in rows}
        summaries = self.users.get_summaries(ids)
        items = [
            ChatRequestView(request=r, sender=summaries.get(r.sender_id), receiver=summaries.get(r.receiver_id))
            for r in rows
        ]
        return Page(items=items, total=total, page=page, limit=limit)
