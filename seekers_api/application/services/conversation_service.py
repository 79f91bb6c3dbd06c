import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from ...core.clock import utcnow
from ...exceptions import ErrorKind, ServiceError
from ..ports.chat_request_repo import ChatRequestRepository
from ..ports.conversation_repo import ConversationDto, ConversationRepository, MessageDto
from ..ports.user_repo import UserRepository, UserSummary
from .pagination import Page, page_offset

logger = logging.getLogger(__name__)


@dataclass
class MessageView:
    message: MessageDto
    sender: Optional[UserSummary]
    receiver: Optional[UserSummary]


@dataclass
class ConversationView:
    conversation: ConversationDto
    other_user: Optional[UserSummary]
    unread_count: int = 0


@dataclass
class ReadReceipt:
    conversation_id: int
    reader_id: int
    message_ids: List[int]
    read_at: datetime


def canonical_pair(user_a: int, user_b: int) -> Tuple[int, int]:
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


@dataclass
class ConversationService:
    conversations: ConversationRepository
    requests: ChatRequestRepository
    users: UserRepository
    clock: Callable[[], datetime] = utcnow

    def is_chat_allowed(self, user_a: int, user_b: int) -> bool:
        return self.requests.exists_accepted(user_a, user_b)

    def get_or_create_conversation(self, user_a: int, user_b: int) -> ConversationDto:
        return self.conversations.get_or_create(*canonical_pair(user_a, user_b))

    def send_message(self, sender_id: int, receiver_id: int, content: str,
                     attachment_url: Optional[str] = None) -> MessageView:
        if not self.is_chat_allowed(sender_id, receiver_id):
            raise ServiceError(ErrorKind.FORBIDDEN, "CHAT_NOT_ALLOWED")

        conversation = self.get_or_create_conversation(sender_id, receiver_id)
        message = self.conversations.add_message(
            conversation.id, sender_id, receiver_id, content, attachment_url, self.clock()
        )
        logger.info(f"Message {message.id} sent in conversation {conversation.id}")
        return self._message_view(message)

    def get_conversation(self, conversation_id: int, user_id: int) -> ConversationDto:
        conversation = self.conversations.get(conversation_id)
        if not conversation:
            raise ServiceError(ErrorKind.NOT_FOUND, "CONVERSATION_NOT_FOUND")
        if not conversation.has_participant(user_id):
            raise ServiceError(ErrorKind.FORBIDDEN, "NOT_CONVERSATION_PARTICIPANT")
        return conversation

    def list_conversations(self, user_id: int, page: int = 1, limit: int = 20) -> Page[ConversationView]:
        rows, total = self.conversations.list_for_user(user_id, page_offset(page, limit), limit)
        others = self.users.get_summaries(c.other_participant(user_id) for c in rows)
        items = [ConversationView(conversation=c, other_user=others.get(c.other_participant(user_id))) for c in rows]
        return Page(items=items, total=total, page=page, limit=limit)

    def list_messages(self, conversation_id: int, user_id: int, page: int = 1, limit: int = 50) -> Page[MessageView]:
        """History for a participant, oldest first."""
        self.get_conversation(conversation_id, user_id)
        rows, total = self.conversations.list_messages(conversation_id, page_offset(page, limit), limit)
        return Page(items=self._message_views(rows), total=total, page=page, limit=limit)

    def search_messages(self, conversation_id: int, user_id: int, term: str,
                        page: int = 1, limit: int = 20) -> Page[MessageView]:
        self.get_conversation(conversation_id, user_id)
        rows, total = self.conversations.search_messages(conversation_id, term, page_offset(page, limit), limit)
        return Page(items=self._message_views(rows), total=total, page=page, limit=limit)

    def mark_as_read(self, conversation_id: int, user_id: int) -> ReadReceipt:
        self.get_conversation(conversation_id, user_id)
        read_at = self.clock()
        ids = self.conversations.mark_read(conversation_id, user_id, read_at)
        return ReadReceipt(conversation_id=conversation_id, reader_id=user_id, message_ids=ids, read_at=read_at)

    def unread_count(self, user_id: int) -> int:
        return self.conversations.unread_count(user_id)

    def unread_by_conversation(self, user_id: int) -> List[ConversationView]:
        rows = self.conversations.unread_by_conversation(user_id)
        others = self.users.get_summaries(c.other_participant(user_id) for c, _ in rows)
        return [
            ConversationView(conversation=c, other_user=others.get(c.other_participant(user_id)), unread_count=count)
            for c, count in rows
        ]

    def delete_message(self, message_id: int, user_id: int) -> MessageDto:
        message = self.conversations.get_message(message_id)
        if not message or message.deleted_at is not None:
            raise ServiceError(ErrorKind.NOT_FOUND, "MESSAGE_NOT_FOUND")
        if user_id not in (message.sender_id, message.receiver_id):
            raise ServiceError(ErrorKind.FORBIDDEN, "NOT_MESSAGE_PARTICIPANT")

        message.deleted_at = self.clock()
        self.conversations.soft_delete_message(message_id, message.deleted_at)
        return message

    def _message_view(self, message: MessageDto) -> MessageView:
        return self._message_views([message])[0]

    def _message_views(self, messages: List[MessageDto]) -> List[MessageView]:
        ids = {m.sender_id for m in messages} | {m.receiver_id for m in messages}
        summaries = self.users.get_summaries(ids)
        return [
            MessageView(message=m, sender=summaries.get(m.sender_id), receiver=summaries.get(m.receiver_id))
            for m in messages
        ]
