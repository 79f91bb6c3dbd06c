from dataclasses import dataclass
from typing import List, Optional, Tuple
from datetime import datetime


@dataclass
class ConversationDto:
    id: int
    participant_1_id: int
    participant_2_id: int
    last_message: Optional[str]
    last_message_at: Optional[datetime]
    created_at: datetime

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.participant_1_id, self.participant_2_id)

    def other_participant(self, user_id: int) -> int:
        return self.participant_2_id if self.participant_1_id == user_id else self.participant_1_id


@dataclass
class MessageDto:
    id: int
    conversation_id: int
    sender_id: int
    receiver_id: int
    content: str
    attachment_url: Optional[str]
    is_read: bool
    read_at: Optional[datetime]
    deleted_at: Optional[datetime]
    created_at: datetime


class ConversationRepository:
    def get(self, conversation_id: int) -> Optional[ConversationDto]:
        ...

    def get_or_create(self, participant_1_id: int, participant_2_id: int) -> ConversationDto:
        """Participants must already be in canonical (ascending) order."""
        ...

    def list_for_user(self, user_id: int, offset: int, limit: int) -> Tuple[List[ConversationDto], int]:
        ...

    def add_message(self, conversation_id: int, sender_id: int, receiver_id: int, content: str,
                    attachment_url: Optional[str], sent_at: datetime) -> MessageDto:
        """Insert the message and update the conversation's last-message fields in one commit."""
        ...

    def get_message(self, message_id: int) -> Optional[MessageDto]:
        ...

    def list_messages(self, conversation_id: int, offset: int, limit: int) -> Tuple[List[MessageDto], int]:
        ...

    def search_messages(self, conversation_id: int, term: str, offset: int, limit: int) -> Tuple[List[MessageDto], int]:
        ...

    def mark_read(self, conversation_id: int, receiver_id: int, read_at: datetime) -> List[int]:
        ...

    def unread_count(self, user_id: int) -> int:
        ...

    def unread_by_conversation(self, user_id: int) -> List[Tuple[ConversationDto, int]]:
        ...

    def soft_delete_message(self, message_id: int, deleted_at: datetime) -> None:
        ...
