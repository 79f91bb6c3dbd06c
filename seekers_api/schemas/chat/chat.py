# seekers_api/schemas/chat/chat.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class SendChatRequest(BaseModel):
    receiver_id: int = Field(..., gt=0)
    message: Optional[str] = Field(None, max_length=500)


class SendMessageRequest(BaseModel):
    receiver_id: int = Field(..., gt=0)
    content: str = Field(..., min_length=1, max_length=5000)
    attachment_url: Optional[str] = Field(None, max_length=500)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v):
        if not v.strip():
            raise ValueError("Message content cannot be empty")
        return v


class UserSummaryResponse(BaseModel):
    id: int
    name: str
    username: str
    profile_name: str
    profile_photo: Optional[str] = None

    @classmethod
    def from_summary(cls, summary) -> Optional["UserSummaryResponse"]:
        if summary is None:
            return None
        return cls(
            id=summary.id,
            name=summary.name,
            username=summary.username,
            profile_name=summary.profile_name,
            profile_photo=summary.profile_photo,
        )


class ChatRequestResponse(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    status: str
    message: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    sender: Optional[UserSummaryResponse] = None
    receiver: Optional[UserSummaryResponse] = None

    @classmethod
    def from_view(cls, view) -> "ChatRequestResponse":
        r = view.request
        return cls(
            id=r.id,
            sender_id=r.sender_id,
            receiver_id=r.receiver_id,
            status=r.status,
            message=r.message,
            created_at=r.created_at,
            updated_at=r.updated_at,
            sender=UserSummaryResponse.from_summary(view.sender),
            receiver=UserSummaryResponse.from_summary(view.receiver),
        )


class ConversationResponse(BaseModel):
    id: int
    participant_1_id: int
    participant_2_id: int
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    created_at: datetime
    other_user: Optional[UserSummaryResponse] = None
    unread_count: Optional[int] = None

    @classmethod
    def from_dto(cls, conversation, other_user=None, unread_count=None) -> "ConversationResponse":
        return cls(
            id=conversation.id,
            participant_1_id=conversation.participant_1_id,
            participant_2_id=conversation.participant_2_id,
            last_message=conversation.last_message,
            last_message_at=conversation.last_message_at,
            created_at=conversation.created_at,
            other_user=UserSummaryResponse.from_summary(other_user),
            unread_count=unread_count,
        )

    @classmethod
    def from_view(cls, view) -> "ConversationResponse":
        return cls.from_dto(view.conversation, view.other_user, view.unread_count)


class MessageResponse(BaseModel):
    id: int
    conversation_id: int
    sender_id: int
    receiver_id: int
    content: str
    attachment_url: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime
    sender: Optional[UserSummaryResponse] = None
    receiver: Optional[UserSummaryResponse] = None

    @classmethod
    def from_dto(cls, m, sender=None, receiver=None) -> "MessageResponse":
        return cls(
            id=m.id,
            conversation_id=m.conversation_id,
            sender_id=m.sender_id,
            receiver_id=m.receiver_id,
            content=m.content,
            attachment_url=m.attachment_url,
            is_read=m.is_read,
            read_at=m.read_at,
            created_at=m.created_at,
            sender=UserSummaryResponse.from_summary(sender),
            receiver=UserSummaryResponse.from_summary(receiver),
        )

    @classmethod
    def from_view(cls, view) -> "MessageResponse":
        return cls.from_dto(view.message, view.sender, view.receiver)


class ReadReceiptResponse(BaseModel):
    conversation_id: int
    reader_id: int
    message_ids: List[int]
    read_at: datetime
