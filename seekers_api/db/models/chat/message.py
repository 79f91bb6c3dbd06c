# seekers_api/db/models/chat/message.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime

from ....core.clock import utcnow


class Message(SQLModel, table=True):
    __tablename__ = "messages"
    id: Optional[int] = Field(default=None, primary_key=True)
    conversation_id: int = Field(foreign_key="conversations.id", index=True)
    sender_id: int = Field(foreign_key="users.id", index=True)
    receiver_id: int = Field(foreign_key="users.id", index=True)
    content: str
    attachment_url: Optional[str] = Field(default=None, max_length=500)
    is_read: bool = Field(default=False)
    read_at: Optional[datetime] = Field(default=None)
    deleted_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, index=True)
