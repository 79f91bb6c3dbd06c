# seekers_api/db/models/chat/chat_request.py
from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import UniqueConstraint
from datetime import datetime

from ....core.clock import utcnow


class ChatRequest(SQLModel, table=True):
    __tablename__ = "chat_requests"
    __table_args__ = (UniqueConstraint("sender_id", "receiver_id", name="uq_chat_requests_sender_receiver"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    sender_id: int = Field(foreign_key="users.id", index=True)
    receiver_id: int = Field(foreign_key="users.id", index=True)
    status: str = Field(default="pending", max_length=10)
    message: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
