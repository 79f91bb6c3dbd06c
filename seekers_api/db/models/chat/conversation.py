# seekers_api/db/models/chat/conversation.py
from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import UniqueConstraint
from datetime import datetime

from ....core.clock import utcnow


class Conversation(SQLModel, table=True):
    __tablename__ = "conversations"
    # participant_1_id is always the lower user id
    __table_args__ = (UniqueConstraint("participant_1_id", "participant_2_id", name="uq_conversations_participants"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    participant_1_id: int = Field(foreign_key="users.id", index=True)
    participant_2_id: int = Field(foreign_key="users.id", index=True)
    last_message: Optional[str] = Field(default=None)
    last_message_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
