from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .....core.clock import as_utc
from .....db.models import Conversation, Message
from .....application.ports.conversation_repo import ConversationDto, ConversationRepository, MessageDto


class SqlConversationRepository(ConversationRepository):
    def __init__(self, session: Session):
        self.session = session

    def _conv_to_dto(self, c: Conversation) -> ConversationDto:
        return ConversationDto(
            id=c.id,
            participant_1_id=c.participant_1_id,
            participant_2_id=c.participant_2_id,
            last_message=c.last_message,
            last_message_at=as_utc(c.last_message_at),
            created_at=as_utc(c.created_at),
        )

    def _msg_to_dto(self, m: Message) -> MessageDto:
        return MessageDto(
            id=m.id,
            conversation_id=m.conversation_id,
            sender_id=m.sender_id,
            receiver_id=m.receiver_id,
            content=m.content,
            attachment_url=m.attachment_url,
            is_read=bool(m.is_read),
            read_at=as_utc(m.read_at),
            deleted_at=as_utc(m.deleted_at),
            created_at=as_utc(m.created_at),
        )

    def _find(self, participant_1_id: int, participant_2_id: int) -> Optional[Conversation]:
        return self.session.exec(
            select(Conversation)
            .where(Conversation.participant_1_id == participant_1_id)
            .where(Conversation.participant_2_id == participant_2_id)
        ).first()

    def get(self, conversation_id: int) -> Optional[ConversationDto]:
        c = self.session.get(Conversation, conversation_id)
        return self._conv_to_dto(c) if c else None

    def get_or_create(self, participant_1_id: int, participant_2_id: int) -> ConversationDto:
        existing = self._find(participant_1_id, participant_2_id)
        if existing:
            return self._conv_to_dto(existing)

        c = Conversation(participant_1_id=participant_1_id, participant_2_id=participant_2_id)
        self.session.add(c)
        try:
            self.session.commit()
        except IntegrityError:
            # A concurrent first call created the row; use that one
            self.session.rollback()
            existing = self._find(participant_1_id, participant_2_id)
            if existing is None:
                raise
            return self._conv_to_dto(existing)
        self.session.refresh(c)
        return self._conv_to_dto(c)

    def list_for_user(self, user_id: int, offset: int, limit: int) -> Tuple[List[ConversationDto], int]:
        condition = or_(Conversation.participant_1_id == user_id, Conversation.participant_2_id == user_id)
        total = self.session.exec(select(func.count()).select_from(Conversation).where(condition)).one()
        rows = self.session.exec(
            select(Conversation)
            .where(condition)
            .order_by(Conversation.last_message_at.desc(), Conversation.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()
        return [self._conv_to_dto(c) for c in rows], total

    def add_message(self, conversation_id: int, sender_id: int, receiver_id: int, content: str,
                    attachment_url: Optional[str], sent_at: datetime) -> MessageDto:
        m = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            attachment_url=attachment_url,
            is_read=False,
            created_at=sent_at,
        )
        c = self.session.get(Conversation, conversation_id)
        c.last_message = content
        c.last_message_at = sent_at
        c.updated_at = sent_at
        self.session.add(m)
        self.session.add(c)
        self.session.commit()
        self.session.refresh(m)
        return self._msg_to_dto(m)

    def get_message(self, message_id: int) -> Optional[MessageDto]:
        m = self.session.get(Message, message_id)
        return self._msg_to_dto(m) if m else None

    def _visible(self, conversation_id: int):
        return (Message.conversation_id == conversation_id, Message.deleted_at.is_(None))

    def list_messages(self, conversation_id: int, offset: int, limit: int) -> Tuple[List[MessageDto], int]:
        conditions = self._visible(conversation_id)
        total = self.session.exec(select(func.count()).select_from(Message).where(*conditions)).one()
        rows = self.session.exec(
            select(Message)
            .where(*conditions)
            .order_by(Message.created_at.asc(), Message.id.asc())
            .offset(offset)
            .limit(limit)
        ).all()
        return [self._msg_to_dto(m) for m in rows], total

    def search_messages(self, conversation_id: int, term: str, offset: int, limit: int) -> Tuple[List[MessageDto], int]:
        conditions = self._visible(conversation_id) + (Message.content.icontains(term, autoescape=True),)
        total = self.session.exec(select(func.count()).select_from(Message).where(*conditions)).one()
        rows = self.session.exec(
            select(Message)
            .where(*conditions)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()
        return [self._msg_to_dto(m) for m in rows], total

    def mark_read(self, conversation_id: int, receiver_id: int, read_at: datetime) -> List[int]:
        unread = self.session.exec(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .where(Message.receiver_id == receiver_id)
            .where(Message.is_read == False)  # noqa: E712
            .order_by(Message.id)
        ).all()
        if not unread:
            return []
        for m in unread:
            m.is_read = True
            m.read_at = read_at
            self.session.add(m)
        ids = [m.id for m in unread]
        self.session.commit()
        return ids

    def _unread(self, user_id: int):
        return (
            Message.receiver_id == user_id,
            Message.is_read == False,  # noqa: E712
            Message.deleted_at.is_(None),
        )

    def unread_count(self, user_id: int) -> int:
        return self.session.exec(select(func.count()).select_from(Message).where(*self._unread(user_id))).one()

    def unread_by_conversation(self, user_id: int) -> List[Tuple[ConversationDto, int]]:
        rows = self.session.exec(
            select(Conversation, func.count(Message.id))
            .join(Message, Message.conversation_id == Conversation.id)
            .where(*self._unread(user_id))
            .group_by(Conversation.id)
            .order_by(Conversation.last_message_at.desc())
        ).all()
        return [(self._conv_to_dto(c), count) for c, count in rows]

    def soft_delete_message(self, message_id: int, deleted_at: datetime) -> None:
        m = self.session.get(Message, message_id)
        if not m:
            return
        m.deleted_at = deleted_at
        self.session.add(m)
        self.session.commit()
