from typing import List, Optional, Tuple

from sqlalchemy import and_, func, or_
from sqlmodel import Session, select

from .....core.clock import as_utc
from .....db.models import ChatRequest
from .....application.ports.chat_request_repo import ChatRequestDto, ChatRequestRepository


def _between(user_a: int, user_b: int):
    return or_(
        and_(ChatRequest.sender_id == user_a, ChatRequest.receiver_id == user_b),
        and_(ChatRequest.sender_id == user_b, ChatRequest.receiver_id == user_a),
    )


class SqlChatRequestRepository(ChatRequestRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, r: ChatRequest) -> ChatRequestDto:
        return ChatRequestDto(
            id=r.id,
            sender_id=r.sender_id,
            receiver_id=r.receiver_id,
            status=r.status,
            message=r.message,
            created_at=as_utc(r.created_at),
            updated_at=as_utc(r.updated_at),
        )

    def get(self, request_id: int) -> Optional[ChatRequestDto]:
        r = self.session.get(ChatRequest, request_id)
        return self._to_dto(r) if r else None

    def find_between(self, user_a: int, user_b: int) -> Optional[ChatRequestDto]:
        r = self.session.exec(select(ChatRequest).where(_between(user_a, user_b))).first()
        return self._to_dto(r) if r else None

    def create(self, sender_id: int, receiver_id: int, message: Optional[str]) -> ChatRequestDto:
        r = ChatRequest(sender_id=sender_id, receiver_id=receiver_id, message=message, status="pending")
        self.session.add(r)
        self.session.commit()
        self.session.refresh(r)
        return self._to_dto(r)

    def update(self, request: ChatRequestDto) -> ChatRequestDto:
        r = self.session.get(ChatRequest, request.id)
        r.sender_id = request.sender_id
        r.receiver_id = request.receiver_id
        r.status = request.status
        r.message = request.message
        r.updated_at = request.updated_at
        self.session.add(r)
        self.session.commit()
        self.session.refresh(r)
        return self._to_dto(r)

    def delete(self, request_id: int) -> None:
        r = self.session.get(ChatRequest, request_id)
        if not r:
            return
        self.session.delete(r)
        self.session.commit()

    def exists_accepted(self, user_a: int, user_b: int) -> bool:
        r = self.session.exec(
            select(ChatRequest.id).where(_between(user_a, user_b)).where(ChatRequest.status == "accepted")
        ).first()
        return r is not None

    def _page(self, condition, offset: int, limit: int) -> Tuple[List[ChatRequestDto], int]:
        total = self.session.exec(select(func.count()).select_from(ChatRequest).where(condition)).one()
        rows = self.session.exec(
            select(ChatRequest)
            .where(condition)
            .order_by(ChatRequest.created_at.desc(), ChatRequest.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()
        return [self._to_dto(r) for r in rows], total

    def list_received_pending(self, user_id: int, offset: int, limit: int) -> Tuple[List[ChatRequestDto], int]:
        return self._page(and_(ChatRequest.receiver_id == user_id, ChatRequest.status == "pending"), offset, limit)

    def list_sent(self, user_id: int, offset: int, limit: int) -> Tuple[List[ChatRequestDto], int]:
        return self._page(ChatRequest.sender_id == user_id, offset, limit)

    def list_all(self, user_id: int, offset: int, limit: int) -> Tuple[List[ChatRequestDto], int]:
        return self._page(or_(ChatRequest.sender_id == user_id, ChatRequest.receiver_id == user_id), offset, limit)
