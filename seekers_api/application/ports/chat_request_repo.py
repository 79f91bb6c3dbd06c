from dataclasses import dataclass
from typing import List, Optional, Tuple
from datetime import datetime


@dataclass
class ChatRequestDto:
    id: int
    sender_id: int
    receiver_id: int
    status: str
    message: Optional[str]
    created_at: datetime
    updated_at: datetime


class ChatRequestRepository:
    def get(self, request_id: int) -> Optional[ChatRequestDto]:
        ...

    def find_between(self, user_a: int, user_b: int) -> Optional[ChatRequestDto]:
        """Return the request for the unordered pair, in either orientation."""
        ...

    def create(self, sender_id: int, receiver_id: int, message: Optional[str]) -> ChatRequestDto:
        ...

    def update(self, request: ChatRequestDto) -> ChatRequestDto:
        ...

    def delete(self, request_id: int) -> None:
        ...

    def exists_accepted(self, user_a: int, user_b: int) -> bool:
        ...

    def list_received_pending(self, user_id: int, offset: int, limit: int) -> Tuple[List[ChatRequestDto], int]:
        ...

    def list_sent(self, user_id: int, offset: int, limit: int) -> Tuple[List[ChatRequestDto], int]:
        ...

    def list_all(self, user_id: int, offset: int, limit: int) -> Tuple[List[ChatRequestDto], int]:
        ...
