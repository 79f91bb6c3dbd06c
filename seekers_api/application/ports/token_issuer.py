from typing import Protocol, Optional
from dataclasses import dataclass


@dataclass
class TokenClaims:
    id: int
    email: str
    role: str


class TokenIssuer(Protocol):
    def issue(self, claims: TokenClaims) -> str:
        ...

    def verify(self, token: str) -> Optional[TokenClaims]:
        ...
