import logging
from datetime import timedelta
from typing import Optional

import jwt

from ...application.ports.token_issuer import TokenClaims, TokenIssuer
from ...core.clock import utcnow

logger = logging.getLogger(__name__)


class JwtTokenIssuer(TokenIssuer):
    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 7 * 24 * 60) -> None:
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    def issue(self, claims: TokenClaims) -> str:
        now = utcnow()
        to_encode = {
            "sub": str(claims.id),
            "id": claims.id,
            "email": claims.email,
            "role": claims.role,
            "iat": now,
            "exp": now + timedelta(minutes=self.expire_minutes),
        }
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> Optional[TokenClaims]:
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("Token has expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid token: {e}")
            return None

        try:
            return TokenClaims(id=int(payload["id"]), email=payload["email"], role=payload["role"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Token payload is missing identity claims")
            return None
