import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from ..application.ports.email_sender import EmailSender
from ..application.ports.password_hasher import PasswordHasher
from ..application.ports.token_issuer import TokenClaims, TokenIssuer
from ..application.services.auth_service import AuthService, EmailTemplates
from ..application.services.chat_request_service import ChatRequestService
from ..application.services.conversation_service import ConversationService
from ..core.config import settings
from ..database import engine, get_session
from ..exceptions import ErrorKind, ServiceError
from ..infrastructure.audit.std_logger import StdAuditLogger
from ..infrastructure.email.brevo_email_sender import BrevoEmailSender
from ..infrastructure.persistence.sqlalchemy.repositories.chat_request_repository_sql import SqlChatRequestRepository
from ..infrastructure.persistence.sqlalchemy.repositories.conversation_repository_sql import SqlConversationRepository
from ..infrastructure.persistence.sqlalchemy.repositories.pending_signup_repository_sql import SqlPendingSignupRepository
from ..infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlUserRepository
from ..infrastructure.security.jwt_tokens import JwtTokenIssuer
from ..infrastructure.security.passwords import BcryptPasswordHasher
from ..realtime.chat_events import ChatEventHandler, ChatNotifier, ChatServices, ServicesFactory
from ..realtime.connection_manager import ConnectionManager, manager

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


# ------------------------
# Infrastructure
# ------------------------
@lru_cache()
def get_token_issuer() -> TokenIssuer:
    return JwtTokenIssuer(settings.SECRET_KEY, settings.ALGORITHM, settings.ACCESS_TOKEN_EXPIRE_MINUTES)


@lru_cache()
def get_password_hasher() -> PasswordHasher:
    return BcryptPasswordHasher(rounds=settings.PASSWORD_HASH_ROUNDS)


@lru_cache()
def get_email_sender() -> EmailSender:
    return BrevoEmailSender(
        api_key=settings.BREVO_API_KEY,
        from_email=settings.FROM_EMAIL,
        from_name=settings.FROM_NAME,
        timeout=settings.EMAIL_SEND_TIMEOUT_SEC,
    )


def get_connection_manager() -> ConnectionManager:
    return manager


def get_chat_notifier(conn_manager: ConnectionManager = Depends(get_connection_manager)) -> ChatNotifier:
    return ChatNotifier(conn_manager)


# ------------------------
# Services
# ------------------------
def get_auth_service(
    session: Session = Depends(get_session),
    email_sender: EmailSender = Depends(get_email_sender),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
    password_hasher: PasswordHasher = Depends(get_password_hasher),
) -> AuthService:
    return AuthService(
        user_repo=SqlUserRepository(session),
        signup_repo=SqlPendingSignupRepository(session),
        email_sender=email_sender,
        token_issuer=token_issuer,
        password_hasher=password_hasher,
        audit_logger=StdAuditLogger(),
        templates=EmailTemplates(
            signup=settings.SIGNUP_OTP_TEMPLATE_ID,
            login=settings.LOGIN_OTP_TEMPLATE_ID,
            reset_password=settings.RESET_PASSWORD_OTP_TEMPLATE_ID,
        ),
    )


def build_chat_services(session: Session) -> ChatServices:
    users = SqlUserRepository(session)
    requests = SqlChatRequestRepository(session)
    conversations = ConversationService(
        conversations=SqlConversationRepository(session),
        requests=requests,
        users=users,
    )
    return ChatServices(
        requests=ChatRequestService(requests=requests, users=users, conversations=conversations),
        conversations=conversations,
    )


def get_conversation_service(session: Session = Depends(get_session)) -> ConversationService:
    return build_chat_services(session).conversations


def get_chat_request_service(session: Session = Depends(get_session)) -> ChatRequestService:
    return build_chat_services(session).requests


@contextmanager
def chat_services_scope() -> Iterator[ChatServices]:
    """One database session per socket event."""
    with Session(engine) as session:
        yield build_chat_services(session)


def get_chat_services_factory() -> ServicesFactory:
    return chat_services_scope


def get_chat_event_handler(
    conn_manager: ConnectionManager = Depends(get_connection_manager),
    services: ServicesFactory = Depends(get_chat_services_factory),
) -> ChatEventHandler:
    return ChatEventHandler(conn_manager, services)


# ------------------------
# Authentication
# ------------------------
def extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
) -> TokenClaims:
    token = extract_token(request, credentials)
    if not token:
        raise ServiceError(ErrorKind.UNAUTHORIZED, "AUTHENTICATION_REQUIRED")

    claims = token_issuer.verify(token)
    if not claims:
        raise ServiceError(ErrorKind.UNAUTHORIZED, "INVALID_TOKEN")
    return claims
