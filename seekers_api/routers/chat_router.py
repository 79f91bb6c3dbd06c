import logging

from fastapi import APIRouter, Depends, Query

from ..application.ports.token_issuer import TokenClaims
from ..application.services.chat_request_service import ChatRequestService
from ..application.services.conversation_service import ConversationService
from ..core.config import settings
from ..core.messages import get_message
from ..exceptions import create_success_response
from ..realtime.chat_events import ChatNotifier
from ..schemas.chat.chat import (
    ChatRequestResponse,
    ConversationResponse,
    MessageResponse,
    ReadReceiptResponse,
    SendChatRequest,
    SendMessageRequest,
)
from ..schemas.common.common import PaginationMeta
from .deps import get_chat_notifier, get_chat_request_service, get_conversation_service, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["Chat"])


def _dump(model) -> dict:
    return model.model_dump(mode="json")


def _paged(page, serialize, key: str) -> dict:
    return {key: [_dump(serialize(item)) for item in page.items], "pagination": PaginationMeta.from_page(page).model_dump()}


# ------------------------
# Chat requests
# ------------------------
@router.post("/request/send", status_code=201)
async def send_chat_request(
    body: SendChatRequest,
    current_user: TokenClaims = Depends(get_current_user),
    service: ChatRequestService = Depends(get_chat_request_service),
    notifier: ChatNotifier = Depends(get_chat_notifier),
):
    view = service.send_request(current_user.id, body.receiver_id, body.message)
    await notifier.chat_request_received(view)
    return create_success_response(data=_dump(ChatRequestResponse.from_view(view)), message=get_message("CHAT_REQUEST_SENT"))


@router.post("/request/{request_id}/accept")
async def accept_chat_request(
    request_id: int,
    current_user: TokenClaims = Depends(get_current_user),
    service: ChatRequestService = Depends(get_chat_request_service),
    notifier: ChatNotifier = Depends(get_chat_notifier),
):
    accepted = service.accept(request_id, current_user.id)
    await notifier.chat_request_accepted(accepted)
    data = _dump(ChatRequestResponse.from_view(accepted.request))
    data["conversation_id"] = accepted.conversation.id
    return create_success_response(data=data, message=get_message("CHAT_REQUEST_ACCEPTED"))


@router.post("/request/{request_id}/reject")
async def reject_chat_request(
    request_id: int,
    current_user: TokenClaims = Depends(get_current_user),
    service: ChatRequestService = Depends(get_chat_request_service),
    notifier: ChatNotifier = Depends(get_chat_notifier),
):
    view = service.reject(request_id, current_user.id)
    await notifier.chat_request_rejected(view)
    return create_success_response(data=_dump(ChatRequestResponse.from_view(view)), message=get_message("CHAT_REQUEST_REJECTED"))


@router.delete("/request/{request_id}")
def cancel_chat_request(
    request_id: int,
    current_user: TokenClaims = Depends(get_current_user),
    service: ChatRequestService = Depends(get_chat_request_service),
):
    service.cancel(request_id, current_user.id)
    return create_success_response(message=get_message("CHAT_REQUEST_CANCELLED"))


@router.get("/request/pending")
def get_pending_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: TokenClaims = Depends(get_current_user),
    service: ChatRequestService = Depends(get_chat_request_service),
):
    result = service.pending_requests(current_user.id, page, limit)
    return create_success_response(data=_paged(result, ChatRequestResponse.from_view, "requests"))


@router.get("/request/sent")
def get_sent_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: TokenClaims = Depends(get_current_user),
    service: ChatRequestService = Depends(get_chat_request_service),
):
    result = service.sent_requests(current_user.id, page, limit)
    return create_success_response(data=_paged(result, ChatRequestResponse.from_view, "requests"))


@router.get("/request/all")
def get_all_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: TokenClaims = Depends(get_current_user),
    service: ChatRequestService = Depends(get_chat_request_service),
):
    result = service.all_requests(current_user.id, page, limit)
    return create_success_response(data=_paged(result, ChatRequestResponse.from_view, "requests"))


# ------------------------
# Messages
# ------------------------
@router.post("/send", status_code=201)
async def send_message(
    body: SendMessageRequest,
    current_user: TokenClaims = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
    notifier: ChatNotifier = Depends(get_chat_notifier),
):
    view = service.send_message(current_user.id, body.receiver_id, body.content, body.attachment_url)
    await notifier.message_sent(view)
    return create_success_response(data=_dump(MessageResponse.from_view(view)), message=get_message("MESSAGE_SENT"))


@router.get("/conversations")
def get_conversations(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: TokenClaims = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    result = service.list_conversations(current_user.id, page, limit)
    return create_success_response(data=_paged(result, ConversationResponse.from_view, "conversations"))


@router.get("/conversations/{conversation_id}/messages")
def get_conversation_messages(
    conversation_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: TokenClaims = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    result = service.list_messages(conversation_id, current_user.id, page, limit)
    return create_success_response(data=_paged(result, MessageResponse.from_view, "messages"))


@router.put("/conversations/{conversation_id}/read")
async def mark_as_read(
    conversation_id: int,
    current_user: TokenClaims = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
    notifier: ChatNotifier = Depends(get_chat_notifier),
):
    receipt = service.mark_as_read(conversation_id, current_user.id)
    if receipt.message_ids:
        await notifier.messages_read(receipt)
    return create_success_response(
        data=_dump(ReadReceiptResponse(**receipt.__dict__)),
        message=get_message("MESSAGES_MARKED_READ"),
    )


@router.get("/conversations/{conversation_id}/search")
def search_messages(
    conversation_id: int,
    q: str = Query(..., min_length=1, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    current_user: TokenClaims = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    result = service.search_messages(conversation_id, current_user.id, q, page, limit)
    return create_success_response(data=_paged(result, MessageResponse.from_view, "messages"))


@router.get("/unread-count")
def get_unread_count(
    current_user: TokenClaims = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    return create_success_response(data={"unread_count": service.unread_count(current_user.id)})


@router.get("/unread")
def get_unread_messages(
    current_user: TokenClaims = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    views = service.unread_by_conversation(current_user.id)
    return create_success_response(data={"conversations": [_dump(ConversationResponse.from_view(v)) for v in views]})


@router.delete("/messages/{message_id}")
def delete_message(
    message_id: int,
    current_user: TokenClaims = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    service.delete_message(message_id, current_user.id)
    return create_success_response(message=get_message("MESSAGE_DELETED"))
