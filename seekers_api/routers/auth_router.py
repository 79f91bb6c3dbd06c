import logging

from fastapi import APIRouter, Depends, Response

from ..application.ports.token_issuer import TokenClaims
from ..application.services.auth_service import AuthResult, AuthService
from ..core.config import settings
from ..core.messages import get_message
from ..exceptions import create_success_response
from ..schemas.auth.auth import (
    AccountResponse,
    EmailRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    VerifyOtpRequest,
)
from .deps import get_auth_service, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


def _session_payload(result: AuthResult) -> dict:
    return create_success_response(
        data={
            "token": result.token,
            "token_type": "bearer",
            "user": AccountResponse.from_dto(result.account).model_dump(),
        },
        message=result.message,
    )


@router.post("/signup", status_code=201)
async def signup(body: SignupRequest, service: AuthService = Depends(get_auth_service)):
    result = await service.signup(
        email=body.email,
        account_type=body.account_type.value,
        display_name=body.display_name,
        city=body.city,
        password=body.password,
        adult_policy=body.adult_policy,
    )
    return create_success_response(data={"email": result.email}, message=result.message)


@router.post("/verify-otp")
async def verify_otp(body: VerifyOtpRequest, response: Response, service: AuthService = Depends(get_auth_service)):
    result = await service.verify_otp(body.email, body.otp)
    _set_session_cookie(response, result.token)
    return _session_payload(result)


@router.post("/resend-otp")
async def resend_otp(body: EmailRequest, service: AuthService = Depends(get_auth_service)):
    result = await service.resend_otp(body.email)
    return create_success_response(data={"email": result.email}, message=result.message)


@router.post("/login")
async def login(body: LoginRequest, service: AuthService = Depends(get_auth_service)):
    result = await service.login(body.email, body.password)
    return create_success_response(data={"email": result.email}, message=result.message)


@router.post("/verify-login-otp")
async def verify_login_otp(body: VerifyOtpRequest, response: Response, service: AuthService = Depends(get_auth_service)):
    result = await service.verify_login_otp(body.email, body.otp)
    _set_session_cookie(response, result.token)
    return _session_payload(result)


@router.post("/resend-login-otp")
async def resend_login_otp(body: EmailRequest, service: AuthService = Depends(get_auth_service)):
    result = await service.resend_login_otp(body.email)
    return create_success_response(data={"email": result.email}, message=result.message)


@router.post("/forgot-password")
async def forgot_password(body: EmailRequest, service: AuthService = Depends(get_auth_service)):
    result = await service.forgot_password(body.email)
    return create_success_response(data={"email": result.email}, message=result.message)


@router.post("/reset-password")
async def reset_password(body: ResetPasswordRequest, service: AuthService = Depends(get_auth_service)):
    message = await service.reset_password(
        email=body.email,
        new_pass=body.new_pass,
        otp=body.otp,
        old_pass=body.old_pass,
    )
    return create_success_response(message=message)


@router.post("/logout")
def logout(response: Response, service: AuthService = Depends(get_auth_service)):
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return create_success_response(message=service.logout())


@router.get("/me")
def me(current_user: TokenClaims = Depends(get_current_user), service: AuthService = Depends(get_auth_service)):
    account = service.get_account(current_user.id)
    return create_success_response(
        data=AccountResponse.from_dto(account).model_dump(),
        message=get_message("USER_FETCHED_SUCCESS"),
    )
