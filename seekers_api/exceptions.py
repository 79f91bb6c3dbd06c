from enum import Enum
from typing import Any, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .core.messages import get_message


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    EXPIRED = "expired"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    THROTTLED = "throttled"
    UPSTREAM = "upstream"


STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.EXPIRED: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.THROTTLED: 429,
    ErrorKind.UPSTREAM: 500,
}


class ServiceError(Exception):
    """Domain failure raised by the application services.

    ``code`` is the stable machine-readable identifier, ``message`` the
    human text. Throttled errors also carry ``minutes_left``.
    """

    def __init__(self, kind: ErrorKind, code: str, message: Optional[str] = None,
                 minutes_left: Optional[int] = None, **params: Any):
        if minutes_left is not None:
            params["minutes_left"] = minutes_left
        self.kind = kind
        self.code = code
        self.message = message or get_message(code, **params)
        self.minutes_left = minutes_left
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def to_payload(self) -> dict:
        payload = create_error_response(self.message, self.code)
        if self.minutes_left is not None:
            payload["minutes_left"] = self.minutes_left
        return payload


def create_error_response(message: str, error_code: Optional[str] = None) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "message": message,
        "data": None,
        "error": error_code or message,
    }


def create_success_response(data: Any = None, message: Optional[str] = None) -> dict:
    """Create a standardized success response"""
    return {
        "success": True,
        "message": message,
        "data": data,
        "error": None,
    }


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    # Convert 403 from HTTPBearer to 401 for missing authentication
    if exc.status_code == 403 and "Not authenticated" in str(exc.detail):
        return JSONResponse(
            status_code=401,
            content=create_error_response(get_message("AUTHENTICATION_REQUIRED"), "AUTHENTICATION_REQUIRED"),
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(str(exc.detail)),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    payload = create_error_response(get_message("VALIDATION_FAILED"), "VALIDATION_FAILED")
    payload["details"] = [
        {"field": ".".join(str(p) for p in err.get("loc", []) if p != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content=payload)
