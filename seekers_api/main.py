import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware

# Load environment variables as early as possible
load_dotenv()

from .core.clock import utcnow
from .core.config import settings
from .database import create_db_and_tables
from .exceptions import (
    ServiceError,
    http_exception_handler,
    service_error_handler,
    validation_exception_handler,
)
from .middleware import (
    ErrorHandlingMiddleware,
    LoggingMiddleware,
    RateLimitMiddleware,
    RequestSizeLimitMiddleware,
    SecurityMiddleware,
)
from .realtime.connection_manager import manager
from .routers import auth_router, chat_router, chat_socket

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format=settings.LOG_FORMAT,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME}...")
    app.state.db_init_ok = True
    app.state.db_init_error = None
    try:
        create_db_and_tables()
        logger.info("Database initialized successfully")
    except Exception as e:
        # Keep serving; /health reports the failure
        app.state.db_init_ok = False
        app.state.db_init_error = str(e)
        logger.exception("Database initialization failed")
    yield
    logger.info(f"Shutting down {settings.APP_NAME}...")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    docs_url=("/docs" if settings.DOCS_ENABLED else None),
    redoc_url=("/redoc" if settings.DOCS_ENABLED else None),
    openapi_url=("/openapi.json" if settings.DOCS_ENABLED else None),
)

app.add_exception_handler(ServiceError, service_error_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(SecurityMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=settings.GZIP_MIN_SIZE)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.allowed_methods_list,
    allow_headers=settings.allowed_headers_list,
)

app.include_router(auth_router.router)
app.include_router(chat_router.router)
app.include_router(chat_socket.router)


@app.get("/health")
def health_check():
    return {
        "status": "healthy" if getattr(app.state, "db_init_ok", True) else "degraded",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": utcnow().isoformat(),
        "database": {
            "ok": getattr(app.state, "db_init_ok", True),
            "error": getattr(app.state, "db_init_error", None),
        },
        "realtime": {"connections": len(manager.active_connections)},
        "email": {"configured": bool(settings.BREVO_API_KEY)},
    }
