import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import Request
from fastapi import status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mailrules.config import get_settings
from mailrules.constants import API_PREFIX
from mailrules.database import initialize_database
from mailrules.errors import AuthenticationError
from mailrules.errors import JobCreationError
from mailrules.errors import JobNotFound
from mailrules.errors import MailRulesError
from mailrules.errors import NoProvidersConnected
from mailrules.errors import ValidationError
from mailrules.routers.cleanup import router as cleanup_router
from mailrules.routers.sync_jobs import router as sync_jobs_router
from mailrules.routers.system import router as system_router
from mailrules.utils.log import configure_level
from mailrules.utils.log import get_logger

_settings = get_settings()

# --------------------------------------------------------------------------
# Logging: LOG_LEVEL drives both the root handler and the structlog events.
# --------------------------------------------------------------------------
_log_level = configure_level(_settings.log_level)
logging.basicConfig(level=_log_level, format="%(message)s", handlers=[logging.StreamHandler()])

logger = get_logger(component="app")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    initialize_database()
    logger.info("database-initialized")
    yield


app = FastAPI(title="mailrules", lifespan=lifespan)

# ------------------------------------------------------------------
# CORS – open wildcard in dev, restricted unless ALLOWED_CORS_ORIGINS
# lists the frontend origins.
# ------------------------------------------------------------------

if _settings.auth_disabled:
    cors_origins = ["*"]
else:
    cors_origins = _settings.cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

# ---------------------------------------------------------------------------
# Error mapping – every error body is {"error": message}
# ---------------------------------------------------------------------------

_STATUS_BY_ERROR: list[tuple[type[MailRulesError], int]] = [
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NoProvidersConnected, status.HTTP_400_BAD_REQUEST),
    (JobNotFound, status.HTTP_404_NOT_FOUND),
    (JobCreationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@app.exception_handler(MailRulesError)
async def handle_domain_error(request: Request, exc: MailRulesError):
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            if status_code >= 500:
                logger.error("request-failed", path=request.url.path, error=str(exc))
            return _error_response(status_code, str(exc))

    logger.error("unhandled-domain-error", path=request.url.path, error_type=type(exc).__name__, error=str(exc))
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request body"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    return _error_response(status.HTTP_400_BAD_REQUEST, message)


@app.exception_handler(Exception)
async def handle_unexpected(request: Request, exc: Exception):
    logger.error("unhandled-exception", path=request.url.path, error_type=type(exc).__name__, error=str(exc))
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


app.include_router(cleanup_router, prefix=API_PREFIX)
app.include_router(sync_jobs_router, prefix=API_PREFIX)
app.include_router(system_router, prefix=API_PREFIX)
