import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, Response, Request, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import uvicorn

from socialmedia.config import settings
from socialmedia.errors import (
    AuthorizationError,
    BusinessRuleError,
    ConflictError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from socialmedia.storage import init_db, check_db_health, get_db, AccountStore, MessageStore
from socialmedia.services import AccountService, MessageService
from socialmedia.logging_utils import setup_logging, RequestLoggingMiddleware, log_operation_data
from socialmedia.metrics import record_operation_outcome, get_metrics, get_metrics_content_type
from socialmedia.schemas import Account, HealthResponse, Message, MessageTextUpdate


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: Initialize database and create tables
    """
    init_db()
    yield


app = FastAPI(
    title="Social Media API",
    description="Accounts and short text messages",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)


# =============================================================================
# Dependencies
# =============================================================================

def get_account_service(db: Session = Depends(get_db)) -> AccountService:
    return AccountService(AccountStore(db))


def get_message_service(
    db: Session = Depends(get_db),
    account_service: AccountService = Depends(get_account_service),
) -> MessageService:
    # get_db is cached per request, so both services share one session
    return MessageService(MessageStore(db), account_service)


def finish_operation(request: Request, operation: str, result: str, account_id: int = None) -> None:
    """Record the outcome of a route in metrics and in the request log."""
    record_operation_outcome(operation, result)
    log_operation_data(request=request, operation=operation, result=result, account_id=account_id)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Storage failures surfaced through a service: opaque 500."""
    logger.error(f"Unhandled service failure: {exc} (cause: {exc.__cause__!r})")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


@app.exception_handler(BusinessRuleError)
async def business_rule_error_handler(request: Request, exc: BusinessRuleError) -> JSONResponse:
    """Rule violations a route did not translate itself: 400 with the reason."""
    logger.info(f"Request rejected: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)},
    )


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """Liveness probe - always returns 200 once the app is running."""
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
async def health_ready(response: Response) -> HealthResponse:
    """
    Readiness probe - returns 200 only if the DB is reachable and both
    tables exist. Otherwise returns 503 (Service Unavailable).
    """
    if not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Database not reachable or schema not applied"
        )

    return HealthResponse(status="ready")


# =============================================================================
# Account Routes
# =============================================================================

@app.post("/register", response_model=Account)
def register(
    request: Request,
    candidate: Account,
    account_service: AccountService = Depends(get_account_service),
) -> Account:
    """
    Register a new account.

    400 when the username is blank or taken, or the password is shorter
    than 4 characters.
    """
    try:
        account = account_service.create_account(candidate)
    except (ValidationError, ConflictError) as e:
        logger.info(f"Registration rejected: {e}")
        finish_operation(request, "register", "rejected")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    finish_operation(request, "register", "ok", account_id=account.account_id)
    return account


@app.post("/login", response_model=Account)
def login(
    request: Request,
    candidate: Account,
    account_service: AccountService = Depends(get_account_service),
) -> Account:
    """Check credentials. 401 when they don't match or the lookup fails."""
    try:
        account = account_service.validate_login(candidate)
    except ServiceError as e:
        logger.error(f"Login failed: {e}")
        account = None

    if account is None:
        finish_operation(request, "login", "unauthorized")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid credentials")

    finish_operation(request, "login", "ok", account_id=account.account_id)
    return account


@app.get("/accounts/{account_id}/messages", response_model=List[Message])
def list_account_messages(
    account_id: int,
    message_service: MessageService = Depends(get_message_service),
) -> List[Message]:
    """All messages posted by one account (empty list when none)."""
    return message_service.get_messages_by_owner_id(account_id)


# =============================================================================
# Message Routes
# =============================================================================

@app.post("/messages", response_model=Message)
def create_message(
    request: Request,
    candidate: Message,
    account_service: AccountService = Depends(get_account_service),
    message_service: MessageService = Depends(get_message_service),
) -> Message:
    """
    Post a message as the account in posted_by.

    400 when the account does not exist or the text is empty or longer
    than 254 characters.
    """
    owner = account_service.get_account_by_id(candidate.posted_by)
    try:
        message = message_service.create_message(candidate, owner)
    except (ValidationError, AuthorizationError) as e:
        logger.info(f"Message rejected: {e}")
        finish_operation(request, "create_message", "rejected", account_id=candidate.posted_by)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    finish_operation(request, "create_message", "ok", account_id=candidate.posted_by)
    return message


@app.get("/messages", response_model=List[Message])
def list_messages(
    message_service: MessageService = Depends(get_message_service),
) -> List[Message]:
    return message_service.get_all_messages()


@app.get("/messages/{message_id}", response_model=Message)
def get_message(
    message_id: int,
    message_service: MessageService = Depends(get_message_service),
):
    """The message, or 200 with an empty body when it does not exist."""
    try:
        return message_service.get_message_by_id(message_id)
    except NotFoundError:
        return Response(status_code=status.HTTP_200_OK)


@app.delete("/messages/{message_id}", response_model=Message)
def delete_message(
    request: Request,
    message_id: int,
    message_service: MessageService = Depends(get_message_service),
):
    """
    Delete a message and return it.

    Deleting a message that does not exist is not an error: 200 with an
    empty body.
    """
    try:
        message = message_service.get_message_by_id(message_id)
        message_service.delete_message(message)
    except NotFoundError:
        finish_operation(request, "delete_message", "not_found")
        return Response(status_code=status.HTTP_200_OK)

    finish_operation(request, "delete_message", "ok", account_id=message.posted_by)
    return message


@app.patch("/messages/{message_id}", response_model=Message)
def update_message(
    request: Request,
    message_id: int,
    patch: MessageTextUpdate,
    message_service: MessageService = Depends(get_message_service),
) -> Message:
    """Replace the text of a message. 400 when it is missing or the text is invalid."""
    try:
        message = message_service.update_message(
            Message(message_id=message_id, message_text=patch.message_text)
        )
    except (NotFoundError, ValidationError) as e:
        logger.info(f"Message update rejected: {e}")
        finish_operation(request, "update_message", "rejected")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    finish_operation(request, "update_message", "ok", account_id=message.posted_by)
    return message


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus-style metrics."""
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )


def run() -> None:
    """Serve the app with uvicorn (console script: social-media-api)."""
    uvicorn.run(app, host="0.0.0.0", port=8000, log_config=None)
