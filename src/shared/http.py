"""HTTP mapping for the error taxonomy and the admin-session check."""

import hmac

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from shared.errors import (
    AmountMismatchError,
    BotStoreError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    TransientError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

_STATUS_CODES: list[tuple[type[BotStoreError], int]] = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (InvalidTransitionError, 409),
    (ConflictError, 409),
    (AmountMismatchError, 422),
    (TransientError, 503),
]

TRY_AGAIN_MESSAGE = "Temporary problem, please try again"


def status_code_for(exc: BotStoreError) -> int:
    for error_cls, status_code in _STATUS_CODES:
        if isinstance(exc, error_cls):
            return status_code
    return 500


async def _handle_botstore_error(request: Request, exc: BotStoreError) -> JSONResponse:
    status_code = status_code_for(exc)
    if isinstance(exc, TransientError):
        logger.warning("Transient failure, client asked to retry", path=request.url.path, message=exc.message)
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.code, "message": TRY_AGAIN_MESSAGE},
        )
    if status_code >= 500:
        logger.error("Unmapped domain error", path=request.url.path, error=exc.code, message=exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def install_error_handlers(app: FastAPI) -> None:
    """Register the taxonomy-to-status mapping on ``app``."""
    app.add_exception_handler(BotStoreError, _handle_botstore_error)


def require_admin(request: Request) -> str:
    """FastAPI dependency: reject requests without a valid admin session.

    Session issuance lives elsewhere; this only checks the cookie at the door.
    When ``admin_session_token`` is configured the cookie must match it,
    otherwise any non-empty session cookie is accepted.
    """
    from container import get_container

    settings = get_container().settings
    session = request.cookies.get(settings.admin_session_cookie)
    if not is_admin_session(session, settings.admin_session_token):
        raise HTTPException(status_code=401, detail="Admin session required")
    return session


def is_admin_session(session: str | None, expected_token: str | None) -> bool:
    if not expected_token:
        logger.warning("Admin session refused, no admin token configured")
        return False
    if not session:
        return False
    return hmac.compare_digest(session.encode(), expected_token.encode())
