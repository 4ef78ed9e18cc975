"""Shared authorization and error mapping helpers for API v1 route modules."""

from __future__ import annotations

from fastapi import HTTPException

from quoteflow.auth.rbac import require_scopes
from quoteflow.core.config import get_config
from quoteflow.core.dependencies import CurrentUser, get_current_user
from quoteflow.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    QuoteFlowError,
    ValidationError,
)
from quoteflow.schemas.common import ErrorEnvelope


def _extract_bearer_token(authorization: str | None) -> str:
    if authorization is None or not authorization.strip():
        raise AuthenticationError("Authorization header is required.")
    parts = authorization.strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError("Authorization header must use Bearer token.")
    return parts[1].strip()


def authorize(authorization: str | None, scopes: list[str]) -> CurrentUser:
    token = _extract_bearer_token(authorization)
    user = get_current_user(token=token, settings=get_config())
    require_scopes(user.role, scopes)
    return user


def map_auth_error(exc: Exception) -> tuple[int, str]:
    if isinstance(exc, AuthenticationError):
        return 401, str(exc)
    if isinstance(exc, AuthorizationError):
        return 403, str(exc)
    return 401, "Unauthorized."


def authorize_or_raise(authorization: str | None, scopes: list[str]) -> CurrentUser:
    try:
        return authorize(authorization=authorization, scopes=scopes)
    except (AuthenticationError, AuthorizationError) as exc:
        code, detail = map_auth_error(exc)
        raise HTTPException(status_code=code, detail=detail) from exc


_STATUS_BY_ERROR: tuple[tuple[type[QuoteFlowError], int], ...] = (
    (ValidationError, 422),
    (NotFoundError, 404),
    (ConflictError, 409),
    (AuthenticationError, 401),
    (AuthorizationError, 403),
)


def to_http_exception(exc: QuoteFlowError) -> HTTPException:
    """Translate a domain error into an HTTPException with a structured detail."""
    status_code = next((code for kind, code in _STATUS_BY_ERROR if isinstance(exc, kind)), 500)
    envelope = ErrorEnvelope(
        error_code=exc.error_code,
        detail=str(exc),
        existing_session_id=getattr(exc, "existing_session_id", None),
    )
    return HTTPException(status_code=status_code, detail=envelope.model_dump(exclude_none=True))
