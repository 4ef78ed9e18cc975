"""Caller identity resolved from bearer tokens."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from quoteflow.auth.jwt import decode_jwt
from quoteflow.core.config import Config, get_config
from quoteflow.core.exceptions import AuthenticationError
from quoteflow.models.enums import UserRole

_KNOWN_ROLES = frozenset(role.value for role in UserRole)


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    role: str
    claims: dict[str, Any] = field(default_factory=dict, repr=False)


def get_settings() -> Config:
    return get_config()


def get_current_user(token: str, settings: Config | None = None) -> CurrentUser:
    """Resolve the caller from an access token.

    Refresh tokens, tokens without a subject, and roles outside
    admin/initiator/consultant are rejected with AuthenticationError.
    """
    cfg = settings or get_settings()
    claims = decode_jwt(token=token, secret=cfg.JWT_SECRET)
    if claims.get("token_use", "access") != "access":
        raise AuthenticationError("Access token required.")

    user_id = str(claims.get("sub") or "").strip()
    role = str(claims.get("role") or "").strip().lower()
    if not user_id:
        raise AuthenticationError("Token has no subject.")
    if role not in _KNOWN_ROLES:
        raise AuthenticationError(f"Unknown role in token: {role or '<missing>'}")
    return CurrentUser(user_id=user_id, role=role, claims=claims)
