"""Scopes granted to each negotiation role.

Scopes only decide which endpoints a role may call. Whether the caller owns
the project or is the proposal's consultant is checked by the services.
"""

from __future__ import annotations

from collections.abc import Iterable

from quoteflow.core.exceptions import AuthorizationError
from quoteflow.models.enums import UserRole

WILDCARD = "*"

_PARTICIPANT = frozenset({"negotiations.read", "negotiations.comment", "proposals.read"})

ROLE_SCOPES: dict[str, frozenset[str]] = {
    UserRole.ADMIN.value: frozenset({WILDCARD}),
    UserRole.INITIATOR.value: _PARTICIPANT
    | {"negotiations.create", "negotiations.cancel", "bulk.create", "bulk.read"},
    UserRole.CONSULTANT.value: _PARTICIPANT | {"negotiations.respond"},
}


def get_scopes_for_role(role: str) -> frozenset[str]:
    return ROLE_SCOPES.get(role.lower(), frozenset())


def _missing(role: str, required_scopes: Iterable[str]) -> list[str]:
    granted = get_scopes_for_role(role)
    if WILDCARD in granted:
        return []
    return sorted(set(required_scopes) - granted)


def has_scopes(role: str, required_scopes: Iterable[str]) -> bool:
    return not _missing(role, required_scopes)


def require_scopes(role: str, required_scopes: Iterable[str]) -> None:
    missing = _missing(role, required_scopes)
    if missing:
        raise AuthorizationError(f"Role '{role}' lacks scopes: {', '.join(missing)}")
