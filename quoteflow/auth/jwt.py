"""HS256 bearer tokens identifying initiators, consultants and admins."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from quoteflow.core.exceptions import AuthenticationError

ALGORITHM = "HS256"
ISSUER = "quoteflow"
# Tolerated clock drift between the issuing service and this API.
CLOCK_SKEW_SECONDS = 30


def _segment(raw: dict[str, Any]) -> str:
    data = json.dumps(raw, separators=(",", ":"), sort_keys=True).encode("utf-8")
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _parse_segment(segment: str, label: str) -> dict[str, Any]:
    try:
        padded = segment + "=" * (-len(segment) % 4)
        parsed = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (ValueError, UnicodeError) as exc:
        raise AuthenticationError(f"Invalid token {label}.") from exc
    if not isinstance(parsed, dict):
        raise AuthenticationError(f"Invalid token {label}.")
    return parsed


def _signature(signing_input: str, secret: str) -> str:
    if not secret:
        raise AuthenticationError("JWT secret must be configured.")
    mac = hmac.new(secret.encode("utf-8"), signing_input.encode("ascii"), hashlib.sha256)
    return base64.urlsafe_b64encode(mac.digest()).decode("ascii").rstrip("=")


def _now() -> int:
    return int(datetime.now(timezone.utc).timestamp())


def encode_jwt(payload: dict[str, Any], secret: str, ttl: timedelta) -> str:
    """Sign ``payload``; iat, exp, iss and jti are filled in unless supplied."""
    issued_at = _now()
    claims = {
        "iat": issued_at,
        "exp": issued_at + int(ttl.total_seconds()),
        "iss": ISSUER,
        "jti": uuid.uuid4().hex,
        **payload,
    }
    signing_input = f"{_segment({'alg': ALGORITHM, 'typ': 'JWT'})}.{_segment(claims)}"
    return f"{signing_input}.{_signature(signing_input, secret)}"


def decode_jwt(token: str, secret: str, verify_exp: bool = True) -> dict[str, Any]:
    """Return the claims of a token signed with ``secret``.

    Raises AuthenticationError for a malformed token, a non-HS256 header,
    a bad signature, a foreign issuer, or (with ``verify_exp``) an expired
    or not-yet-valid token.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise AuthenticationError("Invalid token format.")
    header_segment, payload_segment, signature_segment = parts

    if _parse_segment(header_segment, "header").get("alg") != ALGORITHM:
        raise AuthenticationError("Unsupported token algorithm.")
    expected = _signature(f"{header_segment}.{payload_segment}", secret)
    if not hmac.compare_digest(expected, signature_segment):
        raise AuthenticationError("Invalid token signature.")

    claims = _parse_segment(payload_segment, "payload")
    if claims.get("iss", ISSUER) != ISSUER:
        raise AuthenticationError("Token issued by an unknown issuer.")
    if not verify_exp:
        return claims

    if "exp" not in claims:
        raise AuthenticationError("Token is missing exp claim.")
    now = _now()
    try:
        expires_at = int(claims["exp"])
        not_before = int(claims.get("nbf", 0))
    except (TypeError, ValueError) as exc:
        raise AuthenticationError("Invalid token time claims.") from exc
    if expires_at + CLOCK_SKEW_SECONDS < now:
        raise AuthenticationError("Token has expired.")
    if not_before - CLOCK_SKEW_SECONDS > now:
        raise AuthenticationError("Token is not valid yet.")
    return claims


def create_access_token(user_id: str, role: str, secret: str, ttl_minutes: int = 15) -> str:
    """Access token for a negotiation participant; ``role`` picks its scopes."""
    return encode_jwt(
        {"sub": str(user_id), "role": role, "token_use": "access"},
        secret=secret,
        ttl=timedelta(minutes=ttl_minutes),
    )
