"""Deterministic sanitizers for free-form negotiation text."""

from __future__ import annotations

MESSAGE_MAX_LEN = 10000
NOTE_MAX_LEN = 2000


def sanitize_text(value: str | None, max_len: int = 20000) -> str:
    """Sanitize free-form content before persistence."""
    if value is None:
        return ""
    cleaned = str(value).replace("\x00", "").strip()
    cleaned = cleaned[:max_len]
    return cleaned


def sanitize_optional(value: str | None, max_len: int = MESSAGE_MAX_LEN) -> str | None:
    """Sanitize text but keep absent or blank input as None."""
    cleaned = sanitize_text(value, max_len=max_len)
    return cleaned or None
