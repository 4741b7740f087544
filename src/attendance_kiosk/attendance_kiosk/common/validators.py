from __future__ import annotations

from ..core.exceptions import AccessDenied


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise AccessDenied(f"{field_name} is required")
    return value.strip()


def clean_token(raw: bytes | str) -> str:
    """Turn one reader frame into a tag token (decoded, whitespace-trimmed)."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    return raw.strip()
