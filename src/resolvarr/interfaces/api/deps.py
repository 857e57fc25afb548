"""Shared request dependencies."""

from __future__ import annotations

from fastapi import Header

ANONYMOUS_USER = "anonymous"


def user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity from ``X-User-Id`` (authentication happens upstream)."""
    return (x_user_id or "").strip() or ANONYMOUS_USER
