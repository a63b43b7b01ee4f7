"""Caller identity for recommendation routes.

Authentication happens upstream; the gateway forwards the verified user id
in the X-User-ID header.
"""

from typing import Optional

from fastapi import Header, HTTPException

from showroom.errors import AuthenticationError


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Return the authenticated user id or reject the request with 401."""
    if not x_user_id or not x_user_id.strip():
        error = AuthenticationError("User authentication required")
        raise HTTPException(status_code=error.status_code, detail=error.message)
    return x_user_id.strip()
