"""
Caller identity for the media routes

Authentication happens upstream: the gateway verifies the bearer token and
forwards the account id in the X-User-ID header. This service trusts it.
"""

from fastapi import Header, HTTPException, status
from typing import Optional


async def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return x_user_id.strip()
