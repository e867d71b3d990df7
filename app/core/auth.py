# app/core/auth.py

from dataclasses import dataclass

from fastapi import Depends, HTTPException, status

from app.core.jwt import decode_access_token
from app.core.oauth2 import oauth2_scheme


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    business_id: int
    is_admin: bool = False


def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    payload = decode_access_token(token)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    user_id = payload.get("sub")
    business_id = payload.get("business_id")

    if user_id is None or business_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    try:
        business_id = int(business_id)
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    return CurrentUser(
        user_id=str(user_id),
        business_id=business_id,
        is_admin=bool(payload.get("is_admin", False)),
    )

def get_admin_user(
    current_user: CurrentUser = Depends(get_current_user),
):
    # Ensure the user has admin privileges
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user
