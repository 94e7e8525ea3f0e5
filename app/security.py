# app/security.py
"""Security dependencies resolving the calling user and enforcing roles."""
from __future__ import annotations

from typing import Callable, Set

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.db import get_db
from app.models.api_key import ApiKey
from app.models.user import User, UserRole
from app.utils.apikey import find_valid_key
from app.utils.errors import error_response
from app.utils.time import utcnow


def _extract_key(
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> str | None:
    """Read the key from ``Authorization: Bearer ...`` or ``X-API-Key``."""
    if x_api_key:
        return x_api_key.strip()
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip()
    return None


def require_api_key(
    db: Session = Depends(get_db),
    token: str | None = Depends(_extract_key),
) -> ApiKey:
    """Validate API key tokens and return the corresponding row."""
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("NO_API_KEY", "API key required."),
        )

    key = find_valid_key(db, token)
    if key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("UNAUTHORIZED", "Invalid or expired API key"),
        )

    key.last_used_at = utcnow()
    db.commit()
    return key


def get_current_user(
    key: ApiKey = Depends(require_api_key),
    db: Session = Depends(get_db),
) -> User:
    """Return the active user owning the presented API key."""

    user = db.get(User, key.user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("UNAUTHORIZED", "User disabled or unknown."),
        )
    return user


def require_role(allowed: Set[UserRole]) -> Callable:
    """Enforce that the calling user holds one of the allowed roles."""

    if not allowed:
        raise RuntimeError("require_role needs a non-empty set of UserRole")

    def _dep(user: User = Depends(get_current_user)) -> User:
        if user.role in allowed:
            return user
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=error_response(
                "ADMIN_REQUIRED" if allowed == {UserRole.admin} else "INSUFFICIENT_ROLE",
                f"Requires one of: {sorted(role.value for role in allowed)}",
            ),
        )

    return _dep


__all__ = ["require_api_key", "get_current_user", "require_role"]
