"""
Bearer JWT authentication. The token's `sub` is the user identity; admins are
the identities listed in settings.admin_user_ids.
"""
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from animeleak.core.config import settings

ACCESS_TOKEN_TTL_HOURS = 24

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, expires_hours: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(hours=max(int(expires_hours or ACCESS_TOKEN_TTL_HOURS), 1))
    claims = {"sub": user_id, "iat": int(now.timestamp()), "exp": int(expires_at.timestamp())}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise ValueError("Invalid or expired token") from exc
    subject = str(payload.get("sub", "")).strip()
    if not subject:
        raise ValueError("Token missing subject")
    return payload


def _user_from_payload(payload: dict[str, Any]) -> dict[str, Any]:
    user_id = str(payload["sub"]).strip()
    return {"user_id": user_id, "is_admin": user_id in settings.admin_user_ids_set}


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict[str, Any]:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = decode_access_token(credentials.credentials)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _user_from_payload(payload)


def require_admin(current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    if not current_user["is_admin"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user
