from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import settings

_ALGO = "HS256"
_bearer = HTTPBearer(auto_error=False)


def create_token(owner_id: str, ttl_minutes: int | None = None) -> str:
    ttl = settings.jwt_ttl_minutes if ttl_minutes is None else ttl_minutes
    exp = datetime.now(timezone.utc) + timedelta(minutes=ttl)
    payload = {"sub": owner_id, "exp": exp}
    return jwt.encode(payload, settings.jwt_secret, algorithm=_ALGO)


def verify_token(token: str) -> str:
    payload = jwt.decode(token, settings.jwt_secret, algorithms=[_ALGO])
    return payload["sub"]


def current_owner(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> str:
    """Owner id from the bearer token; 401 when missing or invalid."""
    if creds is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Unauthorized")
    try:
        return verify_token(creds.credentials)
    except (jwt.PyJWTError, KeyError) as exc:
        raise HTTPException(
            status.HTTP_401_UNAUTHORIZED, "Failed to authenticate user"
        ) from exc
