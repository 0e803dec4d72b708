# sparkly/dependencies/auth.py
from __future__ import annotations

import logging
from typing import Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError

from sparkly.auth.current_session import CurrentSession
from sparkly.core.security import decode_access_token

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_session(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentSession:
    """
    Boundary verification of Authorization: Bearer <token>.
    Missing header -> unauthenticated session; bad token -> 401.
    """
    if not creds or creds.scheme.lower() != "bearer":
        return CurrentSession.unauthenticated()

    try:
        claims = decode_access_token(creds.credentials)
    except ExpiredSignatureError:
        logger.info("Access token expired")
        raise _unauthorized("Invalid or expired token")
    except JWTError:
        logger.warning("Rejected invalid access token")
        raise _unauthorized("Invalid or expired token")

    session = CurrentSession.from_claims(claims)
    if not session.is_authenticated:
        raise _unauthorized("Invalid or expired token")
    return session


def require_session(session: CurrentSession = Depends(get_current_session)) -> CurrentSession:
    if not session.is_authenticated:
        raise _unauthorized("Missing Authorization header")
    return session


def require_role(role: str) -> Callable[..., CurrentSession]:
    def _dependency(session: CurrentSession = Depends(require_session)) -> CurrentSession:
        if not session.is_in_role(role):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return session

    return _dependency


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else None
