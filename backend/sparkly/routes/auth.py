# sparkly/routes/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from sparkly.auth.current_session import CurrentSession
from sparkly.core.database import get_db
from sparkly.core.errors import AuthFailure, RegistrationError
from sparkly.dependencies.auth import client_ip, require_session
from sparkly.schemas.auth import (
    LoginIn,
    LogoutIn,
    RefreshIn,
    RegisterIn,
    SessionOut,
    TokenOut,
)
from sparkly.services import sessions
from sparkly.services.sessions import SessionTokens
from sparkly.services.users import register_user

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

_REGISTRATION_STATUS = {
    "EMAIL_TAKEN": status.HTTP_409_CONFLICT,
    "USERNAME_TAKEN": status.HTTP_409_CONFLICT,
}


def _token_out(tokens: SessionTokens) -> dict:
    return {
        "access_token": tokens.access_token,
        "refresh_token": tokens.refresh_token,
        "token_type": "bearer",
        "access_expires_at": tokens.access_expires_at,
        "refresh_expires_at": tokens.refresh_expires_at,
    }


@router.post("/register", status_code=status.HTTP_204_NO_CONTENT)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    try:
        register_user(db, username=payload.username, email=payload.email, password=payload.password)
    except RegistrationError as e:
        detail: dict = {"message": e.message, "details": {"code": e.code}}
        if e.violations:
            detail["details"]["violations"] = e.violations
        raise HTTPException(status_code=_REGISTRATION_STATUS.get(e.code, 400), detail=detail)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    result = sessions.login(db, payload.identifier, payload.password)
    if isinstance(result, AuthFailure):
        raise HTTPException(status_code=401, detail=result.message)
    return _token_out(result)


@router.post("/refresh", response_model=TokenOut)
def refresh(payload: RefreshIn, request: Request, db: Session = Depends(get_db)):
    raw = (payload.refresh_token or "").strip()
    if not raw:
        raise HTTPException(status_code=400, detail="Refresh token is required.")

    result = sessions.refresh(db, raw, origin_ip=client_ip(request))
    if isinstance(result, AuthFailure):
        raise HTTPException(status_code=401, detail=result.message)
    return _token_out(result)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    payload: LogoutIn,
    request: Request,
    db: Session = Depends(get_db),
    _session: CurrentSession = Depends(require_session),
):
    sessions.logout(db, payload.refresh_token, origin_ip=client_ip(request))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=SessionOut)
def me(session: CurrentSession = Depends(require_session)):
    return session.to_dict()
