from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from salesdesk.context import get_correlation_id
from salesdesk.core.config import get_settings
from salesdesk.core.database import get_db
from salesdesk.security.context import Actor
from salesdesk.security.scope import deny
from salesdesk.users.models import User


def hash_secret(value: str) -> str:
    return generate_password_hash(value)


def verify_secret(value: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    return check_password_hash(hashed, value)


def _encode(claims: dict[str, Any], secret: str, expires_minutes: int) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        **claims,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_minutes)).timestamp()),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, secret, algorithm=settings.jwt_algorithm)


def create_token_pair(user: User) -> tuple[str, str]:
    settings = get_settings()
    claims = {"sub": str(user.id), "email": user.email, "role": user.role}
    access_token = _encode(claims, settings.jwt_secret, settings.access_token_expire_minutes)
    refresh_token = _encode(claims, settings.jwt_refresh_secret, settings.refresh_token_expire_minutes)
    return access_token, refresh_token


def decode_token(token: str, *, refresh: bool = False) -> dict[str, Any]:
    settings = get_settings()
    secret = settings.jwt_refresh_secret if refresh else settings.jwt_secret
    return jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])


def _bearer_token(request: Request) -> str:
    auth_header = request.headers.get("authorization", "")
    return auth_header.replace("Bearer ", "") if auth_header.startswith("Bearer ") else ""


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def build_actor(session: Session, user: User) -> Actor:
    team_user_ids = list(session.scalars(select(User.id).where(User.manager_id == user.id)).all())
    return Actor(
        user_id=user.id,
        role=user.role,
        email=user.email,
        branch_id=user.branch_id,
        manager_id=user.manager_id,
        team_user_ids=team_user_ids,
        correlation_id=get_correlation_id(),
    )


def get_current_actor(request: Request, db: Session = Depends(get_db)) -> Actor:
    token = _bearer_token(request)
    if not token:
        raise _unauthorized("not authenticated")

    try:
        payload = decode_token(token)
        user_id = uuid.UUID(str(payload.get("sub")))
    except (JWTError, ValueError):
        raise _unauthorized("invalid token")

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise _unauthorized("user not found or inactive")
    return build_actor(db, user)


def require_roles(*roles: str) -> Callable[..., Actor]:
    allowed = set(roles)

    def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed:
            deny("route", "role", f"requires role: {' or '.join(sorted(allowed))}")
        return actor

    return dependency
