from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from fastapi import HTTPException, status
from jose import JWTError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from salesdesk.auth.schemas import LoginRequest, LoginResponse, TokenPair
from salesdesk.core.auth import create_token_pair, decode_token, hash_secret, verify_secret
from salesdesk.security.context import Actor
from salesdesk.users.models import User
from salesdesk.users.schemas import UserRead

logger = logging.getLogger("salesdesk.auth")


@dataclass(slots=True)
class AuthService:
    def login(self, session: Session, payload: LoginRequest) -> LoginResponse:
        user = session.scalar(select(User).where(func.lower(User.email) == str(payload.email).lower()))
        if user is None or not verify_secret(payload.password, user.password_hash):
            logger.info("auth.login_failed")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
        if not user.is_active:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is deactivated")

        access_token, refresh_token = self._issue(session, user)
        logger.info("auth.login", extra={"user_id": str(user.id)})
        return LoginResponse(
            user=UserRead.model_validate(user),
            access_token=access_token,
            refresh_token=refresh_token,
        )

    def refresh(self, session: Session, refresh_token: str) -> TokenPair:
        try:
            claims = decode_token(refresh_token, refresh=True)
            user_id = uuid.UUID(str(claims.get("sub")))
        except (JWTError, ValueError):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access denied")

        user = session.get(User, user_id)
        if user is None or not user.is_active or not verify_secret(refresh_token, user.refresh_token_hash):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access denied")

        access_token, new_refresh_token = self._issue(session, user)
        return TokenPair(access_token=access_token, refresh_token=new_refresh_token)

    def logout(self, session: Session, actor: Actor) -> None:
        user = session.get(User, actor.user_id)
        if user is None:
            return
        user.refresh_token_hash = None
        session.commit()
        logger.info("auth.logout", extra={"user_id": str(user.id)})

    def me(self, session: Session, actor: Actor) -> UserRead:
        user = session.get(User, actor.user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")
        return UserRead.model_validate(user)

    @staticmethod
    def _issue(session: Session, user: User) -> tuple[str, str]:
        access_token, refresh_token = create_token_pair(user)
        user.refresh_token_hash = hash_secret(refresh_token)
        session.commit()
        session.refresh(user)
        return access_token, refresh_token


auth_service = AuthService()
