from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from salesdesk.auth.schemas import LoginRequest, LoginResponse, RefreshRequest, TokenPair
from salesdesk.auth.service import auth_service
from salesdesk.core.auth import get_current_actor
from salesdesk.core.database import get_db
from salesdesk.security.context import Actor
from salesdesk.users.schemas import UserRead


router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)) -> LoginResponse:
    return auth_service.login(db, payload)


@router.post("/refresh", response_model=TokenPair)
def refresh(payload: RefreshRequest, db: Session = Depends(get_db)) -> TokenPair:
    return auth_service.refresh(db, payload.refresh_token)


@router.post("/logout", status_code=status.HTTP_200_OK)
def logout(db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)) -> dict[str, str]:
    auth_service.logout(db, actor)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserRead)
def me(db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)) -> UserRead:
    return auth_service.me(db, actor)
