from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from salesdesk.core.auth import get_current_actor, require_roles
from salesdesk.core.database import get_db
from salesdesk.leaderboard.schemas import LeaderboardEntry, ManagerStanding, SelfStanding
from salesdesk.leaderboard.service import Period, leaderboard_service
from salesdesk.security.context import MANAGER, SUPER_ADMIN, Actor


router = APIRouter(prefix="/api/leaderboard", tags=["leaderboard"])


def get_period(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
) -> Period:
    return Period.between(start_date, end_date)


@router.get("/managers", response_model=list[ManagerStanding])
def managers_leaderboard(
    period: Period = Depends(get_period),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[ManagerStanding]:
    return leaderboard_service.managers_board(db, period)


@router.get("/global", response_model=list[LeaderboardEntry])
def global_leaderboard(
    period: Period = Depends(get_period),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(SUPER_ADMIN, MANAGER)),
) -> list[LeaderboardEntry]:
    return leaderboard_service.global_board(db, period)


@router.get("/team", response_model=list[LeaderboardEntry])
def team_leaderboard(
    period: Period = Depends(get_period),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(MANAGER)),
) -> list[LeaderboardEntry]:
    return leaderboard_service.team_board(db, actor, period)


@router.get("/self", response_model=SelfStanding)
def self_standing(
    period: Period = Depends(get_period),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> SelfStanding:
    return leaderboard_service.self_standing(db, actor, period)


@router.get("/monthly", response_model=SelfStanding)
def monthly_standing(db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)) -> SelfStanding:
    return leaderboard_service.monthly_standing(db, actor)
