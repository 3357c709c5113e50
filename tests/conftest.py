from __future__ import annotations

import itertools
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from fastapi import HTTPException, status
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from salesdesk import events
from salesdesk.branches.models import Branch
from salesdesk.core.auth import build_actor, get_current_actor, hash_secret
from salesdesk.core.config import get_settings
from salesdesk.core.database import Base, get_db
from salesdesk.main import app
from salesdesk.middleware.rate_limit import reset_rate_limiter
from salesdesk.security.context import Actor
from salesdesk.storage.backends import LocalStorageBackend, StorageBackend, get_storage_backend
from salesdesk.users.models import User

PASSWORD = "password123"
PASSWORD_HASH = hash_secret(PASSWORD)

ClientAndActor = tuple[TestClient, Callable[[User], None]]


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def setup_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    get_settings.cache_clear()
    get_storage_backend.cache_clear()
    reset_rate_limiter()
    events.published_events.clear()
    yield
    get_settings.cache_clear()
    get_storage_backend.cache_clear()
    reset_rate_limiter()
    events.published_events.clear()


@pytest.fixture()
def storage_backend(tmp_path: Path) -> LocalStorageBackend:
    return LocalStorageBackend(tmp_path / "storage")


@pytest.fixture()
def make_branch(db_session: Session) -> Callable[..., Branch]:
    counter = itertools.count(1)

    def factory(name: str | None = None, *, is_active: bool = True) -> Branch:
        index = next(counter)
        branch = Branch(name=name or f"Branch {index}", code=f"BR{index:03d}", is_active=is_active)
        db_session.add(branch)
        db_session.commit()
        db_session.refresh(branch)
        return branch

    return factory


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    counter = itertools.count(1)

    def factory(
        role: str = "EMPLOYEE",
        *,
        manager: User | None = None,
        branch: Branch | None = None,
        email: str | None = None,
        is_active: bool = True,
    ) -> User:
        index = next(counter)
        user = User(
            email=email or f"{role.lower()}{index}@example.com",
            password_hash=PASSWORD_HASH,
            first_name=role.title(),
            last_name=f"User{index}",
            role=role,
            is_active=is_active,
            manager_id=manager.id if manager is not None else None,
            branch_id=branch.id if branch is not None else None,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return factory


@pytest.fixture()
def client(db_session: Session, storage_backend: LocalStorageBackend) -> Generator[ClientAndActor, None, None]:
    state: dict[str, User | None] = {"user": None}

    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_actor() -> Actor:
        user = state["user"]
        if user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="not authenticated")
        return build_actor(db_session, user)

    def override_storage_backend() -> StorageBackend:
        return storage_backend

    def set_actor(user: User) -> None:
        state["user"] = user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_actor] = override_get_current_actor
    app.dependency_overrides[get_storage_backend] = override_storage_backend
    with TestClient(app) as test_client:
        yield test_client, set_actor
    app.dependency_overrides.clear()


@pytest.fixture()
def anon_client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
