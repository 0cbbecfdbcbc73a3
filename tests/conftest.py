"""Shared fixtures: in-memory SQLite store, cheap hasher, API client."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.api.dependencies import get_password_hasher
from app.core.security import PasswordHasher
from app.db.repositories.user import UserRepository
from app.db.session import get_db, install_statement_interrupts
from app.main import app
from app.models.user import User  # noqa: F401
from app.services.user_service import UserService


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    install_statement_interrupts(engine)
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def hasher() -> PasswordHasher:
    # Minimum bcrypt cost keeps the suite fast
    return PasswordHasher(rounds=4)


@pytest.fixture
def repository(session) -> UserRepository:
    return UserRepository(session)


@pytest.fixture
def service(repository, hasher) -> UserService:
    return UserService(repository, hasher)


@pytest.fixture
def client(engine, hasher):
    def override_get_db():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_password_hasher] = lambda: hasher
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
