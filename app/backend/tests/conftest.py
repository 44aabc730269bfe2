from __future__ import annotations

from collections.abc import Callable, Generator
from datetime import datetime
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from office_console.db.base import Base
from office_console.db.dependencies import get_db_session
import office_console.models.entities  # noqa: F401
from office_console.main import create_app
from office_console.models.entities import User, UserRole

ADMIN_EMAIL = "admin@test.local"


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def create_user_row(
    db: Session,
    *,
    email: str,
    name: str | None = None,
    role: UserRole | str = UserRole.STAFF,
    client_id: UUID | str | None = None,
    is_active: bool = True,
) -> User:
    now = datetime.utcnow()
    if isinstance(client_id, str):
        client_id = UUID(client_id)
    user = User(
        name=name or email.split("@")[0],
        email=email,
        role=role.value if isinstance(role, UserRole) else role,
        client_id=client_id,
        is_active=is_active,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def admin(db_session: Session) -> User:
    return create_user_row(db_session, email=ADMIN_EMAIL, name="Admin", role=UserRole.ADMIN)


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    def factory(**kwargs: object) -> User:
        return create_user_row(db_session, **kwargs)

    return factory
