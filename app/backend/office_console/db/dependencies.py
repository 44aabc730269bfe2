"""Database dependencies for FastAPI endpoints."""

from collections.abc import Generator

from sqlalchemy.orm import Session

from office_console.db.session import SessionLocal


def get_db_session() -> Generator[Session, None, None]:
    """Yield a session; services commit, anything left pending on error is rolled back."""

    session = SessionLocal()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
