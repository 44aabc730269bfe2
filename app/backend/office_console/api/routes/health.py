"""Liveness and readiness endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import structlog

from office_console.db.dependencies import get_db_session

logger = structlog.get_logger()

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    """Simple liveness endpoint."""

    return {"status": "ok"}


@router.get("/health/ready")
def readiness(db: Session = Depends(get_db_session)) -> dict[str, str]:
    """Report whether the database answers a trivial query."""

    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("database_unavailable", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is unavailable.",
        ) from exc
    return {"status": "ok", "database": "ok"}
