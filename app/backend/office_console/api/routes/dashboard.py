"""Dashboard counters."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from office_console.core.auth import RequestUserContext, get_current_user_context
from office_console.db.dependencies import get_db_session
from office_console.services.dashboard_service import DashboardService

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats")
def dashboard_stats(
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return DashboardService(db).stats(context=context)


@router.get("/task-types")
def dashboard_task_types(
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return DashboardService(db).task_type_breakdown(context=context)
