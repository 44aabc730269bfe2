"""Export endpoint for the work log report."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from office_console.api.routes.reports import get_report_filters
from office_console.core.auth import RequestUserContext, get_current_user_context
from office_console.db.dependencies import get_db_session
from office_console.services.work_log_report_service import ReportFilters, WorkLogReportService

router = APIRouter(prefix="/exports", tags=["exports"])


@router.get("/work-logs")
def export_work_logs(
    format: str = Query(default="xlsx"),
    filters: ReportFilters = Depends(get_report_filters),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    exported = WorkLogReportService(db).export_work_logs(context=context, filters=filters, format_name=format)
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )
