"""Hierarchical work log report endpoints."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from office_console.core.auth import RequestUserContext, get_current_user_context
from office_console.db.dependencies import get_db_session
from office_console.services.work_log_report_service import (
    ReportFilters,
    WorkLogReportService,
    serialize_module_node,
    serialize_project_node,
    serialize_task_node,
)

router = APIRouter(prefix="/reports/work-logs", tags=["reports"])


def get_window_filters(
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    hide_empty: bool = Query(default=False),
) -> ReportFilters:
    """Filters for routes already scoped to one project by path."""

    return ReportFilters(date_from=date_from, date_to=date_to, hide_empty=hide_empty)


def get_report_filters(
    project_filter: UUID | None = Query(default=None, alias="project_id"),
    filters: ReportFilters = Depends(get_window_filters),
) -> ReportFilters:
    filters.project_id = project_filter
    return filters


@router.get("/tree")
def report_tree(
    filters: ReportFilters = Depends(get_report_filters),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    projects = WorkLogReportService(db).build_tree(context=context, filters=filters)
    return {"items": [serialize_project_node(project) for project in projects]}


@router.get("/projects")
def report_projects(
    filters: ReportFilters = Depends(get_report_filters),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    projects = WorkLogReportService(db).list_projects(context=context, filters=filters)
    return {"items": [serialize_project_node(project, include_children=False) for project in projects]}


@router.get("/projects/{project_id}/modules")
def report_project_modules(
    project_id: UUID,
    filters: ReportFilters = Depends(get_window_filters),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    modules = WorkLogReportService(db).list_project_modules(context=context, project_id=project_id, filters=filters)
    return {"items": [serialize_module_node(module, include_children=False) for module in modules]}


@router.get("/projects/{project_id}/modules/{module_id}/tasks")
def report_module_tasks(
    project_id: UUID,
    module_id: str,
    filters: ReportFilters = Depends(get_window_filters),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    tasks = WorkLogReportService(db).list_module_tasks(
        context=context,
        project_id=project_id,
        module_id=module_id,
        filters=filters,
    )
    return {"items": [serialize_task_node(task) for task in tasks]}
