"""Work log endpoints."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from office_console.core.auth import RequestUserContext, get_current_user_context
from office_console.core.pagination import PageRequest, get_page_request, page_payload
from office_console.db.dependencies import get_db_session
from office_console.services.work_log_service import WorkLogCreateData, WorkLogService

router = APIRouter(tags=["work-logs"])


class WorkLogCreatePayload(BaseModel):
    task_id: UUID
    start_time: datetime
    end_time: datetime
    note: str | None = Field(default=None, max_length=5000)


@router.post("/work-logs", status_code=status.HTTP_201_CREATED)
def create_work_log(
    payload: WorkLogCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = WorkLogService(db)
    work_log = service.create_work_log(
        context=context,
        data=WorkLogCreateData(
            task_id=payload.task_id,
            start_time=payload.start_time,
            end_time=payload.end_time,
            note=payload.note,
        ),
    )
    return service.serialize_work_log(work_log)


@router.delete("/work-logs/{work_log_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_work_log(
    work_log_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    WorkLogService(db).delete_work_log(context=context, work_log_id=work_log_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/tasks/{task_id}/work-logs")
def list_task_work_logs(
    task_id: UUID,
    page_request: PageRequest = Depends(get_page_request),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = WorkLogService(db)
    rows, total = service.list_task_work_logs(context=context, task_id=task_id, page_request=page_request)
    return page_payload([service.serialize_work_log(row) for row in rows], total, page_request)


@router.get("/users/{user_id}/work-logs")
def list_user_work_logs(
    user_id: UUID,
    page_request: PageRequest = Depends(get_page_request),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = WorkLogService(db)
    rows, total = service.list_user_work_logs(context=context, user_id=user_id, page_request=page_request)
    return page_payload([service.serialize_work_log(row) for row in rows], total, page_request)
