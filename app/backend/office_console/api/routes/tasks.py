"""Task, task activity, comment and link endpoints."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from office_console.core.auth import RequestUserContext, get_current_user_context
from office_console.core.pagination import PageRequest, get_page_request, page_payload
from office_console.db.dependencies import get_db_session
from office_console.models.entities import TaskLinkType, TaskPriority, TaskStatus, TaskType
from office_console.services.task_service import (
    TaskCreateData,
    TaskListFilters,
    TaskService,
    TaskUpdateData,
)

router = APIRouter(prefix="/tasks", tags=["tasks"])


class TaskCreatePayload(BaseModel):
    project_id: UUID
    module_id: UUID | None = None
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=20000)
    type: TaskType = TaskType.FEATURE
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: date | None = None
    assignee_ids: list[UUID] = Field(default_factory=list)


class TaskUpdatePayload(BaseModel):
    module_id: UUID | None = None
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=20000)
    type: TaskType | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: date | None = None
    assignee_ids: list[UUID] | None = None


class CommentPayload(BaseModel):
    content: str = Field(min_length=1, max_length=10000)


class LinkCreatePayload(BaseModel):
    target_task_id: UUID
    type: TaskLinkType = TaskLinkType.RELATES_TO


@router.get("")
def list_tasks(
    project_id: UUID | None = Query(default=None),
    module_id: UUID | None = Query(default=None),
    task_status: list[TaskStatus] | None = Query(default=None, alias="status"),
    priority: TaskPriority | None = Query(default=None),
    task_type: TaskType | None = Query(default=None, alias="type"),
    assigned_to_me: bool = Query(default=False),
    page_request: PageRequest = Depends(get_page_request),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = TaskService(db)
    tasks, total = service.list_tasks(
        context=context,
        page_request=page_request,
        filters=TaskListFilters(
            project_id=project_id,
            module_id=module_id,
            statuses=task_status,
            priority=priority,
            type=task_type,
            assigned_to_me=assigned_to_me,
        ),
    )
    return page_payload(service.serialize_tasks(tasks), total, page_request)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_task(
    payload: TaskCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = TaskService(db)
    task = service.create_task(
        context=context,
        data=TaskCreateData(
            project_id=payload.project_id,
            module_id=payload.module_id,
            title=payload.title,
            description=payload.description,
            type=payload.type,
            status=payload.status,
            priority=payload.priority,
            due_date=payload.due_date,
            assignee_ids=payload.assignee_ids,
        ),
    )
    return service.serialize_tasks([task])[0]


@router.get("/{task_id}")
def get_task(
    task_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = TaskService(db)
    return service.serialize_tasks([service.get_task(context=context, task_id=task_id)])[0]


@router.patch("/{task_id}")
def update_task(
    task_id: UUID,
    payload: TaskUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = TaskService(db)
    task = service.update_task(
        context=context,
        task_id=task_id,
        data=TaskUpdateData(
            module_id=payload.module_id,
            title=payload.title,
            description=payload.description,
            type=payload.type,
            status=payload.status,
            priority=payload.priority,
            due_date=payload.due_date,
            clear_due_date="due_date" in payload.model_fields_set and payload.due_date is None,
            assignee_ids=payload.assignee_ids,
        ),
    )
    return service.serialize_tasks([task])[0]


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    TaskService(db).delete_task(context=context, task_id=task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{task_id}/activity")
def list_task_activity(
    task_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = TaskService(db)
    rows = service.list_activity(context=context, task_id=task_id)
    return {"items": [service.serialize_activity(row) for row in rows]}


@router.get("/{task_id}/comments")
def list_task_comments(
    task_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = TaskService(db)
    rows = service.list_comments(context=context, task_id=task_id)
    return {"items": [service.serialize_comment(row) for row in rows]}


@router.post("/{task_id}/comments", status_code=status.HTTP_201_CREATED)
def create_task_comment(
    task_id: UUID,
    payload: CommentPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = TaskService(db)
    comment = service.create_comment(context=context, task_id=task_id, content=payload.content)
    return service.serialize_comment(comment)


@router.patch("/{task_id}/comments/{comment_id}")
def update_task_comment(
    task_id: UUID,
    comment_id: UUID,
    payload: CommentPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = TaskService(db)
    comment = service.update_comment(
        context=context, task_id=task_id, comment_id=comment_id, content=payload.content
    )
    return service.serialize_comment(comment)


@router.delete("/{task_id}/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task_comment(
    task_id: UUID,
    comment_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    TaskService(db).delete_comment(context=context, task_id=task_id, comment_id=comment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{task_id}/links")
def list_task_links(
    task_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = TaskService(db)
    rows = service.list_links(context=context, task_id=task_id)
    return {"items": [service.serialize_link(row) for row in rows]}


@router.post("/{task_id}/links", status_code=status.HTTP_201_CREATED)
def create_task_link(
    task_id: UUID,
    payload: LinkCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = TaskService(db)
    link = service.create_link(
        context=context,
        task_id=task_id,
        target_task_id=payload.target_task_id,
        link_type=payload.type,
    )
    return service.serialize_link(link)


@router.delete("/{task_id}/links/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task_link(
    task_id: UUID,
    link_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    TaskService(db).delete_link(context=context, task_id=task_id, link_id=link_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
