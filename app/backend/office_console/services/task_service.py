"""Application service for tasks, their audit trail, comments and links."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from uuid import UUID

import structlog
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from office_console.core.access import EntityKind, scope_for
from office_console.core.auth import RequestUserContext
from office_console.core.clock import utcnow
from office_console.core.pagination import PageRequest
from office_console.models.entities import (
    Project,
    Task,
    TaskActivity,
    TaskComment,
    TaskLink,
    TaskLinkType,
    TaskPriority,
    TaskStatus,
    TaskType,
)
from office_console.repositories.directory_repository import DirectoryRepository
from office_console.repositories.tracking_repository import TrackingRepository
from office_console.services.activity import (
    CLEARED,
    TASK_SOFT_FIELDS,
    TASK_VALUE_FIELDS,
    ActivityRecord,
    creation_record,
    diff_assignees,
    diff_fields,
)

logger = structlog.get_logger()


@dataclass(slots=True)
class TaskCreateData:
    project_id: UUID
    title: str
    module_id: UUID | None = None
    description: str | None = None
    type: TaskType = TaskType.FEATURE
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: date | None = None
    assignee_ids: list[UUID] = field(default_factory=list)


@dataclass(slots=True)
class TaskUpdateData:
    title: str | None = None
    description: str | None = None
    module_id: UUID | None = None
    type: TaskType | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: date | None = None
    clear_due_date: bool = False
    assignee_ids: list[UUID] | None = None


@dataclass(slots=True)
class TaskListFilters:
    project_id: UUID | None = None
    module_id: UUID | None = None
    statuses: list[TaskStatus] | None = None
    priority: TaskPriority | None = None
    type: TaskType | None = None
    assigned_to_me: bool = False


def completion_timestamp(
    previous_status: TaskStatus | None,
    new_status: TaskStatus,
    previous_completed_at: datetime | None,
    now: datetime,
) -> datetime | None:
    """completed_at is set on entering DONE and cleared on any other status."""

    if new_status is not TaskStatus.DONE:
        return None
    if previous_status is TaskStatus.DONE and previous_completed_at is not None:
        return previous_completed_at
    return now


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


class TaskService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = TrackingRepository(db)
        self.directory = DirectoryRepository(db)

    # ---------- Serialization ----------
    @staticmethod
    def serialize_task(task: Task, assignees: list[tuple[UUID, str]]) -> dict[str, object]:
        return {
            "id": str(task.id),
            "project_id": str(task.project_id),
            "module_id": str(task.module_id) if task.module_id else None,
            "title": task.title,
            "description": task.description,
            "type": task.type.value,
            "status": task.status.value,
            "priority": task.priority.value,
            "due_date": task.due_date.isoformat() if task.due_date else None,
            "completed_at": task.completed_at.isoformat() if task.completed_at else None,
            "created_by_id": str(task.created_by_id),
            "assignees": [{"id": str(user_id), "name": name} for user_id, name in assignees],
            "created_at": task.created_at.isoformat(),
            "updated_at": task.updated_at.isoformat(),
        }

    @staticmethod
    def serialize_activity(activity: TaskActivity) -> dict[str, object]:
        return {
            "id": str(activity.id),
            "task_id": str(activity.task_id),
            "user_id": str(activity.user_id),
            "type": activity.type.value,
            "field": activity.field,
            "old_value": activity.old_value,
            "new_value": activity.new_value,
            "created_at": activity.created_at.isoformat(),
        }

    @staticmethod
    def serialize_comment(comment: TaskComment) -> dict[str, object]:
        return {
            "id": str(comment.id),
            "task_id": str(comment.task_id),
            "user_id": str(comment.user_id),
            "content": comment.content,
            "created_at": comment.created_at.isoformat(),
            "updated_at": comment.updated_at.isoformat(),
        }

    @staticmethod
    def serialize_link(link: TaskLink) -> dict[str, object]:
        return {
            "id": str(link.id),
            "source_task_id": str(link.source_task_id),
            "target_task_id": str(link.target_task_id),
            "type": link.type.value,
            "created_by_id": str(link.created_by_id),
            "created_at": link.created_at.isoformat(),
        }

    def serialize_tasks(self, tasks: list[Task]) -> list[dict[str, object]]:
        assignee_map = self.repo.assignee_ids_by_task([task.id for task in tasks])
        user_ids = {user_id for ids in assignee_map.values() for user_id in ids}
        users = self.directory.users_by_ids(list(user_ids))
        payload: list[dict[str, object]] = []
        for task in tasks:
            assignees = sorted(
                ((user_id, users[user_id].name) for user_id in assignee_map.get(task.id, []) if user_id in users),
                key=lambda item: item[1],
            )
            payload.append(self.serialize_task(task, assignees))
        return payload

    # ---------- Access ----------
    def get_visible_task(self, context: RequestUserContext, task_id: UUID) -> Task:
        task = self.repo.get_task(task_id)
        if task is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found.")
        scope_for(context).ensure_visible(
            self.db, EntityKind.TASK, task.id, detail="You do not have access to this task."
        )
        return task

    def _get_visible_project(self, context: RequestUserContext, project_id: UUID) -> Project:
        project = self.repo.get_project(project_id)
        if project is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")
        scope_for(context).ensure_visible(
            self.db, EntityKind.PROJECT, project.id, detail="You do not have access to this project."
        )
        return project

    def _validate_module(self, project_id: UUID, module_id: UUID | None) -> UUID | None:
        if module_id is None:
            return None
        module = self.repo.get_module(module_id)
        if module is None or module.project_id != project_id:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Module must belong to the task's project.",
            )
        return module_id

    def _ensure_project_members(self, project_id: UUID, user_ids: set[UUID]) -> None:
        if not user_ids:
            return
        members = self.repo.project_member_ids(project_id)
        if not user_ids <= members:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Assignees must be members of the task's project.",
            )

    def _display_names(self, user_ids: set[UUID]) -> dict[UUID, str]:
        return {user_id: user.name for user_id, user in self.directory.users_by_ids(list(user_ids)).items()}

    def _activity_rows(
        self, task_id: UUID, actor_id: UUID, records: list[ActivityRecord], now: datetime
    ) -> list[TaskActivity]:
        return [
            TaskActivity(
                task_id=task_id,
                user_id=actor_id,
                type=record.type,
                field=record.field,
                old_value=record.old_value,
                new_value=record.new_value,
                created_at=now,
                sequence=index,
            )
            for index, record in enumerate(records)
        ]

    # ---------- Task CRUD ----------
    def list_tasks(
        self, *, context: RequestUserContext, page_request: PageRequest, filters: TaskListFilters
    ) -> tuple[list[Task], int]:
        if filters.project_id is not None:
            self._get_visible_project(context, filters.project_id)
        scope = scope_for(context)
        return self.repo.list_tasks(
            scope=scope.scope_filter(EntityKind.TASK),
            page_request=page_request,
            project_id=filters.project_id,
            module_id=filters.module_id,
            statuses=filters.statuses,
            priority=filters.priority,
            task_type=filters.type,
            assignee_id=context.user_id if filters.assigned_to_me else None,
        )

    def get_task(self, *, context: RequestUserContext, task_id: UUID) -> Task:
        return self.get_visible_task(context, task_id)

    def create_task(self, *, context: RequestUserContext, data: TaskCreateData) -> Task:
        project = self._get_visible_project(context, data.project_id)
        module_id = self._validate_module(project.id, data.module_id)
        assignee_ids = set(data.assignee_ids)
        self._ensure_project_members(project.id, assignee_ids)

        now = utcnow()
        task = Task(
            project_id=project.id,
            module_id=module_id,
            title=data.title.strip(),
            description=_clean_text(data.description),
            type=data.type,
            status=data.status,
            priority=data.priority,
            due_date=data.due_date,
            completed_at=completion_timestamp(None, data.status, None, now),
            created_by_id=context.user_id,
            created_at=now,
            updated_at=now,
        )
        try:
            self.repo.add_task(task)
            self.repo.replace_task_assignees(task.id, assignee_ids)
            self.repo.add_task_activities(self._activity_rows(task.id, context.user_id, [creation_record()], now))
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Task could not be saved.") from exc

        self.db.refresh(task)
        logger.info("task_created", task_id=str(task.id), project_id=str(project.id))
        return task

    def update_task(self, *, context: RequestUserContext, task_id: UUID, data: TaskUpdateData) -> Task:
        task = self.get_visible_task(context, task_id)
        now = utcnow()

        incoming: dict[str, object] = {
            "status": data.status,
            "priority": data.priority,
            "due_date": CLEARED if data.clear_due_date else data.due_date,
            "title": data.title.strip() if data.title is not None else None,
        }
        if data.description is not None:
            incoming["description"] = _clean_text(data.description) or CLEARED

        current_assignees = self.repo.task_assignee_ids(task.id)
        target_assignees = set(data.assignee_ids) if data.assignee_ids is not None else None
        if target_assignees is not None:
            self._ensure_project_members(task.project_id, target_assignees - current_assignees)
        module_id = task.module_id
        if data.module_id is not None:
            module_id = self._validate_module(task.project_id, data.module_id)

        # Diff against the pre-mutation state before touching the entity.
        records = diff_fields(task, incoming, value_fields=TASK_VALUE_FIELDS, soft_fields=TASK_SOFT_FIELDS)
        if target_assignees is not None:
            records.extend(
                diff_assignees(
                    current_assignees,
                    target_assignees,
                    self._display_names(current_assignees | target_assignees),
                )
            )

        previous_status = task.status
        if data.title is not None:
            task.title = data.title.strip()
        if data.description is not None:
            task.description = _clean_text(data.description)
        if data.type is not None:
            task.type = data.type
        if data.priority is not None:
            task.priority = data.priority
        if data.clear_due_date:
            task.due_date = None
        elif data.due_date is not None:
            task.due_date = data.due_date
        if data.status is not None:
            task.status = data.status
        task.completed_at = completion_timestamp(previous_status, task.status, task.completed_at, now)
        task.module_id = module_id
        task.updated_at = now

        try:
            if target_assignees is not None:
                self.repo.replace_task_assignees(task.id, target_assignees)
            if records:
                self.repo.add_task_activities(self._activity_rows(task.id, context.user_id, records, now))
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Task could not be saved.") from exc

        self.db.refresh(task)
        logger.info("task_updated", task_id=str(task.id), activity_count=len(records))
        return task

    def delete_task(self, *, context: RequestUserContext, task_id: UUID) -> None:
        task = self.get_visible_task(context, task_id)
        if self.repo.work_log_count_for_task(task.id) > 0:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Cannot delete task with existing work logs.",
            )
        self.repo.delete_task(task)
        self.db.commit()
        logger.info("task_deleted", task_id=str(task_id))

    def list_activity(self, *, context: RequestUserContext, task_id: UUID) -> list[TaskActivity]:
        task = self.get_visible_task(context, task_id)
        return self.repo.list_task_activities(task.id)

    # ---------- Comments ----------
    def list_comments(self, *, context: RequestUserContext, task_id: UUID) -> list[TaskComment]:
        task = self.get_visible_task(context, task_id)
        return self.repo.list_comments(task.id)

    def create_comment(self, *, context: RequestUserContext, task_id: UUID, content: str) -> TaskComment:
        task = self.get_visible_task(context, task_id)
        now = utcnow()
        comment = TaskComment(
            task_id=task.id,
            user_id=context.user_id,
            content=content.strip(),
            created_at=now,
            updated_at=now,
        )
        self.repo.add_comment(comment)
        self.db.commit()
        self.db.refresh(comment)
        logger.info("task_comment_created", task_id=str(task.id), comment_id=str(comment.id))
        return comment

    def _get_own_comment(self, context: RequestUserContext, task_id: UUID, comment_id: UUID) -> TaskComment:
        task = self.get_visible_task(context, task_id)
        comment = self.repo.get_comment(comment_id)
        if comment is None or comment.task_id != task.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found.")
        if comment.user_id != context.user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the author can modify this comment.",
            )
        return comment

    def update_comment(
        self, *, context: RequestUserContext, task_id: UUID, comment_id: UUID, content: str
    ) -> TaskComment:
        comment = self._get_own_comment(context, task_id, comment_id)
        comment.content = content.strip()
        comment.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(comment)
        return comment

    def delete_comment(self, *, context: RequestUserContext, task_id: UUID, comment_id: UUID) -> None:
        comment = self._get_own_comment(context, task_id, comment_id)
        self.repo.delete_comment(comment)
        self.db.commit()

    # ---------- Links ----------
    def list_links(self, *, context: RequestUserContext, task_id: UUID) -> list[TaskLink]:
        task = self.get_visible_task(context, task_id)
        return self.repo.list_links(task.id)

    def create_link(
        self,
        *,
        context: RequestUserContext,
        task_id: UUID,
        target_task_id: UUID,
        link_type: TaskLinkType,
    ) -> TaskLink:
        source = self.get_visible_task(context, task_id)
        if target_task_id == source.id:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="A task cannot be linked to itself.",
            )
        target = self.get_visible_task(context, target_task_id)

        link = TaskLink(
            source_task_id=source.id,
            target_task_id=target.id,
            type=link_type,
            created_by_id=context.user_id,
            created_at=utcnow(),
        )
        try:
            self.repo.add_link(link)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="This link already exists.") from exc

        self.db.refresh(link)
        return link

    def delete_link(self, *, context: RequestUserContext, task_id: UUID, link_id: UUID) -> None:
        task = self.get_visible_task(context, task_id)
        link = self.repo.get_link(link_id)
        if link is None or task.id not in (link.source_task_id, link.target_task_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Link not found.")
        self.repo.delete_link(link)
        self.db.commit()
