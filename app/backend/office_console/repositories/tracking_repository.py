"""Repository helpers for projects, modules, tasks and work logs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ColumnElement, and_, case, delete, distinct, func, or_, select
from sqlalchemy.orm import Session

from office_console.core.pagination import PageRequest, paginate, resolve_order_by
from office_console.models.entities import (
    COMPLETED_TASK_STATUSES,
    Client,
    Module,
    Project,
    ProjectMember,
    ProjectStatus,
    Task,
    TaskActivity,
    TaskAssignee,
    TaskComment,
    TaskLink,
    TaskPriority,
    TaskStatus,
    TaskType,
    WorkLog,
)

PROJECT_SORT_COLUMNS = {
    "name": Project.name,
    "status": Project.status,
    "created_at": Project.created_at,
    "updated_at": Project.updated_at,
}
MODULE_SORT_COLUMNS = {
    "name": Module.name,
    "created_at": Module.created_at,
}
TASK_SORT_COLUMNS = {
    "title": Task.title,
    "status": Task.status,
    "priority": Task.priority,
    "due_date": Task.due_date,
    "created_at": Task.created_at,
    "updated_at": Task.updated_at,
}


@dataclass(slots=True, frozen=True)
class WorkLogAggregate:
    raw_minutes: Decimal
    adjusted_minutes: Decimal
    count: int
    first_entry: datetime | None
    last_entry: datetime | None
    active_children: int = 0


class TrackingRepository:
    """Persistence operations used by the project, task and work-log services."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Projects ----------
    def get_project(self, project_id: UUID) -> Project | None:
        return self.db.scalar(select(Project).where(Project.id == project_id))

    def list_projects(
        self,
        *,
        scope: ColumnElement[bool],
        page_request: PageRequest,
        client_id: UUID | None = None,
        project_status: ProjectStatus | None = None,
    ) -> tuple[list[Project], int]:
        query = select(Project).where(scope)
        if client_id is not None:
            query = query.where(Project.client_id == client_id)
        if project_status is not None:
            query = query.where(Project.status == project_status)
        if page_request.search_pattern:
            query = query.where(func.lower(Project.name).like(page_request.search_pattern))
        order = resolve_order_by(page_request, PROJECT_SORT_COLUMNS, default="name")
        return paginate(self.db, query.order_by(order, Project.id.asc()), page_request)

    def add_project(self, project: Project) -> Project:
        self.db.add(project)
        self.db.flush()
        return project

    def delete_project(self, project: Project) -> None:
        self.db.execute(delete(ProjectMember).where(ProjectMember.project_id == project.id))
        self.db.delete(project)
        self.db.flush()

    def project_member_ids(self, project_id: UUID) -> set[UUID]:
        return set(
            self.db.scalars(select(ProjectMember.user_id).where(ProjectMember.project_id == project_id)).all()
        )

    def replace_project_members(self, project_id: UUID, user_ids: set[UUID]) -> None:
        current = self.project_member_ids(project_id)
        removed = current - user_ids
        if removed:
            self.db.execute(
                delete(ProjectMember).where(
                    and_(ProjectMember.project_id == project_id, ProjectMember.user_id.in_(list(removed)))
                )
            )
        for user_id in sorted(user_ids - current, key=str):
            self.db.add(ProjectMember(project_id=project_id, user_id=user_id))
        self.db.flush()

    def module_count_for_project(self, project_id: UUID) -> int:
        return self.db.scalar(select(func.count(Module.id)).where(Module.project_id == project_id)) or 0

    def task_count_for_project(self, project_id: UUID) -> int:
        return self.db.scalar(select(func.count(Task.id)).where(Task.project_id == project_id)) or 0

    def get_client_multiplier(self, client_id: UUID | None) -> Decimal | None:
        if client_id is None:
            return None
        return self.db.scalar(select(Client.time_display_multiplier).where(Client.id == client_id))

    # ---------- Modules ----------
    def get_module(self, module_id: UUID) -> Module | None:
        return self.db.scalar(select(Module).where(Module.id == module_id))

    def list_modules(
        self,
        *,
        scope: ColumnElement[bool],
        page_request: PageRequest,
        project_id: UUID | None = None,
    ) -> tuple[list[Module], int]:
        query = select(Module).where(scope)
        if project_id is not None:
            query = query.where(Module.project_id == project_id)
        if page_request.search_pattern:
            query = query.where(func.lower(Module.name).like(page_request.search_pattern))
        order = resolve_order_by(page_request, MODULE_SORT_COLUMNS, default="name")
        return paginate(self.db, query.order_by(order, Module.id.asc()), page_request)

    def add_module(self, module: Module) -> Module:
        self.db.add(module)
        self.db.flush()
        return module

    def delete_module(self, module: Module) -> None:
        self.db.delete(module)
        self.db.flush()

    def task_count_for_module(self, module_id: UUID) -> int:
        return self.db.scalar(select(func.count(Task.id)).where(Task.module_id == module_id)) or 0

    # ---------- Tasks ----------
    def get_task(self, task_id: UUID) -> Task | None:
        return self.db.scalar(select(Task).where(Task.id == task_id))

    def list_tasks(
        self,
        *,
        scope: ColumnElement[bool],
        page_request: PageRequest,
        project_id: UUID | None = None,
        module_id: UUID | None = None,
        statuses: list[TaskStatus] | None = None,
        priority: TaskPriority | None = None,
        task_type: TaskType | None = None,
        assignee_id: UUID | None = None,
    ) -> tuple[list[Task], int]:
        query = select(Task).where(scope)
        if project_id is not None:
            query = query.where(Task.project_id == project_id)
        if module_id is not None:
            query = query.where(Task.module_id == module_id)
        if statuses:
            query = query.where(Task.status.in_(statuses))
        if priority is not None:
            query = query.where(Task.priority == priority)
        if task_type is not None:
            query = query.where(Task.type == task_type)
        if assignee_id is not None:
            query = query.where(
                Task.id.in_(select(TaskAssignee.task_id).where(TaskAssignee.user_id == assignee_id))
            )
        if page_request.search_pattern:
            query = query.where(
                or_(
                    func.lower(Task.title).like(page_request.search_pattern),
                    func.lower(func.coalesce(Task.description, "")).like(page_request.search_pattern),
                )
            )
        order = resolve_order_by(page_request, TASK_SORT_COLUMNS, default="title")
        return paginate(self.db, query.order_by(order, Task.id.asc()), page_request)

    def add_task(self, task: Task) -> Task:
        self.db.add(task)
        self.db.flush()
        return task

    def delete_task(self, task: Task) -> None:
        for model, column in (
            (TaskAssignee, TaskAssignee.task_id),
            (TaskComment, TaskComment.task_id),
            (TaskActivity, TaskActivity.task_id),
        ):
            self.db.execute(delete(model).where(column == task.id))
        self.db.execute(
            delete(TaskLink).where(or_(TaskLink.source_task_id == task.id, TaskLink.target_task_id == task.id))
        )
        self.db.delete(task)
        self.db.flush()

    def task_assignee_ids(self, task_id: UUID) -> set[UUID]:
        return set(self.db.scalars(select(TaskAssignee.user_id).where(TaskAssignee.task_id == task_id)).all())

    def assignee_ids_by_task(self, task_ids: list[UUID]) -> dict[UUID, list[UUID]]:
        grouped: dict[UUID, list[UUID]] = {task_id: [] for task_id in task_ids}
        if not task_ids:
            return grouped
        rows = self.db.execute(
            select(TaskAssignee.task_id, TaskAssignee.user_id).where(TaskAssignee.task_id.in_(task_ids))
        ).all()
        for task_id, user_id in rows:
            grouped[task_id].append(user_id)
        return grouped

    def replace_task_assignees(self, task_id: UUID, user_ids: set[UUID]) -> None:
        current = self.task_assignee_ids(task_id)
        removed = current - user_ids
        if removed:
            self.db.execute(
                delete(TaskAssignee).where(
                    and_(TaskAssignee.task_id == task_id, TaskAssignee.user_id.in_(list(removed)))
                )
            )
        for user_id in sorted(user_ids - current, key=str):
            self.db.add(TaskAssignee(task_id=task_id, user_id=user_id))
        self.db.flush()

    def work_log_count_for_task(self, task_id: UUID) -> int:
        return self.db.scalar(select(func.count(WorkLog.id)).where(WorkLog.task_id == task_id)) or 0

    # ---------- Task activity, comments and links ----------
    def add_task_activities(self, activities: list[TaskActivity]) -> None:
        self.db.add_all(activities)
        self.db.flush()

    def list_task_activities(self, task_id: UUID) -> list[TaskActivity]:
        return self.db.scalars(
            select(TaskActivity)
            .where(TaskActivity.task_id == task_id)
            .order_by(TaskActivity.created_at.desc(), TaskActivity.sequence.asc(), TaskActivity.id.asc())
        ).all()

    def list_comments(self, task_id: UUID) -> list[TaskComment]:
        return self.db.scalars(
            select(TaskComment)
            .where(TaskComment.task_id == task_id)
            .order_by(TaskComment.created_at.asc(), TaskComment.id.asc())
        ).all()

    def get_comment(self, comment_id: UUID) -> TaskComment | None:
        return self.db.scalar(select(TaskComment).where(TaskComment.id == comment_id))

    def add_comment(self, comment: TaskComment) -> TaskComment:
        self.db.add(comment)
        self.db.flush()
        return comment

    def delete_comment(self, comment: TaskComment) -> None:
        self.db.delete(comment)
        self.db.flush()

    def list_links(self, task_id: UUID) -> list[TaskLink]:
        return self.db.scalars(
            select(TaskLink)
            .where(or_(TaskLink.source_task_id == task_id, TaskLink.target_task_id == task_id))
            .order_by(TaskLink.created_at.asc(), TaskLink.id.asc())
        ).all()

    def get_link(self, link_id: UUID) -> TaskLink | None:
        return self.db.scalar(select(TaskLink).where(TaskLink.id == link_id))

    def add_link(self, link: TaskLink) -> TaskLink:
        self.db.add(link)
        self.db.flush()
        return link

    def delete_link(self, link: TaskLink) -> None:
        self.db.delete(link)
        self.db.flush()

    # ---------- Work logs ----------
    def get_work_log(self, work_log_id: UUID) -> WorkLog | None:
        return self.db.scalar(select(WorkLog).where(WorkLog.id == work_log_id))

    def add_work_log(self, work_log: WorkLog) -> WorkLog:
        self.db.add(work_log)
        self.db.flush()
        return work_log

    def delete_work_log(self, work_log: WorkLog) -> None:
        self.db.delete(work_log)
        self.db.flush()

    def list_work_logs(
        self,
        *,
        scope: ColumnElement[bool],
        page_request: PageRequest,
        task_id: UUID | None = None,
        user_id: UUID | None = None,
    ) -> tuple[list[WorkLog], int]:
        query = select(WorkLog).where(scope)
        if task_id is not None:
            query = query.where(WorkLog.task_id == task_id)
        if user_id is not None:
            query = query.where(WorkLog.user_id == user_id)
        return paginate(self.db, query.order_by(WorkLog.start_time.desc(), WorkLog.id.asc()), page_request)

    def find_overlapping_work_log(self, user_id: UUID, start: datetime, end: datetime) -> tuple[WorkLog, str] | None:
        row = self.db.execute(
            select(WorkLog, Task.title)
            .join(Task, Task.id == WorkLog.task_id)
            .where(
                and_(
                    WorkLog.user_id == user_id,
                    WorkLog.start_time < end,
                    WorkLog.end_time > start,
                )
            )
            .order_by(WorkLog.start_time.asc())
            .limit(1)
        ).first()
        if row is None:
            return None
        return row[0], row[1]

    # ---------- Report reads ----------
    def list_report_projects(
        self, *, scope: ColumnElement[bool], project_id: UUID | None = None
    ) -> list[Project]:
        query = select(Project).where(scope)
        if project_id is not None:
            query = query.where(Project.id == project_id)
        return self.db.scalars(query.order_by(Project.name.asc(), Project.id.asc())).all()

    def list_report_modules(self, project_ids: list[UUID]) -> list[Module]:
        if not project_ids:
            return []
        return self.db.scalars(
            select(Module).where(Module.project_id.in_(project_ids)).order_by(Module.name.asc(), Module.id.asc())
        ).all()

    @staticmethod
    def _report_task_conditions(
        project_ids: list[UUID], module_id: UUID | None, unassigned_only: bool
    ) -> list[ColumnElement[bool]]:
        conditions = [Task.project_id.in_(project_ids)]
        if unassigned_only:
            conditions.append(Task.module_id.is_(None))
        elif module_id is not None:
            conditions.append(Task.module_id == module_id)
        return conditions

    def list_report_tasks(
        self,
        project_ids: list[UUID],
        *,
        module_id: UUID | None = None,
        unassigned_only: bool = False,
    ) -> list[Task]:
        if not project_ids:
            return []
        conditions = self._report_task_conditions(project_ids, module_id, unassigned_only)
        return self.db.scalars(select(Task).where(*conditions).order_by(Task.title.asc(), Task.id.asc())).all()

    def module_counts_by_project(self, project_ids: list[UUID]) -> dict[UUID, int]:
        if not project_ids:
            return {}
        rows = self.db.execute(
            select(Module.project_id, func.count(Module.id))
            .where(Module.project_id.in_(project_ids))
            .group_by(Module.project_id)
        ).all()
        return {row[0]: int(row[1]) for row in rows}

    def projects_with_unassigned_tasks(self, project_ids: list[UUID]) -> set[UUID]:
        if not project_ids:
            return set()
        return set(
            self.db.scalars(
                select(Task.project_id).where(Task.project_id.in_(project_ids), Task.module_id.is_(None)).distinct()
            ).all()
        )

    def task_counts_by_module(self, project_id: UUID) -> dict[UUID | None, int]:
        """Task counts keyed by module id; the None key counts tasks without a module."""

        rows = self.db.execute(
            select(Task.module_id, func.count(Task.id)).where(Task.project_id == project_id).group_by(Task.module_id)
        ).all()
        return {row[0]: int(row[1]) for row in rows}

    # ---------- Report aggregates ----------
    def _aggregate_work_logs(
        self,
        key: ColumnElement,
        conditions: list[ColumnElement[bool]],
        *,
        date_from: datetime | None,
        date_to: datetime | None,
        children: ColumnElement | None = None,
    ) -> dict[object, WorkLogAggregate]:
        if date_from is not None:
            conditions.append(WorkLog.start_time >= date_from)
        if date_to is not None:
            conditions.append(WorkLog.start_time <= date_to)
        columns = [
            key,
            func.sum(WorkLog.duration_min),
            func.sum(WorkLog.client_adjusted_duration_min),
            func.count(WorkLog.id),
            func.min(WorkLog.start_time),
            func.max(WorkLog.start_time),
        ]
        if children is not None:
            columns.append(children)
        rows = self.db.execute(
            select(*columns)
            .select_from(WorkLog)
            .join(Task, Task.id == WorkLog.task_id)
            .where(*conditions)
            .group_by(key)
        ).all()
        return {
            row[0]: WorkLogAggregate(
                raw_minutes=Decimal(row[1] or 0),
                adjusted_minutes=Decimal(row[2] or 0),
                count=int(row[3]),
                first_entry=row[4],
                last_entry=row[5],
                active_children=int(row[6] or 0) if children is not None else 0,
            )
            for row in rows
        }

    def work_log_totals_by_project(
        self, project_ids: list[UUID], *, date_from: datetime | None, date_to: datetime | None
    ) -> dict[UUID, WorkLogAggregate]:
        """Per-project totals; active_children counts modules with logs, the unassigned group included."""

        if not project_ids:
            return {}
        return self._aggregate_work_logs(
            Task.project_id,
            [Task.project_id.in_(project_ids)],
            date_from=date_from,
            date_to=date_to,
            children=func.count(distinct(Task.module_id)) + func.max(case((Task.module_id.is_(None), 1), else_=0)),
        )

    def work_log_totals_by_module(
        self, project_id: UUID, *, date_from: datetime | None, date_to: datetime | None
    ) -> dict[UUID | None, WorkLogAggregate]:
        """Per-module totals within one project; active_children counts tasks with logs."""

        return self._aggregate_work_logs(
            Task.module_id,
            [Task.project_id == project_id],
            date_from=date_from,
            date_to=date_to,
            children=func.count(distinct(WorkLog.task_id)),
        )

    def work_log_totals_by_task(
        self,
        project_ids: list[UUID],
        *,
        date_from: datetime | None,
        date_to: datetime | None,
        module_id: UUID | None = None,
        unassigned_only: bool = False,
    ) -> dict[UUID, WorkLogAggregate]:
        if not project_ids:
            return {}
        return self._aggregate_work_logs(
            WorkLog.task_id,
            self._report_task_conditions(project_ids, module_id, unassigned_only),
            date_from=date_from,
            date_to=date_to,
        )

    # ---------- Dashboard ----------
    def count_projects(self, *, scope: ColumnElement[bool]) -> int:
        return self.db.scalar(select(func.count(Project.id)).where(scope)) or 0

    def count_open_tasks(self, *, scope: ColumnElement[bool]) -> int:
        return (
            self.db.scalar(
                select(func.count(Task.id)).where(scope, Task.status.not_in(list(COMPLETED_TASK_STATUSES)))
            )
            or 0
        )

    def open_task_counts_by_type(self, *, scope: ColumnElement[bool]) -> dict[TaskType, int]:
        rows = self.db.execute(
            select(Task.type, func.count(Task.id))
            .where(scope, Task.status.not_in(list(COMPLETED_TASK_STATUSES)))
            .group_by(Task.type)
        ).all()
        return {row[0]: int(row[1]) for row in rows}
