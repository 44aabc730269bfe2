"""Work-log report rollups: Task -> Module -> Project.

The eager tree bubbles totals up from task leaves, so a module equals the sum of its
tasks and a project equals the sum of its modules for any date range. Each lazy level
reads its own grouped aggregate over the same work-log rows and window, so it carries
the same totals without loading the levels below it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

import structlog
from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from office_console.core.access import EntityKind, scope_for
from office_console.core.auth import RequestUserContext
from office_console.core.clock import utcnow
from office_console.core.config import get_settings
from office_console.models.entities import Module, Project, Task
from office_console.repositories.tracking_repository import TrackingRepository, WorkLogAggregate
from office_console.services.durations import format_duration_from_minutes
from office_console.services.work_log_export import (
    ExportFilePayload,
    build_csv,
    build_workbook,
    export_filename,
    flatten_tree,
)

logger = structlog.get_logger()

ZERO = Decimal("0")
Q2 = Decimal("0.01")
NO_MODULE_PREFIX = "no-module-"
NO_MODULE_NAME = "No Module"


def no_module_id(project_id: UUID) -> str:
    return f"{NO_MODULE_PREFIX}{project_id}"


@dataclass(slots=True)
class RollupTotals:
    total_duration_minutes: Decimal = ZERO
    raw_duration_minutes: Decimal = ZERO
    work_log_count: int = 0
    first_entry: datetime | None = None
    last_entry: datetime | None = None

    @classmethod
    def from_aggregate(cls, aggregate: WorkLogAggregate | None) -> RollupTotals:
        if aggregate is None:
            return cls()
        return cls(
            total_duration_minutes=aggregate.adjusted_minutes,
            raw_duration_minutes=aggregate.raw_minutes,
            work_log_count=aggregate.count,
            first_entry=aggregate.first_entry,
            last_entry=aggregate.last_entry,
        )

    def merge(self, other: RollupTotals) -> None:
        self.total_duration_minutes += other.total_duration_minutes
        self.raw_duration_minutes += other.raw_duration_minutes
        self.work_log_count += other.work_log_count
        if other.first_entry is not None and other.last_entry is not None:
            self._extend(other.first_entry, other.last_entry)

    def _extend(self, first: datetime, last: datetime) -> None:
        if self.first_entry is None or first < self.first_entry:
            self.first_entry = first
        if self.last_entry is None or last > self.last_entry:
            self.last_entry = last

    def to_dict(self) -> dict[str, object]:
        return {
            "total_duration_minutes": str(self.total_duration_minutes.quantize(Q2)),
            "raw_duration_minutes": str(self.raw_duration_minutes.quantize(Q2)),
            "total_duration_formatted": format_duration_from_minutes(self.total_duration_minutes),
            "work_log_count": self.work_log_count,
            "first_entry_date": self.first_entry.isoformat() if self.first_entry else None,
            "last_entry_date": self.last_entry.isoformat() if self.last_entry else None,
        }


@dataclass(slots=True)
class TaskNode:
    id: UUID
    title: str
    type: str
    totals: RollupTotals


@dataclass(slots=True)
class ModuleNode:
    id: str
    name: str
    tasks: list[TaskNode] = field(default_factory=list)
    totals: RollupTotals = field(default_factory=RollupTotals)
    is_placeholder: bool = False
    tasks_count: int | None = None


@dataclass(slots=True)
class ProjectNode:
    id: UUID
    name: str
    modules: list[ModuleNode] = field(default_factory=list)
    totals: RollupTotals = field(default_factory=RollupTotals)
    modules_count: int | None = None


@dataclass(slots=True)
class ReportFilters:
    date_from: date | None = None
    date_to: date | None = None
    project_id: UUID | None = None
    hide_empty: bool = False

    def window(self) -> tuple[datetime | None, datetime | None]:
        start = datetime.combine(self.date_from, time.min) if self.date_from else None
        end = datetime.combine(self.date_to, time.max) if self.date_to else None
        return start, end


def build_project_node(
    project: Project,
    modules: list[Module],
    tasks: list[Task],
    task_totals: dict[UUID, RollupTotals],
    *,
    hide_empty: bool = False,
) -> ProjectNode:
    """Assemble one project subtree; modules by name, tasks by title."""

    node = ProjectNode(id=project.id, name=project.name)
    module_nodes: dict[UUID | None, ModuleNode] = {
        module.id: ModuleNode(id=str(module.id), name=module.name) for module in modules
    }
    for task in tasks:
        if task.module_id is None and None not in module_nodes:
            module_nodes[None] = ModuleNode(id=no_module_id(project.id), name=NO_MODULE_NAME, is_placeholder=True)
        module_node = module_nodes.get(task.module_id)
        if module_node is None:
            continue
        totals = task_totals.get(task.id) or RollupTotals()
        if hide_empty and totals.work_log_count == 0:
            continue
        module_node.tasks.append(TaskNode(id=task.id, title=task.title, type=task.type.value, totals=totals))
        module_node.totals.merge(totals)

    ordered = [module_nodes[module.id] for module in modules]
    if None in module_nodes:
        ordered.append(module_nodes[None])
    for module_node in ordered:
        if hide_empty and module_node.totals.work_log_count == 0:
            continue
        node.modules.append(module_node)
        node.totals.merge(module_node.totals)
    return node


def serialize_task_node(task: TaskNode) -> dict[str, object]:
    return {"id": str(task.id), "title": task.title, "type": task.type, **task.totals.to_dict()}


def serialize_module_node(module: ModuleNode, *, include_children: bool = True) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": module.id,
        "name": module.name,
        "is_placeholder": module.is_placeholder,
        "tasks_count": len(module.tasks) if module.tasks_count is None else module.tasks_count,
        **module.totals.to_dict(),
    }
    if include_children:
        payload["tasks"] = [serialize_task_node(task) for task in module.tasks]
    return payload


def serialize_project_node(project: ProjectNode, *, include_children: bool = True) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": str(project.id),
        "name": project.name,
        "modules_count": len(project.modules) if project.modules_count is None else project.modules_count,
        **project.totals.to_dict(),
    }
    if include_children:
        payload["modules"] = [serialize_module_node(module) for module in project.modules]
    return payload


class WorkLogReportService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = TrackingRepository(db)
        self.settings = get_settings()

    def _build(self, projects: list[Project], filters: ReportFilters) -> list[ProjectNode]:
        project_ids = [project.id for project in projects]
        modules = self.repo.list_report_modules(project_ids)
        tasks = self.repo.list_report_tasks(project_ids)
        date_from, date_to = filters.window()
        aggregates = self.repo.work_log_totals_by_task(project_ids, date_from=date_from, date_to=date_to)
        task_totals = {task_id: RollupTotals.from_aggregate(aggregate) for task_id, aggregate in aggregates.items()}

        modules_by_project: dict[UUID, list[Module]] = {project_id: [] for project_id in project_ids}
        for module in modules:
            modules_by_project[module.project_id].append(module)
        tasks_by_project: dict[UUID, list[Task]] = {project_id: [] for project_id in project_ids}
        for task in tasks:
            tasks_by_project[task.project_id].append(task)

        nodes: list[ProjectNode] = []
        for project in projects:
            node = build_project_node(
                project,
                modules_by_project[project.id],
                tasks_by_project[project.id],
                task_totals,
                hide_empty=filters.hide_empty,
            )
            if filters.hide_empty and node.totals.work_log_count == 0:
                continue
            nodes.append(node)
        return nodes

    def _scoped_projects(self, context: RequestUserContext, project_id: UUID | None) -> list[Project]:
        scope = scope_for(context)
        return self.repo.list_report_projects(scope=scope.scope_filter(EntityKind.PROJECT), project_id=project_id)

    def _visible_project(self, context: RequestUserContext, project_id: UUID) -> Project:
        project = self.repo.get_project(project_id)
        if project is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")
        scope_for(context).ensure_visible(
            self.db, EntityKind.PROJECT, project.id, detail="You do not have access to this project."
        )
        return project

    def _project_module_id(self, project_id: UUID, module_id: str) -> UUID:
        try:
            parsed = UUID(module_id)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Module not found.") from exc
        module = self.repo.get_module(parsed)
        if module is None or module.project_id != project_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Module not found.")
        return module.id

    def _validate_window(self, filters: ReportFilters) -> None:
        if filters.date_from and filters.date_to and filters.date_to < filters.date_from:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="date_to must be greater than or equal to date_from.",
            )

    # ---------- Eager tree ----------
    def build_tree(self, *, context: RequestUserContext, filters: ReportFilters) -> list[ProjectNode]:
        self._validate_window(filters)
        return self._build(self._scoped_projects(context, filters.project_id), filters)

    # ---------- Lazy levels ----------
    def list_projects(self, *, context: RequestUserContext, filters: ReportFilters) -> list[ProjectNode]:
        self._validate_window(filters)
        projects = self._scoped_projects(context, filters.project_id)
        project_ids = [project.id for project in projects]
        date_from, date_to = filters.window()
        aggregates = self.repo.work_log_totals_by_project(project_ids, date_from=date_from, date_to=date_to)
        module_counts = self.repo.module_counts_by_project(project_ids)
        with_unassigned = self.repo.projects_with_unassigned_tasks(project_ids)

        nodes: list[ProjectNode] = []
        for project in projects:
            aggregate = aggregates.get(project.id)
            totals = RollupTotals.from_aggregate(aggregate)
            if filters.hide_empty:
                if totals.work_log_count == 0:
                    continue
                modules_count = aggregate.active_children
            else:
                modules_count = module_counts.get(project.id, 0) + int(project.id in with_unassigned)
            nodes.append(ProjectNode(id=project.id, name=project.name, totals=totals, modules_count=modules_count))
        return nodes

    def list_project_modules(
        self, *, context: RequestUserContext, project_id: UUID, filters: ReportFilters
    ) -> list[ModuleNode]:
        self._validate_window(filters)
        self._visible_project(context, project_id)
        date_from, date_to = filters.window()
        modules = self.repo.list_report_modules([project_id])
        aggregates = self.repo.work_log_totals_by_module(project_id, date_from=date_from, date_to=date_to)
        task_counts = self.repo.task_counts_by_module(project_id)

        candidates: list[tuple[UUID | None, ModuleNode]] = [
            (module.id, ModuleNode(id=str(module.id), name=module.name)) for module in modules
        ]
        if None in task_counts:
            placeholder = ModuleNode(id=no_module_id(project_id), name=NO_MODULE_NAME, is_placeholder=True)
            candidates.append((None, placeholder))

        nodes: list[ModuleNode] = []
        for module_id, node in candidates:
            aggregate = aggregates.get(module_id)
            node.totals = RollupTotals.from_aggregate(aggregate)
            if filters.hide_empty:
                if node.totals.work_log_count == 0:
                    continue
                node.tasks_count = aggregate.active_children
            else:
                node.tasks_count = task_counts.get(module_id, 0)
            nodes.append(node)
        return nodes

    def list_module_tasks(
        self,
        *,
        context: RequestUserContext,
        project_id: UUID,
        module_id: str,
        filters: ReportFilters,
    ) -> list[TaskNode]:
        self._validate_window(filters)
        self._visible_project(context, project_id)
        unassigned_only = module_id == no_module_id(project_id)
        target_module_id = None if unassigned_only else self._project_module_id(project_id, module_id)
        date_from, date_to = filters.window()
        tasks = self.repo.list_report_tasks(
            [project_id], module_id=target_module_id, unassigned_only=unassigned_only
        )
        aggregates = self.repo.work_log_totals_by_task(
            [project_id],
            date_from=date_from,
            date_to=date_to,
            module_id=target_module_id,
            unassigned_only=unassigned_only,
        )

        nodes: list[TaskNode] = []
        for task in tasks:
            totals = RollupTotals.from_aggregate(aggregates.get(task.id))
            if filters.hide_empty and totals.work_log_count == 0:
                continue
            nodes.append(TaskNode(id=task.id, title=task.title, type=task.type.value, totals=totals))
        return nodes

    # ---------- Export ----------
    def export_work_logs(
        self, *, context: RequestUserContext, filters: ReportFilters, format_name: str
    ) -> ExportFilePayload:
        normalized_format = format_name.strip().lower()
        if normalized_format not in {"csv", "xlsx"}:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="format must be one of: csv, xlsx.",
            )

        tree = self.build_tree(context=context, filters=filters)
        rows = flatten_tree(tree)
        filename = export_filename(filters.date_from, filters.date_to, utcnow(), normalized_format)
        try:
            if normalized_format == "csv":
                return ExportFilePayload(
                    media_type="text/csv; charset=utf-8",
                    filename=filename,
                    content=build_csv(rows),
                )
            return ExportFilePayload(
                media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
                filename=filename,
                content=build_workbook(rows, sheet_title=self.settings.export_sheet_title),
            )
        except Exception as exc:
            logger.exception("work_log_export_failed", format=normalized_format, row_count=len(rows))
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to export work logs.",
            ) from exc
