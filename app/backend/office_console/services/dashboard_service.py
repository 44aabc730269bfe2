"""Dashboard counters scoped to the caller."""

from __future__ import annotations

from sqlalchemy.orm import Session

from office_console.core.access import EntityKind, scope_for
from office_console.core.auth import RequestUserContext
from office_console.models.entities import TaskType
from office_console.repositories.tracking_repository import TrackingRepository


class DashboardService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = TrackingRepository(db)

    def stats(self, *, context: RequestUserContext) -> dict[str, object]:
        scope = scope_for(context)
        return {
            "projects_count": self.repo.count_projects(scope=scope.scope_filter(EntityKind.PROJECT)),
            "open_tasks_count": self.repo.count_open_tasks(scope=scope.scope_filter(EntityKind.TASK)),
        }

    def task_type_breakdown(self, *, context: RequestUserContext) -> dict[str, object]:
        scope = scope_for(context)
        counts = self.repo.open_task_counts_by_type(scope=scope.scope_filter(EntityKind.TASK))
        return {"items": [{"type": task_type.value, "count": counts.get(task_type, 0)} for task_type in TaskType]}
