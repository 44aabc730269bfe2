"""Application service for logging time against tasks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

import structlog
from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from office_console.core.access import EntityKind, scope_for
from office_console.core.auth import RequestUserContext
from office_console.core.clock import to_naive_utc, utcnow
from office_console.core.config import get_settings
from office_console.core.pagination import PageRequest
from office_console.models.entities import Task, WorkLog
from office_console.repositories.tracking_repository import TrackingRepository
from office_console.services.durations import WorkLogDuration, compute_work_log_duration, format_duration_from_minutes

logger = structlog.get_logger()

Q2 = Decimal("0.01")


@dataclass(slots=True)
class WorkLogCreateData:
    task_id: UUID
    start_time: datetime
    end_time: datetime
    note: str | None = None


class WorkLogService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = TrackingRepository(db)
        self.settings = get_settings()

    @staticmethod
    def serialize_work_log(work_log: WorkLog) -> dict[str, object]:
        return {
            "id": str(work_log.id),
            "task_id": str(work_log.task_id),
            "user_id": str(work_log.user_id),
            "start_time": work_log.start_time.isoformat(),
            "end_time": work_log.end_time.isoformat(),
            "duration_min": str(work_log.duration_min.quantize(Q2)),
            "client_adjusted_duration_min": str(work_log.client_adjusted_duration_min.quantize(Q2)),
            "duration_formatted": format_duration_from_minutes(work_log.client_adjusted_duration_min),
            "note": work_log.note,
            "created_at": work_log.created_at.isoformat(),
        }

    def _get_visible_task(self, context: RequestUserContext, task_id: UUID) -> Task:
        task = self.repo.get_task(task_id)
        if task is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found.")
        scope_for(context).ensure_visible(
            self.db, EntityKind.TASK, task.id, detail="You do not have access to this task."
        )
        return task

    def duration_for_task(self, task: Task, start: datetime, end: datetime) -> WorkLogDuration:
        """Resolve the task's multiplier chain and compute both durations."""

        module = self.repo.get_module(task.module_id) if task.module_id else None
        project = self.repo.get_project(task.project_id)
        return compute_work_log_duration(
            start,
            end,
            module_multiplier=module.time_display_multiplier if module else None,
            project_multiplier=project.time_display_multiplier if project else None,
            client_multiplier=self.repo.get_client_multiplier(project.client_id if project else None),
            max_minutes=Decimal(self.settings.work_log_max_duration_hours * 60),
        )

    def list_task_work_logs(
        self, *, context: RequestUserContext, task_id: UUID, page_request: PageRequest
    ) -> tuple[list[WorkLog], int]:
        task = self._get_visible_task(context, task_id)
        return self.repo.list_work_logs(
            scope=scope_for(context).scope_filter(EntityKind.WORK_LOG),
            page_request=page_request,
            task_id=task.id,
        )

    def list_user_work_logs(
        self, *, context: RequestUserContext, user_id: UUID, page_request: PageRequest
    ) -> tuple[list[WorkLog], int]:
        return self.repo.list_work_logs(
            scope=scope_for(context).scope_filter(EntityKind.WORK_LOG),
            page_request=page_request,
            user_id=user_id,
        )

    def create_work_log(self, *, context: RequestUserContext, data: WorkLogCreateData) -> WorkLog:
        task = self._get_visible_task(context, data.task_id)
        start = to_naive_utc(data.start_time)
        end = to_naive_utc(data.end_time)
        duration = self.duration_for_task(task, start, end)

        overlap = self.repo.find_overlapping_work_log(context.user_id, start, end)
        if overlap is not None:
            _, task_title = overlap
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'Overlapping work log exists in "{task_title}".',
            )

        work_log = WorkLog(
            task_id=task.id,
            user_id=context.user_id,
            start_time=start,
            end_time=end,
            duration_min=duration.raw_minutes,
            client_adjusted_duration_min=duration.adjusted_minutes,
            note=(data.note or "").strip() or None,
            created_at=utcnow(),
        )
        self.repo.add_work_log(work_log)
        self.db.commit()
        self.db.refresh(work_log)
        logger.info(
            "work_log_created",
            work_log_id=str(work_log.id),
            task_id=str(task.id),
            multiplier=str(duration.multiplier),
        )
        return work_log

    def delete_work_log(self, *, context: RequestUserContext, work_log_id: UUID) -> None:
        work_log = self.repo.get_work_log(work_log_id)
        if work_log is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Work log not found.")
        if work_log.user_id != context.user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the user who logged this time can delete it.",
            )
        self.repo.delete_work_log(work_log)
        self.db.commit()
        logger.info("work_log_deleted", work_log_id=str(work_log_id))
