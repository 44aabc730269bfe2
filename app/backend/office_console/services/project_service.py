"""Application service for projects, project membership and modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

import structlog
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from office_console.core.access import EntityKind, scope_for
from office_console.core.auth import RequestUserContext
from office_console.core.clock import utcnow
from office_console.core.pagination import PageRequest
from office_console.models.entities import Module, Project, ProjectStatus
from office_console.repositories.directory_repository import DirectoryRepository
from office_console.repositories.tracking_repository import TrackingRepository
from office_console.services.durations import validate_multiplier

logger = structlog.get_logger()


@dataclass(slots=True)
class ProjectCreateData:
    name: str
    description: str | None = None
    client_id: UUID | None = None
    status: ProjectStatus = ProjectStatus.ONGOING
    time_display_multiplier: Decimal | None = None
    member_ids: list[UUID] = field(default_factory=list)


@dataclass(slots=True)
class ProjectUpdateData:
    name: str | None = None
    description: str | None = None
    client_id: UUID | None = None
    status: ProjectStatus | None = None
    time_display_multiplier: Decimal | None = None
    member_ids: list[UUID] | None = None
    clear_client: bool = False
    clear_multiplier: bool = False


@dataclass(slots=True)
class ModuleCreateData:
    name: str
    description: str | None = None
    time_display_multiplier: Decimal | None = None


@dataclass(slots=True)
class ModuleUpdateData:
    name: str | None = None
    description: str | None = None
    time_display_multiplier: Decimal | None = None
    clear_multiplier: bool = False


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _multiplier_str(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


class ProjectService:
    """Project and module lifecycle with role-scoped visibility."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = TrackingRepository(db)
        self.directory = DirectoryRepository(db)

    # ---------- Serialization ----------
    def serialize_project(self, project: Project) -> dict[str, object]:
        return {
            "id": str(project.id),
            "name": project.name,
            "description": project.description,
            "client_id": str(project.client_id) if project.client_id else None,
            "status": project.status.value,
            "time_display_multiplier": _multiplier_str(project.time_display_multiplier),
            "created_by_id": str(project.created_by_id),
            "member_ids": sorted(str(user_id) for user_id in self.repo.project_member_ids(project.id)),
            "modules_count": self.repo.module_count_for_project(project.id),
            "tasks_count": self.repo.task_count_for_project(project.id),
            "created_at": project.created_at.isoformat(),
            "updated_at": project.updated_at.isoformat(),
        }

    @staticmethod
    def serialize_module(module: Module) -> dict[str, object]:
        return {
            "id": str(module.id),
            "project_id": str(module.project_id),
            "name": module.name,
            "description": module.description,
            "time_display_multiplier": _multiplier_str(module.time_display_multiplier),
            "created_by_id": str(module.created_by_id),
            "created_at": module.created_at.isoformat(),
            "updated_at": module.updated_at.isoformat(),
        }

    # ---------- Access ----------
    def get_visible_project(self, context: RequestUserContext, project_id: UUID) -> Project:
        project = self.repo.get_project(project_id)
        if project is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")
        scope_for(context).ensure_visible(
            self.db, EntityKind.PROJECT, project.id, detail="You do not have access to this project."
        )
        return project

    def _get_mutable_project(self, context: RequestUserContext, project_id: UUID) -> Project:
        project = self.get_visible_project(context, project_id)
        scope_for(context).ensure_can_manage_structure()
        return project

    def _validate_client(self, client_id: UUID | None) -> UUID | None:
        if client_id is not None and self.directory.get_client(client_id) is None:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Client not found.")
        return client_id

    def _validate_members(self, member_ids: list[UUID]) -> set[UUID]:
        requested = set(member_ids)
        found = self.directory.users_by_ids(list(requested))
        missing = requested - set(found)
        if missing:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="member_ids contains unknown users.",
            )
        return requested

    # ---------- Project CRUD ----------
    def list_projects(
        self,
        *,
        context: RequestUserContext,
        page_request: PageRequest,
        client_id: UUID | None = None,
        project_status: ProjectStatus | None = None,
    ) -> tuple[list[Project], int]:
        scope = scope_for(context)
        return self.repo.list_projects(
            scope=scope.scope_filter(EntityKind.PROJECT),
            page_request=page_request,
            client_id=client_id,
            project_status=project_status,
        )

    def get_project(self, *, context: RequestUserContext, project_id: UUID) -> Project:
        return self.get_visible_project(context, project_id)

    def create_project(self, *, context: RequestUserContext, data: ProjectCreateData) -> Project:
        scope_for(context).ensure_can_manage_structure()
        members = self._validate_members(data.member_ids)

        now = utcnow()
        project = Project(
            name=data.name.strip(),
            description=_clean_text(data.description),
            client_id=self._validate_client(data.client_id),
            status=data.status,
            time_display_multiplier=validate_multiplier(data.time_display_multiplier),
            created_by_id=context.user_id,
            created_at=now,
            updated_at=now,
        )
        self.repo.add_project(project)
        self.repo.replace_project_members(project.id, members)
        self._commit("Project could not be saved.")
        self.db.refresh(project)
        logger.info("project_created", project_id=str(project.id))
        return project

    def update_project(self, *, context: RequestUserContext, project_id: UUID, data: ProjectUpdateData) -> Project:
        project = self._get_mutable_project(context, project_id)

        if data.name is not None:
            project.name = data.name.strip()
        if data.description is not None:
            project.description = _clean_text(data.description)
        if data.clear_client:
            project.client_id = None
        elif data.client_id is not None:
            project.client_id = self._validate_client(data.client_id)
        if data.status is not None:
            project.status = data.status
        if data.clear_multiplier:
            project.time_display_multiplier = None
        elif data.time_display_multiplier is not None:
            project.time_display_multiplier = validate_multiplier(data.time_display_multiplier)
        if data.member_ids is not None:
            self.repo.replace_project_members(project.id, self._validate_members(data.member_ids))
        project.updated_at = utcnow()

        self._commit("Project could not be saved.")
        self.db.refresh(project)
        logger.info("project_updated", project_id=str(project.id))
        return project

    def delete_project(self, *, context: RequestUserContext, project_id: UUID) -> None:
        project = self._get_mutable_project(context, project_id)

        if self.repo.module_count_for_project(project.id) > 0:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Cannot delete project with existing modules.",
            )
        if self.repo.task_count_for_project(project.id) > 0:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Cannot delete project with existing tasks.",
            )

        self.repo.delete_project(project)
        self.db.commit()
        logger.info("project_deleted", project_id=str(project_id))

    # ---------- Module CRUD ----------
    def list_modules(
        self,
        *,
        context: RequestUserContext,
        page_request: PageRequest,
        project_id: UUID | None = None,
    ) -> tuple[list[Module], int]:
        if project_id is not None:
            self.get_visible_project(context, project_id)
        scope = scope_for(context)
        return self.repo.list_modules(
            scope=scope.scope_filter(EntityKind.MODULE),
            page_request=page_request,
            project_id=project_id,
        )

    def get_module(self, *, context: RequestUserContext, module_id: UUID) -> Module:
        module = self.repo.get_module(module_id)
        if module is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Module not found.")
        scope_for(context).ensure_visible(
            self.db, EntityKind.MODULE, module.id, detail="You do not have access to this module."
        )
        return module

    def create_module(self, *, context: RequestUserContext, project_id: UUID, data: ModuleCreateData) -> Module:
        project = self._get_mutable_project(context, project_id)

        now = utcnow()
        module = Module(
            project_id=project.id,
            name=data.name.strip(),
            description=_clean_text(data.description),
            time_display_multiplier=validate_multiplier(data.time_display_multiplier),
            created_by_id=context.user_id,
            created_at=now,
            updated_at=now,
        )
        self.repo.add_module(module)
        self._commit("Module could not be saved.")
        self.db.refresh(module)
        logger.info("module_created", module_id=str(module.id), project_id=str(project.id))
        return module

    def update_module(self, *, context: RequestUserContext, module_id: UUID, data: ModuleUpdateData) -> Module:
        module = self.get_module(context=context, module_id=module_id)
        scope_for(context).ensure_can_manage_structure()

        if data.name is not None:
            module.name = data.name.strip()
        if data.description is not None:
            module.description = _clean_text(data.description)
        if data.clear_multiplier:
            module.time_display_multiplier = None
        elif data.time_display_multiplier is not None:
            module.time_display_multiplier = validate_multiplier(data.time_display_multiplier)
        module.updated_at = utcnow()

        self._commit("Module could not be saved.")
        self.db.refresh(module)
        logger.info("module_updated", module_id=str(module.id))
        return module

    def delete_module(self, *, context: RequestUserContext, module_id: UUID) -> None:
        module = self.get_module(context=context, module_id=module_id)
        scope_for(context).ensure_can_manage_structure()

        if self.repo.task_count_for_module(module.id) > 0:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Cannot delete module with existing tasks.",
            )

        self.repo.delete_module(module)
        self.db.commit()
        logger.info("module_deleted", module_id=str(module_id))

    def _commit(self, conflict_detail: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=conflict_detail) from exc
