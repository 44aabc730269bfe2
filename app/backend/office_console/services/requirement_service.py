"""Application service for client requirements and their activity trail."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
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
    Requirement,
    RequirementActivity,
    RequirementPriority,
    RequirementStatus,
    RequirementType,
)
from office_console.repositories.directory_repository import PARENT_REQUIREMENT_TYPES, DirectoryRepository
from office_console.services.activity import (
    CLEARED,
    REQUIREMENT_SOFT_FIELDS,
    REQUIREMENT_VALUE_FIELDS,
    ActivityRecord,
    creation_record,
    diff_fields,
)

logger = structlog.get_logger()


@dataclass(slots=True)
class RequirementCreateData:
    type: RequirementType
    title: str
    description: str | None = None
    status: RequirementStatus = RequirementStatus.DRAFT
    priority: RequirementPriority = RequirementPriority.MEDIUM
    client_id: UUID | None = None
    parent_id: UUID | None = None


@dataclass(slots=True)
class RequirementUpdateData:
    type: RequirementType | None = None
    title: str | None = None
    description: str | None = None
    status: RequirementStatus | None = None
    priority: RequirementPriority | None = None
    client_id: UUID | None = None
    parent_id: UUID | None = None
    clear_parent: bool = False


@dataclass(slots=True)
class RequirementListFilters:
    type: RequirementType | None = None
    status: RequirementStatus | None = None
    priority: RequirementPriority | None = None
    client_id: UUID | None = None
    parent_id: UUID | None = None


class RequirementService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = DirectoryRepository(db)

    @staticmethod
    def serialize_requirement(requirement: Requirement) -> dict[str, object]:
        return {
            "id": str(requirement.id),
            "type": requirement.type.value,
            "title": requirement.title,
            "description": requirement.description,
            "status": requirement.status.value,
            "priority": requirement.priority.value,
            "client_id": str(requirement.client_id) if requirement.client_id else None,
            "parent_id": str(requirement.parent_id) if requirement.parent_id else None,
            "created_by_id": str(requirement.created_by_id),
            "created_at": requirement.created_at.isoformat(),
            "updated_at": requirement.updated_at.isoformat(),
        }

    @staticmethod
    def serialize_activity(activity: RequirementActivity) -> dict[str, object]:
        return {
            "id": str(activity.id),
            "requirement_id": str(activity.requirement_id),
            "user_id": str(activity.user_id),
            "type": activity.type.value,
            "field": activity.field,
            "old_value": activity.old_value,
            "new_value": activity.new_value,
            "created_at": activity.created_at.isoformat(),
        }

    def _get_existing(self, requirement_id: UUID) -> Requirement:
        requirement = self.repo.get_requirement(requirement_id)
        if requirement is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Requirement not found.")
        return requirement

    def _get_visible(self, context: RequestUserContext, requirement_id: UUID) -> Requirement:
        requirement = self._get_existing(requirement_id)
        scope_for(context).ensure_visible(self.db, EntityKind.REQUIREMENT, requirement.id)
        return requirement

    def _validate_parent(
        self,
        context: RequestUserContext,
        requirement_type: RequirementType,
        parent_id: UUID | None,
        *,
        self_id: UUID | None = None,
    ) -> UUID | None:
        if parent_id is None:
            if requirement_type is RequirementType.CHANGE_REQUEST:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="parent_id is required for change requests.",
                )
            return None
        if parent_id == self_id:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="A requirement cannot be its own parent.",
            )
        parent = self.repo.get_requirement(parent_id)
        if parent is None or parent.type not in PARENT_REQUIREMENT_TYPES:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Parent must be an existing new-project or feature requirement.",
            )
        scope_for(context).ensure_visible(self.db, EntityKind.REQUIREMENT, parent.id)
        return parent_id

    def _activity_rows(
        self, requirement_id: UUID, actor_id: UUID, records: list[ActivityRecord], now: datetime
    ) -> list[RequirementActivity]:
        return [
            RequirementActivity(
                requirement_id=requirement_id,
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

    def list_requirements(
        self,
        *,
        context: RequestUserContext,
        page_request: PageRequest,
        filters: RequirementListFilters,
    ) -> tuple[list[Requirement], int]:
        scope = scope_for(context)
        return self.repo.list_requirements(
            scope=scope.scope_filter(EntityKind.REQUIREMENT),
            page_request=page_request,
            requirement_type=filters.type,
            requirement_status=filters.status,
            priority=filters.priority,
            client_id=filters.client_id,
            parent_id=filters.parent_id,
        )

    def list_parent_candidates(self, *, context: RequestUserContext) -> list[Requirement]:
        scope = scope_for(context)
        return self.repo.list_parent_candidates(scope=scope.scope_filter(EntityKind.REQUIREMENT))

    def get_requirement(self, *, context: RequestUserContext, requirement_id: UUID) -> Requirement:
        return self._get_visible(context, requirement_id)

    def list_activity(self, *, context: RequestUserContext, requirement_id: UUID) -> list[RequirementActivity]:
        requirement = self._get_visible(context, requirement_id)
        return self.repo.list_requirement_activities(requirement.id)

    def create_requirement(self, *, context: RequestUserContext, data: RequirementCreateData) -> Requirement:
        scope = scope_for(context)
        client_id = context.client_id or data.client_id
        scope.ensure_same_tenant(client_id, detail="Invalid client.")
        if client_id is not None and self.repo.get_client(client_id) is None:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Client not found.")
        parent_id = self._validate_parent(context, data.type, data.parent_id)

        now = utcnow()
        requirement = Requirement(
            type=data.type,
            title=data.title.strip(),
            description=(data.description or "").strip() or None,
            status=data.status,
            priority=data.priority,
            client_id=client_id,
            parent_id=parent_id,
            created_by_id=context.user_id,
            created_at=now,
            updated_at=now,
        )
        try:
            self.repo.add_requirement(requirement)
            self.repo.add_requirement_activities(
                self._activity_rows(requirement.id, context.user_id, [creation_record()], now)
            )
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT, detail="Requirement could not be saved."
            ) from exc

        self.db.refresh(requirement)
        logger.info("requirement_created", requirement_id=str(requirement.id))
        return requirement

    def update_requirement(
        self, *, context: RequestUserContext, requirement_id: UUID, data: RequirementUpdateData
    ) -> Requirement:
        requirement = self._get_existing(requirement_id)
        scope = scope_for(context)
        scope.ensure_same_tenant(requirement.client_id)

        if data.client_id is not None and data.client_id != requirement.client_id:
            scope.ensure_can_reassign_client()
            if self.repo.get_client(data.client_id) is None:
                raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Client not found.")

        target_type = data.type or requirement.type
        if data.clear_parent:
            target_parent = None
        elif data.parent_id is not None:
            target_parent = data.parent_id
        else:
            target_parent = requirement.parent_id
        if data.clear_parent or data.parent_id is not None or data.type is not None:
            self._validate_parent(context, target_type, target_parent, self_id=requirement.id)

        incoming: dict[str, object] = {
            "type": data.type,
            "status": data.status,
            "priority": data.priority,
            "title": data.title.strip() if data.title is not None else None,
            "parent_id": CLEARED if data.clear_parent else data.parent_id,
        }
        if data.description is not None:
            incoming["description"] = data.description.strip() or CLEARED

        now = utcnow()
        records = diff_fields(
            requirement,
            incoming,
            value_fields=REQUIREMENT_VALUE_FIELDS,
            soft_fields=REQUIREMENT_SOFT_FIELDS,
        )

        if data.type is not None:
            requirement.type = data.type
        if data.title is not None:
            requirement.title = data.title.strip()
        if data.description is not None:
            requirement.description = data.description.strip() or None
        if data.status is not None:
            requirement.status = data.status
        if data.priority is not None:
            requirement.priority = data.priority
        if data.client_id is not None:
            requirement.client_id = data.client_id
        requirement.parent_id = target_parent
        requirement.updated_at = now

        try:
            if records:
                self.repo.add_requirement_activities(
                    self._activity_rows(requirement.id, context.user_id, records, now)
                )
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT, detail="Requirement could not be saved."
            ) from exc

        self.db.refresh(requirement)
        logger.info("requirement_updated", requirement_id=str(requirement.id), activity_count=len(records))
        return requirement

    def delete_requirement(self, *, context: RequestUserContext, requirement_id: UUID) -> None:
        requirement = self._get_existing(requirement_id)
        scope_for(context).ensure_same_tenant(requirement.client_id)

        if self.repo.child_count(requirement.id) > 0:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Cannot delete requirement with child requirements.",
            )

        self.repo.delete_requirement(requirement)
        self.db.commit()
        logger.info("requirement_deleted", requirement_id=str(requirement_id))
