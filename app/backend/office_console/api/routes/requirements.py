"""Requirement endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from office_console.core.auth import RequestUserContext, get_current_user_context
from office_console.core.pagination import PageRequest, get_page_request, page_payload
from office_console.db.dependencies import get_db_session
from office_console.models.entities import RequirementPriority, RequirementStatus, RequirementType
from office_console.services.requirement_service import (
    RequirementCreateData,
    RequirementListFilters,
    RequirementService,
    RequirementUpdateData,
)

router = APIRouter(prefix="/requirements", tags=["requirements"])


class RequirementCreatePayload(BaseModel):
    type: RequirementType
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=20000)
    status: RequirementStatus = RequirementStatus.DRAFT
    priority: RequirementPriority = RequirementPriority.MEDIUM
    client_id: UUID | None = None
    parent_id: UUID | None = None


class RequirementUpdatePayload(BaseModel):
    type: RequirementType | None = None
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=20000)
    status: RequirementStatus | None = None
    priority: RequirementPriority | None = None
    client_id: UUID | None = None
    parent_id: UUID | None = None


@router.get("")
def list_requirements(
    requirement_type: RequirementType | None = Query(default=None, alias="type"),
    requirement_status: RequirementStatus | None = Query(default=None, alias="status"),
    priority: RequirementPriority | None = Query(default=None),
    client_id: UUID | None = Query(default=None),
    parent_id: UUID | None = Query(default=None),
    page_request: PageRequest = Depends(get_page_request),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = RequirementService(db)
    rows, total = service.list_requirements(
        context=context,
        page_request=page_request,
        filters=RequirementListFilters(
            type=requirement_type,
            status=requirement_status,
            priority=priority,
            client_id=client_id,
            parent_id=parent_id,
        ),
    )
    return page_payload([service.serialize_requirement(row) for row in rows], total, page_request)


@router.get("/parent-candidates")
def list_parent_candidates(
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = RequirementService(db)
    rows = service.list_parent_candidates(context=context)
    return {"items": [service.serialize_requirement(row) for row in rows]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_requirement(
    payload: RequirementCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = RequirementService(db)
    requirement = service.create_requirement(
        context=context,
        data=RequirementCreateData(
            type=payload.type,
            title=payload.title,
            description=payload.description,
            status=payload.status,
            priority=payload.priority,
            client_id=payload.client_id,
            parent_id=payload.parent_id,
        ),
    )
    return service.serialize_requirement(requirement)


@router.get("/{requirement_id}")
def get_requirement(
    requirement_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = RequirementService(db)
    return service.serialize_requirement(service.get_requirement(context=context, requirement_id=requirement_id))


@router.patch("/{requirement_id}")
def update_requirement(
    requirement_id: UUID,
    payload: RequirementUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = RequirementService(db)
    requirement = service.update_requirement(
        context=context,
        requirement_id=requirement_id,
        data=RequirementUpdateData(
            type=payload.type,
            title=payload.title,
            description=payload.description,
            status=payload.status,
            priority=payload.priority,
            client_id=payload.client_id,
            parent_id=payload.parent_id,
            clear_parent="parent_id" in payload.model_fields_set and payload.parent_id is None,
        ),
    )
    return service.serialize_requirement(requirement)


@router.delete("/{requirement_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_requirement(
    requirement_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    RequirementService(db).delete_requirement(context=context, requirement_id=requirement_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{requirement_id}/activity")
def list_requirement_activity(
    requirement_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = RequirementService(db)
    rows = service.list_activity(context=context, requirement_id=requirement_id)
    return {"items": [service.serialize_activity(row) for row in rows]}
