"""Project lifecycle and membership endpoints."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from office_console.core.auth import RequestUserContext, get_current_user_context
from office_console.core.pagination import PageRequest, get_page_request, page_payload
from office_console.db.dependencies import get_db_session
from office_console.models.entities import ProjectStatus
from office_console.services.project_service import (
    ModuleCreateData,
    ProjectCreateData,
    ProjectService,
    ProjectUpdateData,
)

router = APIRouter(prefix="/projects", tags=["projects"])


class ProjectCreatePayload(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    client_id: UUID | None = None
    status: ProjectStatus = ProjectStatus.ONGOING
    time_display_multiplier: Decimal | None = Field(default=None, ge=Decimal("0.1"), le=Decimal("10"))
    member_ids: list[UUID] = Field(default_factory=list)


class ProjectUpdatePayload(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    client_id: UUID | None = None
    status: ProjectStatus | None = None
    time_display_multiplier: Decimal | None = Field(default=None, ge=Decimal("0.1"), le=Decimal("10"))
    member_ids: list[UUID] | None = None


class ModuleCreatePayload(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    time_display_multiplier: Decimal | None = Field(default=None, ge=Decimal("0.1"), le=Decimal("10"))


@router.get("")
def list_projects(
    client_id: UUID | None = Query(default=None),
    project_status: ProjectStatus | None = Query(default=None, alias="status"),
    page_request: PageRequest = Depends(get_page_request),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = ProjectService(db)
    projects, total = service.list_projects(
        context=context,
        page_request=page_request,
        client_id=client_id,
        project_status=project_status,
    )
    return page_payload([service.serialize_project(project) for project in projects], total, page_request)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = ProjectService(db)
    project = service.create_project(
        context=context,
        data=ProjectCreateData(
            name=payload.name,
            description=payload.description,
            client_id=payload.client_id,
            status=payload.status,
            time_display_multiplier=payload.time_display_multiplier,
            member_ids=payload.member_ids,
        ),
    )
    return service.serialize_project(project)


@router.get("/{project_id}")
def get_project(
    project_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = ProjectService(db)
    return service.serialize_project(service.get_project(context=context, project_id=project_id))


@router.patch("/{project_id}")
def update_project(
    project_id: UUID,
    payload: ProjectUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = ProjectService(db)
    project = service.update_project(
        context=context,
        project_id=project_id,
        data=ProjectUpdateData(
            name=payload.name,
            description=payload.description,
            client_id=payload.client_id,
            status=payload.status,
            time_display_multiplier=payload.time_display_multiplier,
            member_ids=payload.member_ids,
            clear_client="client_id" in payload.model_fields_set and payload.client_id is None,
            clear_multiplier=(
                "time_display_multiplier" in payload.model_fields_set and payload.time_display_multiplier is None
            ),
        ),
    )
    return service.serialize_project(project)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(
    project_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    ProjectService(db).delete_project(context=context, project_id=project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{project_id}/modules")
def list_project_modules(
    project_id: UUID,
    page_request: PageRequest = Depends(get_page_request),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = ProjectService(db)
    modules, total = service.list_modules(context=context, page_request=page_request, project_id=project_id)
    return page_payload([service.serialize_module(module) for module in modules], total, page_request)


@router.post("/{project_id}/modules", status_code=status.HTTP_201_CREATED)
def create_project_module(
    project_id: UUID,
    payload: ModuleCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = ProjectService(db)
    module = service.create_module(
        context=context,
        project_id=project_id,
        data=ModuleCreateData(
            name=payload.name,
            description=payload.description,
            time_display_multiplier=payload.time_display_multiplier,
        ),
    )
    return service.serialize_module(module)
