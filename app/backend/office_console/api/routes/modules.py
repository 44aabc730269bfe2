"""Module endpoints outside a single project context."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from office_console.core.auth import RequestUserContext, get_current_user_context
from office_console.core.pagination import PageRequest, get_page_request, page_payload
from office_console.db.dependencies import get_db_session
from office_console.services.project_service import ModuleUpdateData, ProjectService

router = APIRouter(prefix="/modules", tags=["modules"])


class ModuleUpdatePayload(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
    time_display_multiplier: Decimal | None = Field(default=None, ge=Decimal("0.1"), le=Decimal("10"))


@router.get("")
def list_modules(
    project_id: UUID | None = Query(default=None),
    page_request: PageRequest = Depends(get_page_request),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = ProjectService(db)
    modules, total = service.list_modules(context=context, page_request=page_request, project_id=project_id)
    return page_payload([service.serialize_module(module) for module in modules], total, page_request)


@router.get("/{module_id}")
def get_module(
    module_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = ProjectService(db)
    return service.serialize_module(service.get_module(context=context, module_id=module_id))


@router.patch("/{module_id}")
def update_module(
    module_id: UUID,
    payload: ModuleUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = ProjectService(db)
    module = service.update_module(
        context=context,
        module_id=module_id,
        data=ModuleUpdateData(
            name=payload.name,
            description=payload.description,
            time_display_multiplier=payload.time_display_multiplier,
            clear_multiplier=(
                "time_display_multiplier" in payload.model_fields_set and payload.time_display_multiplier is None
            ),
        ),
    )
    return service.serialize_module(module)


@router.delete("/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_module(
    module_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    ProjectService(db).delete_module(context=context, module_id=module_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
