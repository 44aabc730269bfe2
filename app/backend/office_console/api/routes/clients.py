"""Client (tenant) endpoints."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from office_console.core.auth import RequestUserContext, get_current_user_context
from office_console.core.pagination import PageRequest, get_page_request, page_payload
from office_console.db.dependencies import get_db_session
from office_console.services.client_service import ClientCreateData, ClientService, ClientUpdateData

router = APIRouter(prefix="/clients", tags=["clients"])


class ClientCreatePayload(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    time_display_multiplier: Decimal | None = Field(default=Decimal("1.00"), ge=Decimal("0.1"), le=Decimal("10"))
    show_assignees: bool = True


class ClientUpdatePayload(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    time_display_multiplier: Decimal | None = Field(default=None, ge=Decimal("0.1"), le=Decimal("10"))
    show_assignees: bool | None = None


@router.get("")
def list_clients(
    page_request: PageRequest = Depends(get_page_request),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    items, total = ClientService(db).list_clients(context=context, page_request=page_request)
    return page_payload(items, total, page_request)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_client(
    payload: ClientCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = ClientService(db)
    client = service.create_client(
        context=context,
        data=ClientCreateData(
            name=payload.name,
            time_display_multiplier=payload.time_display_multiplier,
            show_assignees=payload.show_assignees,
        ),
    )
    return service.serialize_client(client)


@router.get("/{client_id}")
def get_client(
    client_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = ClientService(db)
    return service.serialize_client(service.get_client(context=context, client_id=client_id))


@router.patch("/{client_id}")
def update_client(
    client_id: UUID,
    payload: ClientUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = ClientService(db)
    client = service.update_client(
        context=context,
        client_id=client_id,
        data=ClientUpdateData(
            name=payload.name,
            time_display_multiplier=payload.time_display_multiplier,
            show_assignees=payload.show_assignees,
        ),
    )
    return service.serialize_client(client)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client(
    client_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    ClientService(db).delete_client(context=context, client_id=client_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
