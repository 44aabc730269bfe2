"""User account endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from office_console.core.auth import RequestUserContext, get_current_user_context
from office_console.core.pagination import PageRequest, get_page_request, page_payload
from office_console.db.dependencies import get_db_session
from office_console.models.entities import UserRole
from office_console.services.user_service import UserCreateData, UserService, UserUpdateData

router = APIRouter(prefix="/users", tags=["users"])


class UserCreatePayload(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    role: UserRole = UserRole.STAFF
    client_id: UUID | None = None
    is_active: bool = True


class UserUpdatePayload(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = Field(default=None, min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    role: UserRole | None = None
    client_id: UUID | None = None
    is_active: bool | None = None


@router.get("")
def list_users(
    role: list[UserRole] | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    client_id: UUID | None = Query(default=None),
    page_request: PageRequest = Depends(get_page_request),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = UserService(db)
    users, total = service.list_users(
        context=context,
        page_request=page_request,
        roles=role,
        is_active=is_active,
        client_id=client_id,
    )
    return page_payload([service.serialize_user(user) for user in users], total, page_request)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = UserService(db)
    user = service.create_user(
        context=context,
        data=UserCreateData(
            name=payload.name,
            email=payload.email,
            role=payload.role,
            client_id=payload.client_id,
            is_active=payload.is_active,
        ),
    )
    return service.serialize_user(user)


@router.get("/{user_id}")
def get_user(
    user_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = UserService(db)
    return service.serialize_user(service.get_user(context=context, user_id=user_id))


@router.patch("/{user_id}")
def update_user(
    user_id: UUID,
    payload: UserUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = UserService(db)
    user = service.update_user(
        context=context,
        user_id=user_id,
        data=UserUpdateData(
            name=payload.name,
            email=payload.email,
            role=payload.role,
            client_id=payload.client_id,
            is_active=payload.is_active,
        ),
    )
    return service.serialize_user(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    UserService(db).delete_user(context=context, user_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
