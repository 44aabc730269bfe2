"""Application service for user accounts and role management."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

import structlog
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from office_console.core.access import EntityKind, scope_for
from office_console.core.auth import RequestUserContext, normalize_role
from office_console.core.clock import utcnow
from office_console.core.pagination import PageRequest
from office_console.models.entities import CLIENT_ROLES, LEGACY_CLIENT_ROLE, User, UserRole
from office_console.repositories.directory_repository import DirectoryRepository

logger = structlog.get_logger()


@dataclass(slots=True)
class UserCreateData:
    name: str
    email: str
    role: UserRole
    client_id: UUID | None = None
    is_active: bool = True


@dataclass(slots=True)
class UserUpdateData:
    name: str | None = None
    email: str | None = None
    role: UserRole | None = None
    client_id: UUID | None = None
    is_active: bool | None = None


def stored_role_values(roles: list[UserRole]) -> list[str]:
    """Role filter values, including the legacy value that still reads as CLIENT_USER."""

    values = [role.value for role in roles]
    if UserRole.CLIENT_USER in roles:
        values.append(LEGACY_CLIENT_ROLE)
    return values


class UserService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = DirectoryRepository(db)

    @staticmethod
    def serialize_user(user: User) -> dict[str, object]:
        return {
            "id": str(user.id),
            "name": user.name,
            "email": user.email,
            "role": normalize_role(user.role).value,
            "client_id": str(user.client_id) if user.client_id else None,
            "is_active": user.is_active,
            "created_at": user.created_at.isoformat(),
            "updated_at": user.updated_at.isoformat(),
        }

    def _resolve_client_assignment(self, role: UserRole, client_id: UUID | None) -> UUID | None:
        if role not in CLIENT_ROLES:
            return None
        if client_id is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="client_id is required for client roles.",
            )
        if self.repo.get_client(client_id) is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Client not found.",
            )
        return client_id

    def _ensure_unique_email(self, email: str, *, exclude_id: UUID | None = None) -> None:
        existing = self.repo.get_user_by_email(email)
        if existing is not None and existing.id != exclude_id:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="A user with this email already exists.",
            )

    def list_users(
        self,
        *,
        context: RequestUserContext,
        page_request: PageRequest,
        roles: list[UserRole] | None = None,
        is_active: bool | None = None,
        client_id: UUID | None = None,
    ) -> tuple[list[User], int]:
        scope = scope_for(context)
        return self.repo.list_users(
            scope=scope.scope_filter(EntityKind.USER),
            page_request=page_request,
            roles=stored_role_values(roles) if roles else None,
            is_active=is_active,
            client_id=client_id,
        )

    def get_user(self, *, context: RequestUserContext, user_id: UUID) -> User:
        user = self.repo.get_user(user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
        scope_for(context).ensure_visible(self.db, EntityKind.USER, user.id)
        return user

    def create_user(self, *, context: RequestUserContext, data: UserCreateData) -> User:
        scope = scope_for(context)
        scope.ensure_can_manage_users()

        client_id = data.client_id
        if client_id is None and data.role in CLIENT_ROLES and context.client_id is not None:
            client_id = context.client_id
        scope.ensure_can_manage_user(target_role=data.role, target_client_id=client_id)
        client_id = self._resolve_client_assignment(data.role, client_id)

        email = data.email.strip().lower()
        self._ensure_unique_email(email)

        now = utcnow()
        user = User(
            name=data.name.strip(),
            email=email,
            role=data.role.value,
            client_id=client_id,
            is_active=data.is_active,
            created_at=now,
            updated_at=now,
        )
        self.repo.add_user(user)
        self._commit()
        self.db.refresh(user)
        logger.info("user_created", target_user_id=str(user.id), role=data.role.value)
        return user

    def update_user(self, *, context: RequestUserContext, user_id: UUID, data: UserUpdateData) -> User:
        user = self.repo.get_user(user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")

        scope = scope_for(context)
        scope.ensure_can_manage_users()
        scope.ensure_same_tenant(user.client_id)
        current_role = normalize_role(user.role)
        scope.ensure_can_manage_user(target_role=current_role, target_client_id=user.client_id)

        target_role = data.role or current_role
        target_client_id = data.client_id if data.client_id is not None else user.client_id
        scope.ensure_can_manage_user(target_role=target_role, target_client_id=target_client_id)
        target_client_id = self._resolve_client_assignment(target_role, target_client_id)

        if data.email is not None:
            email = data.email.strip().lower()
            self._ensure_unique_email(email, exclude_id=user.id)
            user.email = email
        if data.name is not None:
            user.name = data.name.strip()
        if data.is_active is not None:
            user.is_active = data.is_active
        user.role = target_role.value
        user.client_id = target_client_id
        user.updated_at = utcnow()

        self._commit()
        self.db.refresh(user)
        logger.info("user_updated", target_user_id=str(user.id), role=target_role.value)
        return user

    def delete_user(self, *, context: RequestUserContext, user_id: UUID) -> None:
        user = self.repo.get_user(user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")

        scope = scope_for(context)
        scope.ensure_can_manage_users()
        scope.ensure_same_tenant(user.client_id)
        scope.ensure_can_manage_user(target_role=normalize_role(user.role), target_client_id=user.client_id)

        if self.repo.assigned_task_count(user.id) > 0:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Cannot delete user with assigned tasks.",
            )

        self.repo.delete_user(user)
        self._commit(detail="Cannot delete user with existing records.")
        logger.info("user_deleted", target_user_id=str(user_id))

    def _commit(self, detail: str = "A user with this email already exists.") -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail) from exc
