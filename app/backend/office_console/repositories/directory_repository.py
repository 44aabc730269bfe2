"""Repository helpers for clients, users and requirements."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import ColumnElement, delete, func, or_, select
from sqlalchemy.orm import Session

from office_console.core.pagination import PageRequest, paginate, resolve_order_by
from office_console.models.entities import (
    Client,
    Project,
    Requirement,
    RequirementActivity,
    RequirementPriority,
    RequirementStatus,
    RequirementType,
    TaskAssignee,
    User,
)

CLIENT_SORT_COLUMNS = {
    "name": Client.name,
    "created_at": Client.created_at,
    "updated_at": Client.updated_at,
}
USER_SORT_COLUMNS = {
    "name": User.name,
    "email": User.email,
    "role": User.role,
    "created_at": User.created_at,
}
REQUIREMENT_SORT_COLUMNS = {
    "title": Requirement.title,
    "type": Requirement.type,
    "status": Requirement.status,
    "priority": Requirement.priority,
    "created_at": Requirement.created_at,
    "updated_at": Requirement.updated_at,
}

PARENT_REQUIREMENT_TYPES = (RequirementType.NEW_PROJECT, RequirementType.FEATURE_REQUEST)


class DirectoryRepository:
    """Persistence operations for tenant, account and requirement records."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Clients ----------
    def get_client(self, client_id: UUID) -> Client | None:
        return self.db.scalar(select(Client).where(Client.id == client_id))

    def get_client_by_name(self, name: str) -> Client | None:
        return self.db.scalar(select(Client).where(func.lower(Client.name) == name.strip().lower()))

    def list_clients(
        self, *, scope: ColumnElement[bool], page_request: PageRequest
    ) -> tuple[list[Client], int]:
        query = select(Client).where(scope)
        if page_request.search_pattern:
            query = query.where(func.lower(Client.name).like(page_request.search_pattern))
        order = resolve_order_by(page_request, CLIENT_SORT_COLUMNS, default="name")
        return paginate(self.db, query.order_by(order, Client.id.asc()), page_request)

    def project_counts_by_client(self, client_ids: list[UUID]) -> dict[UUID, int]:
        if not client_ids:
            return {}
        rows = self.db.execute(
            select(Project.client_id, func.count(Project.id))
            .where(Project.client_id.in_(client_ids))
            .group_by(Project.client_id)
        ).all()
        return {row[0]: int(row[1]) for row in rows}

    def add_client(self, client: Client) -> Client:
        self.db.add(client)
        self.db.flush()
        return client

    def delete_client(self, client: Client) -> None:
        self.db.delete(client)
        self.db.flush()

    def user_count_for_client(self, client_id: UUID) -> int:
        return self.db.scalar(select(func.count(User.id)).where(User.client_id == client_id)) or 0

    def project_count_for_client(self, client_id: UUID) -> int:
        return self.db.scalar(select(func.count(Project.id)).where(Project.client_id == client_id)) or 0

    # ---------- Users ----------
    def get_user(self, user_id: UUID) -> User | None:
        return self.db.scalar(select(User).where(User.id == user_id))

    def get_user_by_email(self, email: str) -> User | None:
        return self.db.scalar(select(User).where(User.email == email.strip().lower()))

    def users_by_ids(self, user_ids: list[UUID]) -> dict[UUID, User]:
        if not user_ids:
            return {}
        rows = self.db.scalars(select(User).where(User.id.in_(user_ids))).all()
        return {row.id: row for row in rows}

    def list_users(
        self,
        *,
        scope: ColumnElement[bool],
        page_request: PageRequest,
        roles: list[str] | None = None,
        is_active: bool | None = None,
        client_id: UUID | None = None,
    ) -> tuple[list[User], int]:
        query = select(User).where(scope)
        if roles:
            query = query.where(User.role.in_(roles))
        if is_active is not None:
            query = query.where(User.is_active.is_(is_active))
        if client_id is not None:
            query = query.where(User.client_id == client_id)
        if page_request.search_pattern:
            query = query.where(
                or_(
                    func.lower(User.name).like(page_request.search_pattern),
                    func.lower(User.email).like(page_request.search_pattern),
                )
            )
        order = resolve_order_by(page_request, USER_SORT_COLUMNS, default="name")
        return paginate(self.db, query.order_by(order, User.id.asc()), page_request)

    def add_user(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user

    def delete_user(self, user: User) -> None:
        self.db.delete(user)
        self.db.flush()

    def assigned_task_count(self, user_id: UUID) -> int:
        return self.db.scalar(select(func.count(TaskAssignee.id)).where(TaskAssignee.user_id == user_id)) or 0

    # ---------- Requirements ----------
    def get_requirement(self, requirement_id: UUID) -> Requirement | None:
        return self.db.scalar(select(Requirement).where(Requirement.id == requirement_id))

    def list_requirements(
        self,
        *,
        scope: ColumnElement[bool],
        page_request: PageRequest,
        requirement_type: RequirementType | None = None,
        requirement_status: RequirementStatus | None = None,
        priority: RequirementPriority | None = None,
        client_id: UUID | None = None,
        parent_id: UUID | None = None,
    ) -> tuple[list[Requirement], int]:
        query = select(Requirement).where(scope)
        if requirement_type is not None:
            query = query.where(Requirement.type == requirement_type)
        if requirement_status is not None:
            query = query.where(Requirement.status == requirement_status)
        if priority is not None:
            query = query.where(Requirement.priority == priority)
        if client_id is not None:
            query = query.where(Requirement.client_id == client_id)
        if parent_id is not None:
            query = query.where(Requirement.parent_id == parent_id)
        if page_request.search_pattern:
            query = query.where(
                or_(
                    func.lower(Requirement.title).like(page_request.search_pattern),
                    func.lower(func.coalesce(Requirement.description, "")).like(page_request.search_pattern),
                )
            )
        order = resolve_order_by(page_request, REQUIREMENT_SORT_COLUMNS, default="created_at")
        return paginate(self.db, query.order_by(order, Requirement.id.asc()), page_request)

    def list_parent_candidates(self, *, scope: ColumnElement[bool]) -> list[Requirement]:
        return self.db.scalars(
            select(Requirement)
            .where(scope, Requirement.type.in_(PARENT_REQUIREMENT_TYPES))
            .order_by(Requirement.title.asc(), Requirement.id.asc())
        ).all()

    def child_count(self, requirement_id: UUID) -> int:
        return (
            self.db.scalar(select(func.count(Requirement.id)).where(Requirement.parent_id == requirement_id))
            or 0
        )

    def add_requirement(self, requirement: Requirement) -> Requirement:
        self.db.add(requirement)
        self.db.flush()
        return requirement

    def delete_requirement(self, requirement: Requirement) -> None:
        self.db.execute(delete(RequirementActivity).where(RequirementActivity.requirement_id == requirement.id))
        self.db.delete(requirement)
        self.db.flush()

    def add_requirement_activities(self, activities: list[RequirementActivity]) -> None:
        self.db.add_all(activities)
        self.db.flush()

    def list_requirement_activities(self, requirement_id: UUID) -> list[RequirementActivity]:
        return self.db.scalars(
            select(RequirementActivity)
            .where(RequirementActivity.requirement_id == requirement_id)
            .order_by(
                RequirementActivity.created_at.desc(),
                RequirementActivity.sequence.asc(),
                RequirementActivity.id.asc(),
            )
        ).all()
