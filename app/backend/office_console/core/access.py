"""Role-scoped visibility predicates.

One ``AccessScope`` is built per request from the resolved ``RequestUserContext``.
Each variant answers ``scope_filter(kind)`` with a SQLAlchemy predicate that list
and lookup queries AND into their ``where`` clause, plus the mutation guards that
depend on the caller's role.
"""

from __future__ import annotations

import enum
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import ColumnElement, or_, select, true
from sqlalchemy.orm import Session

from office_console.core.auth import RequestUserContext
from office_console.models.entities import (
    CLIENT_ROLES,
    Client,
    Module,
    Project,
    ProjectMember,
    Requirement,
    Task,
    TaskAssignee,
    User,
    UserRole,
    WorkLog,
)


class EntityKind(str, enum.Enum):
    CLIENT = "client"
    PROJECT = "project"
    MODULE = "module"
    TASK = "task"
    WORK_LOG = "work_log"
    USER = "user"
    REQUIREMENT = "requirement"


ENTITY_MODELS = {
    EntityKind.CLIENT: Client,
    EntityKind.PROJECT: Project,
    EntityKind.MODULE: Module,
    EntityKind.TASK: Task,
    EntityKind.WORK_LOG: WorkLog,
    EntityKind.USER: User,
    EntityKind.REQUIREMENT: Requirement,
}


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class AccessScope:
    """Base capability; subclasses narrow visibility per role."""

    role: UserRole

    def __init__(self, context: RequestUserContext) -> None:
        self.context = context

    @property
    def user_id(self) -> UUID:
        return self.context.user_id

    @property
    def client_id(self) -> UUID | None:
        return self.context.client_id

    def scope_filter(self, kind: EntityKind) -> ColumnElement[bool]:
        raise NotImplementedError

    # ---------- Mutation guards ----------
    def ensure_can_manage_clients(self) -> None:
        raise _forbidden("Only administrators can manage clients.")

    def ensure_can_manage_structure(self) -> None:
        """Projects and modules."""

    def ensure_can_manage_users(self) -> None:
        raise _forbidden("Insufficient role permissions to manage users.")

    def ensure_can_manage_user(self, *, target_role: UserRole, target_client_id: UUID | None) -> None:
        self.ensure_can_manage_users()

    def ensure_same_tenant(self, client_id: UUID | None, *, detail: str = "Access denied.") -> None:
        """Re-check a target's tenant at mutation time."""

    def ensure_can_reassign_client(self) -> None:
        raise _forbidden("Only administrators can change the client.")

    def ensure_visible(self, db: Session, kind: EntityKind, entity_id: UUID, *, detail: str = "Access denied.") -> None:
        model = ENTITY_MODELS[kind]
        found = db.scalar(select(model.id).where(model.id == entity_id, self.scope_filter(kind)))
        if found is None:
            raise _forbidden(detail)


class AdminScope(AccessScope):
    role = UserRole.ADMIN

    def scope_filter(self, kind: EntityKind) -> ColumnElement[bool]:
        return true()

    def ensure_can_manage_clients(self) -> None:
        return None

    def ensure_can_manage_users(self) -> None:
        return None

    def ensure_can_manage_user(self, *, target_role: UserRole, target_client_id: UUID | None) -> None:
        return None

    def ensure_can_reassign_client(self) -> None:
        return None


class StaffScope(AccessScope):
    """Sees projects and tasks it created or participates in."""

    role = UserRole.STAFF

    def _project_predicate(self) -> ColumnElement[bool]:
        member_of = select(ProjectMember.project_id).where(ProjectMember.user_id == self.user_id)
        return or_(Project.created_by_id == self.user_id, Project.id.in_(member_of))

    def _task_predicate(self) -> ColumnElement[bool]:
        assigned_to = select(TaskAssignee.task_id).where(TaskAssignee.user_id == self.user_id)
        return or_(Task.created_by_id == self.user_id, Task.id.in_(assigned_to))

    def scope_filter(self, kind: EntityKind) -> ColumnElement[bool]:
        if kind is EntityKind.PROJECT:
            return self._project_predicate()
        if kind is EntityKind.TASK:
            return self._task_predicate()
        if kind is EntityKind.MODULE:
            return Module.project_id.in_(select(Project.id).where(self._project_predicate()))
        if kind is EntityKind.WORK_LOG:
            visible_tasks = select(Task.id).where(self._task_predicate())
            return or_(WorkLog.user_id == self.user_id, WorkLog.task_id.in_(visible_tasks))
        # Clients, users and requirements are not staff-restricted.
        return true()


class ClientScope(AccessScope):
    """Hard-scoped to the caller's tenant."""

    def __init__(self, context: RequestUserContext) -> None:
        if context.client_id is None:
            raise _forbidden("Client account is not linked to a client.")
        super().__init__(context)

    def _client_project_ids(self):
        return select(Project.id).where(Project.client_id == self.client_id)

    def scope_filter(self, kind: EntityKind) -> ColumnElement[bool]:
        if kind is EntityKind.CLIENT:
            return Client.id == self.client_id
        if kind is EntityKind.PROJECT:
            return Project.client_id == self.client_id
        if kind is EntityKind.USER:
            return User.client_id == self.client_id
        if kind is EntityKind.REQUIREMENT:
            return Requirement.client_id == self.client_id
        if kind is EntityKind.MODULE:
            return Module.project_id.in_(self._client_project_ids())
        if kind is EntityKind.TASK:
            return Task.project_id.in_(self._client_project_ids())
        if kind is EntityKind.WORK_LOG:
            return WorkLog.task_id.in_(select(Task.id).where(Task.project_id.in_(self._client_project_ids())))
        raise ValueError(f"Unsupported entity kind: {kind}")

    def ensure_can_manage_structure(self) -> None:
        raise _forbidden("Client accounts cannot manage projects or modules.")

    def ensure_same_tenant(self, client_id: UUID | None, *, detail: str = "Access denied.") -> None:
        if client_id != self.client_id:
            raise _forbidden(detail)


class ClientAdminScope(ClientScope):
    role = UserRole.CLIENT_ADMIN

    def ensure_can_manage_users(self) -> None:
        return None

    def ensure_can_manage_user(self, *, target_role: UserRole, target_client_id: UUID | None) -> None:
        if target_role not in CLIENT_ROLES:
            raise _forbidden("Client administrators can only manage client users.")
        if target_client_id != self.client_id:
            raise _forbidden("Client administrators can only manage users of their own client.")


class ClientUserScope(ClientScope):
    role = UserRole.CLIENT_USER


_SCOPES: dict[UserRole, type[AccessScope]] = {
    UserRole.ADMIN: AdminScope,
    UserRole.STAFF: StaffScope,
    UserRole.CLIENT_ADMIN: ClientAdminScope,
    UserRole.CLIENT_USER: ClientUserScope,
}


def scope_for(context: RequestUserContext) -> AccessScope:
    """Build the access scope for the request's canonical role."""

    return _SCOPES[context.role](context)
