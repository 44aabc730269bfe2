"""Application service for client (tenant) records."""

from __future__ import annotations

from dataclasses import dataclass
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
from office_console.models.entities import Client
from office_console.repositories.directory_repository import DirectoryRepository
from office_console.services.durations import validate_multiplier

logger = structlog.get_logger()


@dataclass(slots=True)
class ClientCreateData:
    name: str
    time_display_multiplier: Decimal | None = Decimal("1.00")
    show_assignees: bool = True


@dataclass(slots=True)
class ClientUpdateData:
    name: str | None = None
    time_display_multiplier: Decimal | None = None
    show_assignees: bool | None = None


class ClientService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = DirectoryRepository(db)

    @staticmethod
    def serialize_client(client: Client, *, projects_count: int | None = None) -> dict[str, object]:
        payload: dict[str, object] = {
            "id": str(client.id),
            "name": client.name,
            "time_display_multiplier": (
                str(client.time_display_multiplier) if client.time_display_multiplier is not None else None
            ),
            "show_assignees": client.show_assignees,
            "created_at": client.created_at.isoformat(),
            "updated_at": client.updated_at.isoformat(),
        }
        if projects_count is not None:
            payload["projects_count"] = projects_count
        return payload

    def _get_visible_client(self, context: RequestUserContext, client_id: UUID) -> Client:
        client = self.repo.get_client(client_id)
        if client is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found.")
        scope_for(context).ensure_visible(self.db, EntityKind.CLIENT, client.id)
        return client

    def _ensure_unique_name(self, name: str, *, exclude_id: UUID | None = None) -> None:
        existing = self.repo.get_client_by_name(name)
        if existing is not None and existing.id != exclude_id:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="A client with this name already exists.",
            )

    def list_clients(
        self, *, context: RequestUserContext, page_request: PageRequest
    ) -> tuple[list[dict[str, object]], int]:
        scope = scope_for(context)
        clients, total = self.repo.list_clients(scope=scope.scope_filter(EntityKind.CLIENT), page_request=page_request)
        counts = self.repo.project_counts_by_client([client.id for client in clients])
        return [self.serialize_client(client, projects_count=counts.get(client.id, 0)) for client in clients], total

    def get_client(self, *, context: RequestUserContext, client_id: UUID) -> Client:
        return self._get_visible_client(context, client_id)

    def create_client(self, *, context: RequestUserContext, data: ClientCreateData) -> Client:
        scope_for(context).ensure_can_manage_clients()
        name = data.name.strip()
        self._ensure_unique_name(name)

        now = utcnow()
        client = Client(
            name=name,
            time_display_multiplier=validate_multiplier(data.time_display_multiplier),
            show_assignees=data.show_assignees,
            created_at=now,
            updated_at=now,
        )
        self.repo.add_client(client)
        self._commit("A client with this name already exists.")
        self.db.refresh(client)
        logger.info("client_created", client_id=str(client.id))
        return client

    def update_client(self, *, context: RequestUserContext, client_id: UUID, data: ClientUpdateData) -> Client:
        client = self.repo.get_client(client_id)
        if client is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found.")
        scope_for(context).ensure_can_manage_clients()

        if data.name is not None:
            name = data.name.strip()
            self._ensure_unique_name(name, exclude_id=client.id)
            client.name = name
        if data.time_display_multiplier is not None:
            client.time_display_multiplier = validate_multiplier(data.time_display_multiplier)
        if data.show_assignees is not None:
            client.show_assignees = data.show_assignees
        client.updated_at = utcnow()

        self._commit("A client with this name already exists.")
        self.db.refresh(client)
        logger.info("client_updated", client_id=str(client.id))
        return client

    def delete_client(self, *, context: RequestUserContext, client_id: UUID) -> None:
        client = self.repo.get_client(client_id)
        if client is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found.")
        scope_for(context).ensure_can_manage_clients()

        if self.repo.user_count_for_client(client.id) > 0:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Cannot delete client with existing users.",
            )
        if self.repo.project_count_for_client(client.id) > 0:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Cannot delete client with existing projects.",
            )

        self.repo.delete_client(client)
        self.db.commit()
        logger.info("client_deleted", client_id=str(client_id))

    def _commit(self, conflict_detail: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=conflict_detail) from exc
