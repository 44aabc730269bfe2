"""Authentication context extraction and role guard utilities."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

import structlog
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from office_console.core.clock import utcnow
from office_console.core.config import get_settings
from office_console.db.dependencies import get_db_session
from office_console.models.entities import CLIENT_ROLES, LEGACY_CLIENT_ROLE, User, UserRole

logger = structlog.get_logger()


def normalize_role(stored_role: str) -> UserRole:
    """Translate a stored role value into the canonical role set.

    Rows written before the client role split still carry ``CLIENT``; they are
    read as ``CLIENT_USER`` until the data migration has rewritten them.
    """

    if stored_role == LEGACY_CLIENT_ROLE:
        return UserRole.CLIENT_USER
    try:
        return UserRole(stored_role)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account role is not recognised.",
        ) from exc


@dataclass(frozen=True)
class RequestUserContext:
    """Authenticated request actor resolved from headers and DB state."""

    user_id: UUID
    email: str
    display_name: str
    role: UserRole
    client_id: UUID | None


def _resolve_email(x_user_email: str | None) -> str | None:
    if x_user_email and x_user_email.strip():
        return x_user_email.strip().lower()

    settings = get_settings()
    if settings.auth_allow_dev_principal:
        return None

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Missing identity header. Expected X-USER-EMAIL or enable development principal fallback.",
    )


def _ensure_dev_principal(db: Session) -> User:
    settings = get_settings()
    email = settings.auth_dev_email.strip().lower()
    user = db.scalar(select(User).where(User.email == email))
    if user is not None:
        return user

    now = utcnow()
    user = User(
        name=settings.auth_dev_display_name.strip() or email,
        email=email,
        role=UserRole.ADMIN.value,
        client_id=None,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("dev_principal_provisioned", user_id=str(user.id))
    return user


def build_user_context(user: User) -> RequestUserContext:
    """Build the request context for a persisted user row."""

    role = normalize_role(user.role)
    if role in CLIENT_ROLES and user.client_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Client account is not linked to a client.",
        )
    return RequestUserContext(
        user_id=user.id,
        email=user.email,
        display_name=user.name,
        role=role,
        client_id=user.client_id if role in CLIENT_ROLES else None,
    )


def get_current_user_context(
    x_user_email: str | None = Header(default=None, alias="X-USER-EMAIL"),
    db: Session = Depends(get_db_session),
) -> RequestUserContext:
    """Resolve current request user from the trusted session header.

    Header strategy:
    - The session provider (reverse proxy) authenticates and forwards the email.
    - Local development falls back to a provisioned admin principal.
    """

    email = _resolve_email(x_user_email)
    if email is None:
        user = _ensure_dev_principal(db)
    else:
        user = db.scalar(select(User).where(User.email == email))
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unknown user.",
            )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive.",
        )

    context = build_user_context(user)
    structlog.contextvars.bind_contextvars(user_id=str(context.user_id), role=context.role.value)
    return context
