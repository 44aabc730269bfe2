"""Shared list query parameters and page envelopes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from fastapi import HTTPException, Query, status
from sqlalchemy import ColumnElement, Select, func, select
from sqlalchemy.orm import Session

from office_console.core.config import get_settings

SortOrder = Literal["asc", "desc"]


@dataclass(slots=True)
class PageRequest:
    page: int = 1
    page_size: int = 10
    search: str | None = None
    sort_by: str | None = None
    sort_order: SortOrder = "asc"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def search_pattern(self) -> str | None:
        if self.search is None or not self.search.strip():
            return None
        return f"%{self.search.strip().lower()}%"


def get_page_request(
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    search: str | None = Query(default=None, max_length=255),
    sort_by: str | None = Query(default=None, max_length=64),
    sort_order: SortOrder = Query(default="asc"),
) -> PageRequest:
    settings = get_settings()
    size = page_size or settings.default_page_size
    if size > settings.max_page_size:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"page_size must be at most {settings.max_page_size}.",
        )
    return PageRequest(page=page, page_size=size, search=search, sort_by=sort_by, sort_order=sort_order)


def resolve_order_by(
    request: PageRequest,
    sortable: dict[str, ColumnElement],
    *,
    default: str,
) -> ColumnElement:
    key = request.sort_by or default
    column = sortable.get(key)
    if column is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"sort_by must be one of: {', '.join(sorted(sortable))}.",
        )
    return column.desc() if request.sort_order == "desc" else column.asc()


def paginate(db: Session, query: Select, request: PageRequest) -> tuple[list, int]:
    total = db.scalar(select(func.count()).select_from(query.order_by(None).subquery())) or 0
    rows = db.scalars(query.offset(request.offset).limit(request.page_size)).all()
    return list(rows), total


def page_payload(items: list[dict[str, object]], total: int, request: PageRequest) -> dict[str, object]:
    return {
        "items": items,
        "total": total,
        "page": request.page,
        "page_size": request.page_size,
        "total_pages": (total + request.page_size - 1) // request.page_size,
    }
