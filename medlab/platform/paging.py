from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import Select, func, inspect, select
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement


T = TypeVar("T")
R = TypeVar("R")


class PageRequest(BaseModel):
    page: int = Field(default=0, ge=0)
    size: int = Field(default=10, ge=1, le=500)
    sort_by: str = "id"
    direction: Literal["ASC", "DESC"] = "ASC"

    @field_validator("direction", mode="before")
    @classmethod
    def _normalize_direction(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


@dataclass(frozen=True)
class Page(Generic[T]):
    content: Sequence[T]
    page: int
    size: int
    total_elements: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_elements / self.size) if self.size else 0

    @property
    def first(self) -> bool:
        return self.page == 0

    @property
    def last(self) -> bool:
        return self.page >= self.total_pages - 1

    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 0

    def map(self, fn: Callable[[T], R]) -> Page[R]:
        return Page(content=[fn(item) for item in self.content], page=self.page, size=self.size, total_elements=self.total_elements)


class PagedResponse(BaseModel, Generic[T]):
    content: list[T]
    page: int
    total_pages: int
    total_elements: int
    size: int
    first: bool
    last: bool
    has_next: bool
    has_previous: bool

    @classmethod
    def from_page(cls, page: Page[T]) -> PagedResponse[T]:
        return cls(
            content=list(page.content),
            page=page.page,
            total_pages=page.total_pages,
            total_elements=page.total_elements,
            size=page.size,
            first=page.first,
            last=page.last,
            has_next=page.has_next,
            has_previous=page.has_previous,
        )


def _sort_column(model: type[Any], sort_by: str) -> Any:
    mapper = inspect(model)
    if sort_by in mapper.columns:
        return getattr(model, sort_by)
    return mapper.primary_key[0]


def find_page(
    session: Session,
    model: type[T],
    predicate: ColumnElement[bool],
    page_request: PageRequest,
) -> Page[T]:
    total = session.scalar(select(func.count()).select_from(model).where(predicate)) or 0

    sort_column = _sort_column(model, page_request.sort_by)
    order = sort_column.desc() if page_request.direction == "DESC" else sort_column.asc()
    stmt: Select[tuple[T]] = (
        select(model)
        .where(predicate)
        .order_by(order)
        .offset(page_request.page * page_request.size)
        .limit(page_request.size)
    )
    rows = session.scalars(stmt).all()
    return Page(content=rows, page=page_request.page, size=page_request.size, total_elements=total)
