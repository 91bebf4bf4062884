from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Generic, TypeVar

from sqlalchemy import and_, exists, select
from sqlalchemy.orm import Session

from medlab.platform.filtering import FilterField, build_filter_predicate
from medlab.platform.paging import Page, PageRequest, find_page


ModelT = TypeVar("ModelT")


class SoftDeleteRepository(Generic[ModelT]):
    """Lookups over a table whose rows carry ``id`` and a ``deleted`` flag."""

    model: type[ModelT]
    filter_fields: tuple[FilterField, ...] = ()

    def get(self, session: Session, record_id: int, *, deleted: bool = False) -> ModelT | None:
        model: Any = self.model
        return session.scalar(select(model).where(and_(model.id == record_id, model.deleted.is_(deleted))))

    def find_one_by(self, session: Session, column: Any, value: Any, *, deleted: bool = False) -> ModelT | None:
        model: Any = self.model
        return session.scalar(select(model).where(and_(column == value, model.deleted.is_(deleted))).limit(1))

    def exists_active(self, session: Session, column: Any, value: Any) -> bool:
        model: Any = self.model
        return bool(session.scalar(select(exists().where(and_(column == value, model.deleted.is_(False))))))

    def find_page(self, session: Session, criteria: Mapping[str, Any], page_request: PageRequest) -> Page[ModelT]:
        predicate = build_filter_predicate(self.filter_fields, criteria)
        return find_page(session, self.model, predicate, page_request)

    def save(self, session: Session, record: ModelT) -> ModelT:
        session.add(record)
        session.commit()
        session.refresh(record)
        return record
