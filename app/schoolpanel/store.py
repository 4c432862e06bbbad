"""
Generic persistence for one mapped entity type.

The store flushes but never commits: callers wrap each mutation in
`app.schoolpanel.db.atomic()` so a failure leaves the database unchanged.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from sqlalchemy import Table, delete, func, inspect as sa_inspect, select
from sqlalchemy.orm import Session
from sqlalchemy.sql.schema import MetaData

from app.schoolpanel.errors import NotFound, ValidationFailed
from app.schoolpanel.models import Base

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Base)


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    total: int
    page: int
    per_page: int

    @property
    def pages(self) -> int:
        return max(1, (self.total + self.per_page - 1) // self.per_page)

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page * self.per_page < self.total


def association_tables(metadata: MetaData) -> list[Table]:
    """Tables made only of foreign keys that together form the primary key."""
    return [
        t
        for t in metadata.sorted_tables
        if t.foreign_keys and all(c.primary_key and c.foreign_keys for c in t.columns)
    ]


class EntityStore(Generic[T]):
    def __init__(self, session: Session, model: type[T]) -> None:
        self.session = session
        self.model = model
        mapper = sa_inspect(model)
        self._pk = mapper.primary_key[0]
        self._columns = {attr.key for attr in mapper.column_attrs} - {self._pk.key}

    @property
    def entity_type(self) -> str:
        return self.model.__name__

    def paginate(self, per_page: int, page: int = 1) -> Page[T]:
        page = max(1, int(page))
        total = self.session.scalar(select(func.count()).select_from(self.model)) or 0
        items = self.session.scalars(
            select(self.model).order_by(self._pk.asc()).offset((page - 1) * per_page).limit(per_page)
        ).all()
        return Page(items=list(items), total=total, page=page, per_page=per_page)

    def find(self, entity_id: Any) -> T | None:
        return self.session.get(self.model, entity_id)

    def exists(self, column: str, value: Any, *, exclude_id: Any = None) -> bool:
        q = select(self._pk).where(getattr(self.model, column) == value)
        if exclude_id is not None:
            q = q.where(self._pk != exclude_id)
        return self.session.scalar(q.limit(1)) is not None

    def create(self, fields: Mapping[str, Any]) -> T:
        self._check_fields(fields)
        obj = self.model(**fields)
        self.session.add(obj)
        self.session.flush()
        logger.debug("%s created id=%s", self.entity_type, getattr(obj, self._pk.key))
        return obj

    def update(self, fields: Mapping[str, Any], entity_id: Any) -> T:
        obj = self.find(entity_id)
        if obj is None:
            raise NotFound(self.entity_type, entity_id)
        self._check_fields(fields)
        for key, value in fields.items():
            setattr(obj, key, value)
        self.session.flush()
        return obj

    def delete(self, entity_id: Any) -> None:
        obj = self.find(entity_id)
        if obj is None:
            raise NotFound(self.entity_type, entity_id)
        removed = self._clear_associations(entity_id)
        # Loaded collections still point at the rows removed above.
        self.session.expire(obj)
        self.session.delete(obj)
        self.session.flush()
        logger.debug("%s deleted id=%s (association rows removed: %d)", self.entity_type, entity_id, removed)

    def _clear_associations(self, entity_id: Any) -> int:
        table = self.model.__table__
        removed = 0
        for assoc in association_tables(self.model.metadata):
            for fk in assoc.foreign_keys:
                if fk.column.table is table:
                    result = self.session.execute(delete(assoc).where(fk.parent == entity_id))
                    removed += result.rowcount or 0
        return removed

    def _check_fields(self, fields: Mapping[str, Any]) -> None:
        unknown = sorted(set(fields) - self._columns)
        if unknown:
            raise ValidationFailed({key: "Unknown field." for key in unknown})
