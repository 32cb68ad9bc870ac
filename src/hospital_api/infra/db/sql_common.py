from __future__ import annotations

import operator
from typing import Any, List, Optional, Tuple, Type
from uuid import UUID

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from src.hospital_api.errors import ValidationError
from src.hospital_api.infra.db.models import Base
from src.hospital_api.services.query import ListQuery

_COMPARATORS = {
    "eq": operator.eq,
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
}


def parse_id(raw: Any) -> Optional[UUID]:
    """Return ``raw`` as a UUID, or None when it is not a well-formed id."""

    if isinstance(raw, UUID):
        return raw
    try:
        return UUID(str(raw))
    except ValueError:
        return None


def validate_fields(model: Type[BaseModel], data: Any) -> BaseModel:
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc) from None


def apply_filters(stmt: Select, orm_cls: Type[Base], query: ListQuery) -> Select:
    for flt in query.filters:
        column = getattr(orm_cls, flt.field)
        if flt.op == "in":
            stmt = stmt.where(column.in_(flt.value))
        else:
            stmt = stmt.where(_COMPARATORS[flt.op](column, flt.value))
    return stmt


def fetch_page(session: Session, stmt: Select, orm_cls: Type[Base], query: ListQuery) -> Tuple[List[Any], int]:
    """Run ``stmt`` with the query's filters, ordering and window applied.

    Returns the ORM rows for the requested page and the total number of
    matching rows.
    """

    stmt = apply_filters(stmt, orm_cls, query)
    total = session.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0

    for name, descending in query.sort:
        column = getattr(orm_cls, name)
        stmt = stmt.order_by(column.desc() if descending else column.asc())
    # Stable tie-break so pages never overlap.
    stmt = stmt.order_by(orm_cls.id.asc())

    rows = session.scalars(stmt.offset(query.offset).limit(query.limit)).unique().all()
    return list(rows), total
