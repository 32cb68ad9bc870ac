from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Generic, Iterable, List, Mapping, Optional, Tuple, TypeVar

from src.hospital_api.errors import ValidationError

T = TypeVar("T")

OPERATORS = ("gt", "gte", "lt", "lte", "in")
RESERVED_PARAMS = ("select", "sort", "page", "limit")
DEFAULT_LIMIT = 25
MAX_LIMIT = 100
# Integers are bound to signed 64-bit columns and OFFSET values.
MAX_INT = 2**63 - 1
DEFAULT_SORT: List[Tuple[str, bool]] = [("created_at", True)]

# Matches "province[in]" style keys.
_OPERATOR_KEY_RE = re.compile(r"^(?P<field>\w+)\[(?P<op>\w+)\]$")


@dataclass(frozen=True)
class FieldFilter:
    field: str
    op: str  # "eq" or one of OPERATORS
    value: Any


@dataclass
class ListQuery:
    """Parsed filter/sort/paginate parameters for a list endpoint."""

    filters: List[FieldFilter] = field(default_factory=list)
    select: Optional[List[str]] = None
    sort: List[Tuple[str, bool]] = field(default_factory=lambda: list(DEFAULT_SORT))
    page: int = 1
    limit: int = DEFAULT_LIMIT

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class Page(Generic[T]):
    items: List[T]
    total: int
    page: int
    limit: int

    def pagination(self) -> Dict[str, Dict[str, int]]:
        meta: Dict[str, Dict[str, int]] = {}
        if self.page * self.limit < self.total:
            meta["next"] = {"page": self.page + 1, "limit": self.limit}
        if self.page > 1:
            meta["prev"] = {"page": self.page - 1, "limit": self.limit}
        return meta


def _parse_datetime(raw: str) -> datetime:
    # Stored dates are UTC; naive values are read as UTC as well.
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    value = datetime.fromisoformat(raw)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _coerce(field_name: str, raw: str, field_type: type) -> Any:
    try:
        if field_type is int:
            value = int(raw)
            if abs(value) > MAX_INT:
                raise ValidationError.for_field(field_name, f"value {raw!r} is out of range")
            return value
        if field_type is datetime:
            return _parse_datetime(raw)
    except ValueError:
        raise ValidationError.for_field(field_name, f"invalid value {raw!r}") from None
    return raw


def _positive_int(name: str, raw: Optional[str], default: int, maximum: int = MAX_INT) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError.for_field(name, f"{name} must be a positive integer") from None
    if value < 1:
        raise ValidationError.for_field(name, f"{name} must be a positive integer")
    if value > maximum:
        raise ValidationError.for_field(name, f"{name} must not exceed {maximum}")
    return value


def _field_list(name: str, raw: str, allowed: Iterable[str], *, descending: bool = False) -> List[str]:
    names = [part.strip() for part in raw.split(",") if part.strip()]
    unknown = [n for n in names if (n[1:] if descending and n.startswith("-") else n) not in allowed]
    if unknown:
        raise ValidationError.for_field(name, f"unknown field(s): {', '.join(unknown)}")
    return names


def parse_list_query(
    params: Iterable[Tuple[str, str]],
    *,
    fields: Mapping[str, type],
    ignore: Iterable[str] = (),
    extra_select: Iterable[str] = (),
) -> ListQuery:
    """Build a ListQuery from raw query-string pairs.

    ``fields`` is the whitelist of filterable/sortable fields mapped to the
    Python type their values are coerced to. ``extra_select`` names
    serialized fields that may be projected but not filtered or sorted on.
    Keys in ``ignore`` are left for the caller (e.g. explicit route
    parameters).
    """

    ignored = set(ignore)
    query = ListQuery()
    raw_reserved: Dict[str, str] = {}

    for key, raw in params:
        if key in ignored:
            continue
        if key in RESERVED_PARAMS:
            raw_reserved[key] = raw
            continue

        match = _OPERATOR_KEY_RE.match(key)
        if match:
            name, op = match.group("field"), match.group("op")
            if op not in OPERATORS:
                raise ValidationError.for_field(key, f"unsupported operator {op!r}")
        else:
            name, op = key, "eq"

        if name not in fields:
            raise ValidationError.for_field(name, f"cannot filter on {name!r}")

        field_type = fields[name]
        if op == "in":
            value: Any = [_coerce(name, part.strip(), field_type) for part in raw.split(",") if part.strip()]
        else:
            value = _coerce(name, raw, field_type)
        query.filters.append(FieldFilter(field=name, op=op, value=value))

    sortable = set(fields) | {"id"}
    if raw_reserved.get("select"):
        query.select = _field_list("select", raw_reserved["select"], sortable | set(extra_select))
    if raw_reserved.get("sort"):
        query.sort = [
            (name[1:], True) if name.startswith("-") else (name, False)
            for name in _field_list("sort", raw_reserved["sort"], sortable, descending=True)
        ]
    query.limit = _positive_int("limit", raw_reserved.get("limit"), DEFAULT_LIMIT, MAX_LIMIT)
    query.page = _positive_int("page", raw_reserved.get("page"), 1, MAX_INT // query.limit + 1)
    return query


def project(data: Dict[str, Any], select: Optional[List[str]]) -> Dict[str, Any]:
    """Restrict a serialized record to the selected fields (id is always kept)."""

    if not select:
        return data
    keep = set(select) | {"id"}
    return {key: value for key, value in data.items() if key in keep}
