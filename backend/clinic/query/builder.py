"""
List-query builder shared by every list endpoint.

Turns a raw query string into a Mongo filter, projection, sort, and page
window. Reserved keys (`select`, `sort`, `page`, `limit`, `search`) never
become filters; everything else does:

    ?status=active             -> {"status": "active"}
    ?price[gte]=10&price[lt]=50 -> {"price": {"$gte": 10.0, "$lt": 50.0}}
    ?tags[in]=a,b              -> {"tags": {"$in": ["a", "b"]}}

The page query and the total count always use the same filter document.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from fastapi import Request

from ..db.mongo.collection import MongoCollection
from ..db.mongo.ids import parse_object_id
from ..errors import ValidationFailed
from ..settings import settings

RESERVED_KEYS = frozenset({"select", "sort", "page", "limit", "search"})

OPERATORS = {
    "gt": "$gt",
    "gte": "$gte",
    "lt": "$lt",
    "lte": "$lte",
    "in": "$in",
}

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*$")
_KEY_RE = re.compile(r"^(?P<field>[^\[\]]+)(?:\[(?P<op>[^\[\]]*)\])?$")
_INT_RE = re.compile(r"^[+-]?\d+$")

_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}


def _cast_str(raw: str) -> Any:
    return raw


def _cast_number(raw: str) -> Any:
    s = raw.strip()
    if _INT_RE.match(s):
        return int(s)
    return float(s)


def _cast_int(raw: str) -> Any:
    s = raw.strip()
    if not _INT_RE.match(s):
        raise ValueError("not an integer")
    return int(s)


def _cast_bool(raw: str) -> Any:
    s = raw.strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    raise ValueError("not a boolean")


def _cast_date(raw: str) -> Any:
    s = raw.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _cast_object_id(raw: str) -> Any:
    oid = parse_object_id(raw)
    if oid is None:
        raise ValueError("not an ObjectId")
    return oid


CASTERS: dict[str, Callable[[str], Any]] = {
    "str": _cast_str,
    "number": _cast_number,
    "int": _cast_int,
    "bool": _cast_bool,
    "date": _cast_date,
    "objectid": _cast_object_id,
}

_TYPE_LABELS = {
    "number": "a number",
    "int": "an integer",
    "bool": "a boolean",
    "date": "an ISO date",
    "objectid": "a valid ID",
}


@dataclass(frozen=True)
class QuerySpec:
    """Per-resource knobs for the list builder."""

    default_sort: str = "-createdAt"
    search_fields: tuple[str, ...] = ()
    field_types: Mapping[str, str] = field(default_factory=dict)

    def type_of(self, name: str) -> str:
        if name == "_id":
            return "objectid"
        if name in ("createdAt", "updatedAt"):
            return self.field_types.get(name, "date")
        return self.field_types.get(name, "str")


@dataclass(slots=True)
class ListQuery:
    filter: dict[str, Any]
    projection: dict[str, int] | None
    sort: list[tuple[str, int]]
    page: int
    limit: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(slots=True)
class ListResult:
    items: list[dict[str, Any]]
    total: int
    page: int
    limit: int

    @property
    def pagination(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.page * self.limit < self.total:
            out["next"] = {"page": self.page + 1, "limit": self.limit}
        if self.page > 1:
            out["prev"] = {"page": self.page - 1, "limit": self.limit}
        return out


def query_params(request: Request) -> dict[str, list[str]]:
    """Collect the raw query string, keeping repeated keys."""
    out: dict[str, list[str]] = {}
    for k, v in request.query_params.multi_items():
        out.setdefault(k, []).append(v)
    return out


def _values(raw: str | Iterable[str]) -> list[str]:
    if isinstance(raw, str):
        return [raw]
    return [str(v) for v in raw]


def _last(raw: str | Iterable[str] | None) -> str | None:
    if raw is None:
        return None
    vals = _values(raw)
    return vals[-1] if vals else None


def _check_field_name(name: str, *, param: str) -> str:
    if not _FIELD_RE.match(name):
        raise ValidationFailed.for_field(param, f"Invalid field name '{name}'")
    return name


def _cast(spec: QuerySpec, name: str, raw: str, *, param: str) -> Any:
    kind = spec.type_of(name)
    caster = CASTERS.get(kind, _cast_str)
    try:
        return caster(raw)
    except ValueError:
        label = _TYPE_LABELS.get(kind, "valid")
        raise ValidationFailed.for_field(param, f"{name} must be {label}")


def _positive_int(raw: str | None, *, param: str, default: int) -> int:
    if raw is None or str(raw).strip() == "":
        return default
    s = str(raw).strip()
    if not _INT_RE.match(s) or int(s) < 1:
        raise ValidationFailed.for_field(param, f"{param} must be a positive integer")
    return int(s)


def parse_filters(params: Mapping[str, str | Iterable[str]], spec: QuerySpec) -> dict[str, Any]:
    conditions: dict[str, dict[str, Any]] = {}

    for key, raw in params.items():
        if key in RESERVED_KEYS:
            continue

        m = _KEY_RE.match(key)
        if not m:
            raise ValidationFailed.for_field(key, f"Invalid query parameter '{key}'")
        name = _check_field_name(m.group("field"), param=key)
        op = m.group("op")
        values = _values(raw)
        if not values:
            continue

        cond = conditions.setdefault(name, {})
        if op is None:
            cast = [_cast(spec, name, v, param=key) for v in values]
            if len(cast) == 1:
                cond["$eq"] = cast[0]
            else:
                cond["$in"] = cast
            continue

        if op not in OPERATORS:
            raise ValidationFailed.for_field(key, f"Unsupported operator '{op}' in '{key}'")

        if op == "in":
            parts = [p.strip() for v in values for p in v.split(",") if p.strip()]
            cond["$in"] = [_cast(spec, name, p, param=key) for p in parts]
        else:
            cond[OPERATORS[op]] = _cast(spec, name, values[-1], param=key)

    out: dict[str, Any] = {}
    for name, cond in conditions.items():
        if set(cond) == {"$eq"}:
            out[name] = cond["$eq"]
        else:
            out[name] = cond
    return out


def parse_projection(raw: str | None) -> dict[str, int] | None:
    if not raw or not raw.strip():
        return None
    fields = [f.strip() for f in raw.split(",") if f.strip()]
    projection = {_check_field_name(f, param="select"): 1 for f in fields}
    projection["_id"] = 1
    return projection


def parse_sort(raw: str | None, default: str) -> list[tuple[str, int]]:
    text = raw if raw and raw.strip() else default
    out: list[tuple[str, int]] = []
    for part in text.split(","):
        p = part.strip()
        if not p:
            continue
        direction = 1
        if p.startswith("-"):
            direction = -1
            p = p[1:]
        elif p.startswith("+"):
            p = p[1:]
        out.append((_check_field_name(p, param="sort"), direction))
    # Stable page boundaries need a total order.
    if not any(name == "_id" for name, _ in out):
        out.append(("_id", 1))
    return out


def search_clause(term: str | None, spec: QuerySpec) -> dict[str, Any] | None:
    t = (term or "").strip()
    if not t or not spec.search_fields:
        return None
    pattern = re.escape(t)
    return {"$or": [{f: {"$regex": pattern, "$options": "i"}} for f in spec.search_fields]}


def combine_filters(*clauses: dict[str, Any] | None) -> dict[str, Any]:
    parts = [c for c in clauses if c]
    if not parts:
        return {}
    if len(parts) == 1:
        return dict(parts[0])
    return {"$and": parts}


def build_list_query(
    params: Mapping[str, str | Iterable[str]],
    spec: QuerySpec,
    *,
    base_filter: dict[str, Any] | None = None,
) -> ListQuery:
    page = _positive_int(_last(params.get("page")), param="page", default=1)
    limit = _positive_int(
        _last(params.get("limit")),
        param="limit",
        default=int(settings.default_page_limit),
    )
    limit = min(limit, max(1, int(settings.max_page_limit)))

    return ListQuery(
        filter=combine_filters(
            base_filter,
            parse_filters(params, spec),
            search_clause(_last(params.get("search")), spec),
        ),
        projection=parse_projection(_last(params.get("select"))),
        sort=parse_sort(_last(params.get("sort")), spec.default_sort),
        page=page,
        limit=limit,
    )


def run_list_query(collection: MongoCollection, query: ListQuery) -> ListResult:
    total = collection.count(query.filter)
    items = collection.find(
        query.filter,
        projection=query.projection,
        sort=query.sort,
        skip=query.skip,
        limit=query.limit,
    )
    return ListResult(items=items, total=total, page=query.page, limit=query.limit)


def list_resource(
    collection: MongoCollection,
    params: Mapping[str, str | Iterable[str]],
    spec: QuerySpec,
    *,
    base_filter: dict[str, Any] | None = None,
) -> ListResult:
    return run_list_query(collection, build_list_query(params, spec, base_filter=base_filter))
