from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Iterable, TypeVar

from bson import ObjectId
from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    PlainValidator,
    ValidationError,
    WithJsonSchema,
)

from ..db.mongo.ids import as_utc, parse_object_id
from ..errors import ValidationFailed

M = TypeVar("M", bound=BaseModel)


def _coerce_object_id(value: Any) -> ObjectId:
    oid = parse_object_id(value)
    if oid is None:
        raise ValueError("Invalid ID format")
    return oid


# Validated as a 24-hex string, stored as a real ObjectId.
ObjectIdField = Annotated[
    Any,
    PlainValidator(_coerce_object_id),
    PlainSerializer(str, when_used="json"),
    WithJsonSchema({"type": "string", "pattern": "^[0-9a-fA-F]{24}$"}),
]

NonNegativeFloat = Annotated[float, Field(ge=0)]
NonNegativeInt = Annotated[int, Field(ge=0)]
PositiveInt = Annotated[int, Field(ge=1)]

# Naive inputs are read as UTC.
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class RequestModel(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


_LOCATION_PREFIXES = {"body", "query", "path", "header"}


def error_list(errors: Iterable[dict[str, Any]]) -> list[dict[str, str]]:
    """Flatten pydantic errors into an ordered `[{field, message}]` list."""
    out: list[dict[str, str]] = []
    for e in errors:
        loc = list(e.get("loc") or ())
        if loc and loc[0] in _LOCATION_PREFIXES:
            loc = loc[1:]
        field = ".".join(str(x) for x in loc) or "body"
        msg = str(e.get("msg") or "Invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        out.append({"field": field, "message": msg})
    return out


def validate_payload(model: type[M], data: Any) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ValidationFailed(message="Validation failed", errors=error_list(e.errors()))


def to_document(instance: BaseModel) -> dict[str, Any]:
    """Storage shape of a validated request model (ObjectIds kept)."""
    return instance.model_dump(mode="python", exclude_none=True)
