# cronq/core/codec/serde.py
from __future__ import annotations
from typing import (
    Any,
    Dict,
    List,
    Union,
    Mapping,
    Sequence,
    cast,
)
import datetime as dt
import json
from enum import Enum
from pydantic import BaseModel
import dataclasses


Json = Union[None, bool, int, float, str, List['Json'], Dict[str, 'Json']]
"""
Union type for JSON-serializable values.
"""


class SerializationError(Exception):
    """
    Raised when a value cannot be serialized to JSON.
    """

    pass


def to_jsonable(value: Any) -> Json:
    """
    Convert a handler payload to plain JSON before it is stored.

    Result documents are opaque to the engine and never rehydrated, so
    richer values are flattened: datetimes to ISO strings, enums to their
    value, pydantic models and dataclasses to dicts.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        if isinstance(value, Enum):
            return value.value
        return value

    if isinstance(value, Enum):
        return to_jsonable(value.value)

    # datetime.datetime is a subclass of datetime.date
    if isinstance(value, (dt.datetime, dt.date, dt.time)):
        return value.isoformat()

    if isinstance(value, BaseModel):
        return cast(Json, value.model_dump(mode='json'))

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            field.name: to_jsonable(getattr(value, field.name))
            for field in dataclasses.fields(value)
        }

    if isinstance(value, Mapping):
        mapping = cast(Mapping[object, object], value)
        return {str(key): to_jsonable(item) for key, item in mapping.items()}

    if isinstance(value, (set, frozenset)):
        return sorted((to_jsonable(item) for item in value), key=repr)

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        seq = cast(Sequence[object], value)
        return [to_jsonable(item) for item in seq]

    raise SerializationError(f'Cannot serialize value of type {type(value).__name__}')


def dumps_json(value: Any, *, indent: int | None = None) -> str:
    """
    Serialize a value to JSON string.
    """
    return json.dumps(
        to_jsonable(value),
        ensure_ascii=False,
        indent=indent,
        allow_nan=False,  # Prevent NaN values in JSON
    )
