"""Conversion between application values and Firestore native values.

Every value is classified once into a closed set of kinds and converted by
the handler registered for that kind. Dates become Firestore timestamps on
the way in and timezone-aware UTC datetimes on the way out; the nanosecond
part of a stored timestamp is dropped.
"""

from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from google.api_core.datetime_helpers import DatetimeWithNanoseconds
from google.cloud.firestore_v1 import (
    ArrayRemove, ArrayUnion, DocumentReference, GeoPoint, Increment, Maximum, Minimum,
)
from google.cloud.firestore_v1.transforms import Sentinel
from pydantic import BaseModel

from marketdb.exceptions import UnsupportedValueError


class ValueKind(Enum):
    """Closed set of value kinds the codec understands."""
    NULL = "null"
    SCALAR = "scalar"
    DATE = "date"
    TIMESTAMP = "timestamp"
    LIST = "list"
    MAP = "map"


# Opaque to the codec, understood natively by the store
_NATIVE_SCALARS = (
    bool, int, float, str, bytes,
    DocumentReference, GeoPoint, Sentinel,
    ArrayUnion, ArrayRemove, Increment, Maximum, Minimum,
)


def kind_of(value: Any) -> Optional[ValueKind]:
    """Classify a value; None means it is outside the supported model."""
    if value is None:
        return ValueKind.NULL
    # DatetimeWithNanoseconds subclasses datetime, so it is checked first
    if isinstance(value, DatetimeWithNanoseconds):
        return ValueKind.TIMESTAMP
    if isinstance(value, (datetime, date)):
        return ValueKind.DATE
    if isinstance(value, _NATIVE_SCALARS):
        return ValueKind.SCALAR
    if isinstance(value, (list, tuple)):
        return ValueKind.LIST
    if isinstance(value, (Mapping, BaseModel)):
        return ValueKind.MAP
    return None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def date_to_timestamp(value: Optional[date]) -> Optional[DatetimeWithNanoseconds]:
    """Convert a date or datetime to a Firestore timestamp.

    Naive datetimes are taken as UTC; plain dates map to midnight UTC.
    """
    if value is None:
        return None
    if isinstance(value, DatetimeWithNanoseconds):
        return value
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    value = _as_utc(value)
    return DatetimeWithNanoseconds(
        value.year, value.month, value.day,
        value.hour, value.minute, value.second, value.microsecond,
        tzinfo=timezone.utc,
    )


def timestamp_to_date(value: Optional[datetime]) -> Optional[datetime]:
    """Convert a Firestore timestamp to a plain timezone-aware UTC datetime."""
    if value is None:
        return None
    value = _as_utc(value)
    return datetime(
        value.year, value.month, value.day,
        value.hour, value.minute, value.second, value.microsecond,
        tzinfo=timezone.utc,
    )


def _decode_date(value: date) -> date:
    if isinstance(value, datetime):
        return timestamp_to_date(value)
    return value


def _join(path: str, key: Any) -> str:
    return f"{path}.{key}" if path else str(key)


class DocumentCodec:
    """Recursive encoder/decoder over the closed value model."""

    def __init__(self):
        self._encoders: Dict[ValueKind, Callable[[Any, str], Any]] = {
            ValueKind.NULL: lambda value, path: value,
            ValueKind.SCALAR: lambda value, path: value,
            ValueKind.TIMESTAMP: lambda value, path: value,
            ValueKind.DATE: lambda value, path: date_to_timestamp(value),
            ValueKind.LIST: self._encode_list,
            ValueKind.MAP: self._encode_map,
        }
        self._decoders: Dict[ValueKind, Callable[[Any], Any]] = {
            ValueKind.NULL: lambda value: value,
            ValueKind.SCALAR: lambda value: value,
            ValueKind.DATE: _decode_date,
            ValueKind.TIMESTAMP: timestamp_to_date,
            ValueKind.LIST: lambda value: [self.decode(item) for item in value],
            ValueKind.MAP: lambda value: {key: self.decode(item) for key, item in value.items()},
        }

    def encode(self, value: Any, path: str = "") -> Any:
        """Convert an application value to its store representation.

        Raises:
            UnsupportedValueError: If the value (or a nested one) is outside the model
        """
        kind = kind_of(value)
        if kind is None:
            raise UnsupportedValueError(path, value)
        return self._encoders[kind](value, path)

    def decode(self, value: Any) -> Any:
        """Convert a store value back to its application representation.

        Values the codec does not know pass through unchanged.
        """
        kind = kind_of(value)
        if kind is None:
            return value
        return self._decoders[kind](value)

    def encode_document(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        return self._encode_map(data, "")

    def decode_document(self, data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        if not data:
            return {}
        return {key: self.decode(value) for key, value in data.items()}

    def _encode_list(self, value, path: str):
        return [self.encode(item, _join(path, index)) for index, item in enumerate(value)]

    def _encode_map(self, value, path: str):
        if isinstance(value, BaseModel):
            value = value.model_dump(exclude_unset=True)
        return {str(key): self.encode(item, _join(path, key)) for key, item in value.items()}
