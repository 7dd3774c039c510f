"""Dynamic field values for the formstate engine.

Every field read or written through a FormHandle travels as a FieldValue,
regardless of how the concrete form stores it. FieldValue is a tagged union:
a ValueKind tag plus the Python payload for that tag.

Equality is structural. Floating point payloads are compared with a
tolerance rather than bitwise, so ``FieldValue.number(0.1 + 0.2)`` equals
``FieldValue.number(0.3)``.
"""

import base64
import datetime as dt
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from dateutil import parser as date_parser

from formstate.errors import SerializationError


REL_TOLERANCE = 1e-9
ABS_TOLERANCE = 1e-12


class ValueKind(str, Enum):
    """Tags of the FieldValue union."""
    TEXT = "text"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    ARRAY = "array"
    OBJECT = "object"
    FILE = "file"
    NULL = "null"


@dataclass(frozen=True)
class FileData:
    """Uploaded file metadata and content.

    Attributes:
        name: Original file name
        size: Size in bytes as reported by the client
        mime_type: MIME type (e.g., "application/pdf")
        data: Raw file content
    """
    name: str
    size: int
    mime_type: str
    data: bytes = b""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "name": self.name,
            "size": self.size,
            "mimeType": self.mime_type,
            "data": base64.b64encode(self.data).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileData":
        """Create FileData from dict."""
        return cls(
            name=data["name"],
            size=data["size"],
            mime_type=data["mimeType"],
            data=base64.b64decode(data.get("data", "")),
        )


def _expect_payload(kind: "ValueKind", payload: Any, types: Tuple[type, ...]) -> Any:
    # bool is an int subclass; only the boolean kind accepts it.
    if not isinstance(payload, types) or (isinstance(payload, bool) and bool not in types):
        raise TypeError(f"{kind.value} value must not be {type(payload).__name__}")
    return payload


def _numbers_close(left: float, right: float) -> bool:
    if math.isnan(left) or math.isnan(right):
        return math.isnan(left) and math.isnan(right)
    return math.isclose(left, right, rel_tol=REL_TOLERANCE, abs_tol=ABS_TOLERANCE)


@dataclass(frozen=True, eq=False)
class FieldValue:
    """Tagged runtime value of a single form field.

    Use the named constructors rather than building instances directly; they
    normalize the payload for each kind (arrays become tuples, objects become
    plain dicts of FieldValue).

    Attributes:
        kind: Which variant of the union this value is
        value: The payload; None for NULL

    Examples:
        >>> FieldValue.text("Ada").as_text()
        'Ada'
        >>> FieldValue.integer(3).as_number()
        3.0
        >>> FieldValue.text("   ").is_empty()
        True
        >>> FieldValue.number(0.1 + 0.2) == FieldValue.number(0.3)
        True
    """
    kind: ValueKind
    value: Any = None

    # Constructors

    @classmethod
    def text(cls, value: str) -> "FieldValue":
        return cls(ValueKind.TEXT, str(value))

    @classmethod
    def number(cls, value: float) -> "FieldValue":
        return cls(ValueKind.NUMBER, float(value))

    @classmethod
    def integer(cls, value: int) -> "FieldValue":
        return cls(ValueKind.INTEGER, int(value))

    @classmethod
    def boolean(cls, value: bool) -> "FieldValue":
        return cls(ValueKind.BOOLEAN, bool(value))

    @classmethod
    def date(cls, value: dt.date) -> "FieldValue":
        if isinstance(value, dt.datetime):
            value = value.date()
        return cls(ValueKind.DATE, value)

    @classmethod
    def datetime(cls, value: dt.datetime) -> "FieldValue":
        return cls(ValueKind.DATETIME, value)

    @classmethod
    def array(cls, items: Optional[List["FieldValue"]] = None) -> "FieldValue":
        return cls(ValueKind.ARRAY, tuple(items or ()))

    @classmethod
    def object(cls, entries: Optional[Dict[str, "FieldValue"]] = None) -> "FieldValue":
        return cls(ValueKind.OBJECT, dict(entries or {}))

    @classmethod
    def file(cls, data: FileData) -> "FieldValue":
        return cls(ValueKind.FILE, data)

    @classmethod
    def null(cls) -> "FieldValue":
        return cls(ValueKind.NULL, None)

    @classmethod
    def from_python(cls, obj: Any) -> "FieldValue":
        """Wrap a plain Python object in the matching FieldValue variant.

        Args:
            obj: str, int, float, bool, date, datetime, list/tuple, dict,
                FileData, None, or an existing FieldValue

        Returns:
            The wrapped value

        Raises:
            SerializationError: If the object has no FieldValue counterpart
        """
        if isinstance(obj, FieldValue):
            return obj
        if obj is None:
            return cls.null()
        # bool is a subclass of int, check it first
        if isinstance(obj, bool):
            return cls.boolean(obj)
        if isinstance(obj, int):
            return cls.integer(obj)
        if isinstance(obj, float):
            return cls.number(obj)
        if isinstance(obj, str):
            return cls.text(obj)
        if isinstance(obj, dt.datetime):
            return cls.datetime(obj)
        if isinstance(obj, dt.date):
            return cls.date(obj)
        if isinstance(obj, FileData):
            return cls.file(obj)
        if isinstance(obj, (list, tuple)):
            return cls.array([cls.from_python(item) for item in obj])
        if isinstance(obj, dict):
            return cls.object({str(k): cls.from_python(v) for k, v in obj.items()})
        raise SerializationError(
            f"Cannot convert {type(obj).__name__} to a field value"
        )

    # Accessors; each returns None on a kind mismatch

    def as_text(self) -> Optional[str]:
        return self.value if self.kind == ValueKind.TEXT else None

    def as_number(self) -> Optional[float]:
        if self.kind in (ValueKind.NUMBER, ValueKind.INTEGER):
            return float(self.value)
        return None

    def as_integer(self) -> Optional[int]:
        if self.kind == ValueKind.INTEGER:
            return self.value
        if self.kind == ValueKind.NUMBER and float(self.value).is_integer():
            return int(self.value)
        return None

    def as_boolean(self) -> Optional[bool]:
        return self.value if self.kind == ValueKind.BOOLEAN else None

    def as_date(self) -> Optional[dt.date]:
        """Return the date payload, parsing ISO 8601 text if necessary."""
        if self.kind == ValueKind.DATE:
            return self.value
        if self.kind == ValueKind.DATETIME:
            return self.value.date()
        if self.kind == ValueKind.TEXT:
            parsed = _parse_iso(self.value)
            return parsed.date() if parsed is not None else None
        return None

    def as_datetime(self) -> Optional[dt.datetime]:
        """Return the datetime payload, parsing ISO 8601 text if necessary."""
        if self.kind == ValueKind.DATETIME:
            return self.value
        if self.kind == ValueKind.TEXT:
            return _parse_iso(self.value)
        return None

    def as_array(self) -> Optional[List["FieldValue"]]:
        return list(self.value) if self.kind == ValueKind.ARRAY else None

    def as_object(self) -> Optional[Dict[str, "FieldValue"]]:
        return dict(self.value) if self.kind == ValueKind.OBJECT else None

    def as_file(self) -> Optional[FileData]:
        return self.value if self.kind == ValueKind.FILE else None

    def is_null(self) -> bool:
        return self.kind == ValueKind.NULL

    def is_empty(self) -> bool:
        """Whitespace-only text, empty arrays, empty objects and null are empty."""
        if self.kind == ValueKind.TEXT:
            return not self.value.strip()
        if self.kind in (ValueKind.ARRAY, ValueKind.OBJECT):
            return len(self.value) == 0
        return self.kind == ValueKind.NULL

    def to_display(self) -> str:
        """Human-readable rendering used in messages and inspectors."""
        if self.kind == ValueKind.TEXT:
            return self.value
        if self.kind == ValueKind.BOOLEAN:
            return "true" if self.value else "false"
        if self.kind in (ValueKind.DATE, ValueKind.DATETIME):
            return self.value.isoformat()
        if self.kind == ValueKind.ARRAY:
            return "[" + ", ".join(item.to_display() for item in self.value) + "]"
        if self.kind == ValueKind.OBJECT:
            return "{" + ", ".join(
                f"{key}: {item.to_display()}" for key, item in sorted(self.value.items())
            ) + "}"
        if self.kind == ValueKind.FILE:
            return self.value.name
        if self.kind == ValueKind.NULL:
            return "null"
        return str(self.value)

    # Serialization

    def to_json(self) -> Dict[str, Any]:
        """Convert to a tagged, JSON-compatible dict.

        Examples:
            >>> FieldValue.integer(4).to_json()
            {'kind': 'integer', 'value': 4}
        """
        if self.kind in (ValueKind.DATE, ValueKind.DATETIME):
            payload: Any = self.value.isoformat()
        elif self.kind == ValueKind.ARRAY:
            payload = [item.to_json() for item in self.value]
        elif self.kind == ValueKind.OBJECT:
            payload = {key: item.to_json() for key, item in self.value.items()}
        elif self.kind == ValueKind.FILE:
            payload = self.value.to_dict()
        else:
            payload = self.value
        return {"kind": self.kind.value, "value": payload}

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "FieldValue":
        """Rebuild a FieldValue from the output of ``to_json``.

        Raises:
            SerializationError: If the payload is malformed
        """
        try:
            kind = ValueKind(data["kind"])
            payload = data.get("value")
            if kind == ValueKind.TEXT:
                return cls.text(_expect_payload(kind, payload, (str,)))
            if kind == ValueKind.NUMBER:
                return cls.number(_expect_payload(kind, payload, (int, float)))
            if kind == ValueKind.INTEGER:
                return cls.integer(_expect_payload(kind, payload, (int,)))
            if kind == ValueKind.BOOLEAN:
                return cls.boolean(_expect_payload(kind, payload, (bool,)))
            if kind == ValueKind.DATE:
                return cls.date(date_parser.isoparse(payload).date())
            if kind == ValueKind.DATETIME:
                return cls.datetime(date_parser.isoparse(payload))
            if kind == ValueKind.ARRAY:
                return cls.array([cls.from_json(item) for item in payload])
            if kind == ValueKind.OBJECT:
                return cls.object({key: cls.from_json(item) for key, item in payload.items()})
            if kind == ValueKind.FILE:
                return cls.file(FileData.from_dict(payload))
            return cls.null()
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise SerializationError(f"Malformed field value payload: {exc}") from exc

    # Equality

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, FieldValue):
            return NotImplemented
        numeric = (ValueKind.NUMBER, ValueKind.INTEGER)
        if self.kind in numeric and other.kind in numeric:
            if self.kind == ValueKind.INTEGER and other.kind == ValueKind.INTEGER:
                return self.value == other.value
            return _numbers_close(float(self.value), float(other.value))
        if self.kind != other.kind:
            return False
        if self.kind == ValueKind.ARRAY:
            return len(self.value) == len(other.value) and all(
                left == right for left, right in zip(self.value, other.value)
            )
        if self.kind == ValueKind.OBJECT:
            return self.value.keys() == other.value.keys() and all(
                self.value[key] == other.value[key] for key in self.value
            )
        return self.value == other.value

    def __ne__(self, other: Any) -> bool:
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    # Tolerant equality cannot be made consistent with hashing.
    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"FieldValue.{self.kind.value}({self.value!r})"


def _parse_iso(text: str) -> Optional[dt.datetime]:
    try:
        return date_parser.isoparse(text.strip())
    except (ValueError, OverflowError):
        return None


__all__ = [
    "ValueKind",
    "FileData",
    "FieldValue",
]
