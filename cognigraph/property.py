"""
Dynamic property values for cognitive objects.

A PropertyValue is a closed tagged union (see PropertyKind). Objects hold a
schema-less mapping of names to values, so any note can carry arbitrary
typed attributes.
"""

import datetime as _dt
import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


class PropertyKind(str, Enum):
    """Variants of PropertyValue. The value string is the interchange tag."""

    NULL = "Null"
    STRING = "String"
    INTEGER = "Integer"
    FLOAT = "Float"
    BOOLEAN = "Boolean"
    DATETIME = "DateTime"
    REFERENCE = "Reference"
    LIST = "List"
    JSON = "Json"


class PropertyValue(BaseModel):
    """A single typed value.

    Build values with the classmethod constructors rather than the raw
    model constructor; read them back with the ``as_*`` accessors, which
    return None for any other kind (no coercion between kinds).
    """

    model_config = ConfigDict(frozen=True)

    kind: PropertyKind = PropertyKind.NULL
    value: Any = None

    # ---- constructors ----

    @classmethod
    def null(cls) -> "PropertyValue":
        return cls(kind=PropertyKind.NULL, value=None)

    @classmethod
    def string(cls, s: str) -> "PropertyValue":
        return cls(kind=PropertyKind.STRING, value=str(s))

    @classmethod
    def integer(cls, i: int) -> "PropertyValue":
        return cls(kind=PropertyKind.INTEGER, value=int(i))

    @classmethod
    def float_(cls, f: float) -> "PropertyValue":
        return cls(kind=PropertyKind.FLOAT, value=float(f))

    @classmethod
    def boolean(cls, b: bool) -> "PropertyValue":
        return cls(kind=PropertyKind.BOOLEAN, value=bool(b))

    @classmethod
    def datetime(cls, iso: str | _dt.date) -> "PropertyValue":
        if isinstance(iso, _dt.date):
            iso = iso.isoformat()
        return cls(kind=PropertyKind.DATETIME, value=str(iso))

    @classmethod
    def reference(cls, object_id: str) -> "PropertyValue":
        return cls(kind=PropertyKind.REFERENCE, value=str(object_id))

    @classmethod
    def list_(cls, items: list["PropertyValue"]) -> "PropertyValue":
        return cls(kind=PropertyKind.LIST, value=list(items))

    @classmethod
    def string_list(cls, items: list[str]) -> "PropertyValue":
        return cls.list_([cls.string(s) for s in items])

    @classmethod
    def json_(cls, data: Any) -> "PropertyValue":
        return cls(kind=PropertyKind.JSON, value=data)

    # ---- accessors ----

    def as_string(self) -> str | None:
        return self.value if self.kind is PropertyKind.STRING else None

    def as_integer(self) -> int | None:
        return self.value if self.kind is PropertyKind.INTEGER else None

    def as_float(self) -> float | None:
        return self.value if self.kind is PropertyKind.FLOAT else None

    def as_boolean(self) -> bool | None:
        return self.value if self.kind is PropertyKind.BOOLEAN else None

    def as_datetime(self) -> str | None:
        return self.value if self.kind is PropertyKind.DATETIME else None

    def as_reference(self) -> str | None:
        return self.value if self.kind is PropertyKind.REFERENCE else None

    def as_list(self) -> list["PropertyValue"] | None:
        return self.value if self.kind is PropertyKind.LIST else None

    def as_json(self) -> Any:
        return self.value if self.kind is PropertyKind.JSON else None

    def is_null(self) -> bool:
        return self.kind is PropertyKind.NULL

    # ---- conversions ----

    @classmethod
    def from_json(cls, data: Any) -> "PropertyValue":
        """Build a value from a JSON-like Python value. Never raises.

        Integers outside the signed 64-bit range degrade to Float (Null when
        too large even for a float); mappings become opaque Json when they
        serialize to JSON; anything unrepresentable becomes Null.
        """
        if data is None:
            return cls.null()
        # bool before int: bool is an int subclass
        if isinstance(data, bool):
            return cls.boolean(data)
        if isinstance(data, int):
            if INT64_MIN <= data <= INT64_MAX:
                return cls.integer(data)
            try:
                return cls.float_(float(data))
            except OverflowError:
                return cls.null()
        if isinstance(data, float):
            return cls.float_(data)
        if isinstance(data, str):
            return cls.string(data)
        if isinstance(data, (list, tuple)):
            return cls.list_([cls.from_json(item) for item in data])
        try:
            json.dumps(data)
        except (TypeError, ValueError):
            return cls.null()
        return cls.json_(data)

    def to_json(self) -> Any:
        """Plain JSON-compatible payload (lists unwrapped recursively)."""
        match self.kind:
            case PropertyKind.LIST:
                return [item.to_json() for item in self.value]
            case _:
                return self.value

    def to_dict(self) -> dict[str, Any]:
        """Lossless tagged interchange form: {"type": <kind>, "value": ...}."""
        match self.kind:
            case PropertyKind.NULL:
                return {"type": self.kind.value}
            case PropertyKind.LIST:
                return {"type": self.kind.value, "value": [item.to_dict() for item in self.value]}
            case _:
                return {"type": self.kind.value, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PropertyValue":
        """Inverse of to_dict()."""
        kind = PropertyKind(data.get("type", PropertyKind.NULL.value))
        value = data.get("value")
        match kind:
            case PropertyKind.NULL:
                return cls.null()
            case PropertyKind.STRING:
                return cls.string(value)
            case PropertyKind.INTEGER:
                return cls.integer(value)
            case PropertyKind.FLOAT:
                return cls.float_(value)
            case PropertyKind.BOOLEAN:
                return cls.boolean(value)
            case PropertyKind.DATETIME:
                return cls.datetime(value)
            case PropertyKind.REFERENCE:
                return cls.reference(value)
            case PropertyKind.LIST:
                return cls.list_([cls.from_dict(item) for item in value or []])
            case PropertyKind.JSON:
                return cls.json_(value)

    def to_python(self) -> Any:
        """Payload suitable for a YAML writer."""
        match self.kind:
            case PropertyKind.LIST:
                return [item.to_python() for item in self.value]
            case PropertyKind.REFERENCE:
                return f"[[{self.value}]]"
            case _:
                return self.value


class Property(BaseModel):
    """A named property."""

    name: str
    value: PropertyValue

    @classmethod
    def new(cls, name: str, value: Any) -> "Property":
        if not isinstance(value, PropertyValue):
            value = PropertyValue.from_json(value)
        return cls(name=name, value=value)
