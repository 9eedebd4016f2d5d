from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Dict

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum as SqlEnum,
    Float,
    Integer,
    LargeBinary,
    String,
    Text,
)

from modelsuite.exceptions import FieldTypeError

_PYTHON_TYPES = {
    str: "text",
    int: "integer",
    float: "number",
    bool: "boolean",
    datetime: "date",
    date: "date",
    bytes: "binary",
    dict: "object",
}


def normalize_field(field: Any) -> Dict[str, Any]:
    """Expand shorthand field definitions into the ``{"type": ...}`` form."""

    if isinstance(field, Mapping):
        return dict(field)
    if isinstance(field, str):
        return {"type": field}
    if isinstance(field, (list, tuple)):
        return {"type": "enum", "values": list(field)}
    if isinstance(field, type) and field in _PYTHON_TYPES:
        normalized = {"type": _PYTHON_TYPES[field]}
        if field is date:
            normalized["time"] = False
        return normalized
    raise FieldTypeError("?", field)


def _column_type(table: str, name: str, field: Dict[str, Any]):
    field_type = field.get("type")
    if field_type == "text":
        size = field.get("size")
        return String(size) if size else Text()
    if field_type == "number":
        return Float()
    if field_type in ("integer", "serial"):
        return Integer()
    if field_type == "boolean":
        return Boolean()
    if field_type == "date":
        return Date() if field.get("time") is False else DateTime()
    if field_type == "enum":
        values = field.get("values")
        if not values:
            raise FieldTypeError(name, field_type)
        return SqlEnum(*[str(v) for v in values], name=f"{table}_{name}_enum")
    if field_type == "object":
        return JSON()
    if field_type == "binary":
        return LargeBinary()
    raise FieldTypeError(name, field_type)


def build_column(table: str, name: str, field: Any) -> Column:
    """Map one field definition onto a SQLAlchemy ``Column``."""

    try:
        field = normalize_field(field)
    except FieldTypeError as exc:
        raise FieldTypeError(name, exc.field_type) from None

    column_type = _column_type(table, name, field)
    is_key = bool(field.get("key")) or field.get("type") == "serial"
    kwargs: Dict[str, Any] = {
        "primary_key": is_key,
        "nullable": not (is_key or field.get("required")),
        "unique": bool(field.get("unique")) or None,
        "index": bool(field.get("index")) or None,
    }
    if field.get("type") == "serial":
        kwargs["autoincrement"] = True

    default = field.get("default", field.get("defaultValue"))
    if default is not None:
        kwargs["default"] = default

    column_name = field.get("mapsTo") or name
    return Column(column_name, column_type, **kwargs)


def build_columns(table: str, fields: Mapping) -> Dict[str, Column]:
    return {name: build_column(table, name, field) for name, field in fields.items()}
