from .columns import build_column, build_columns, normalize_field
from .database import Database, ModelMixin, connect

__all__ = [
    "Database",
    "ModelMixin",
    "build_column",
    "build_columns",
    "connect",
    "normalize_field",
]
