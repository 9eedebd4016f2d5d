"""
Helpers that wrap the SQLAlchemy session work behind model handles
(create, get, list, count, delete) with consistent logging.
"""

from .base import (
    count_instances,
    create_instance,
    create_instances,
    delete_instance,
    get_instance,
    list_instances,
)

__all__ = [
    "count_instances",
    "create_instance",
    "create_instances",
    "delete_instance",
    "get_instance",
    "list_instances",
]
