"""Adapters that connect factories to concrete model types and storage."""

from .base import Adapter, DefaultAdapter
from .object import ObjectAdapter
from .record import RecordAdapter
from .sqlalchemy import SQLAlchemyAdapter

__all__ = [
    "Adapter",
    "DefaultAdapter",
    "ObjectAdapter",
    "RecordAdapter",
    "SQLAlchemyAdapter",
]
