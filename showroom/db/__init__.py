"""Database layer with SQLAlchemy ORM."""

from .base import Base, get_engine, get_async_session_factory, init_db
from .models import ProductModel, ThreadModel
from .session import get_db_session

__all__ = [
    "Base",
    "get_engine",
    "get_async_session_factory",
    "init_db",
    "ProductModel",
    "ThreadModel",
    "get_db_session",
]
