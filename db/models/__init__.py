"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.client_storage_entry import ClientStorageEntry

__all__ = [
    "ClientStorageEntry",
]
