"""
Repository layer exports.
"""

from db.repositories.client_storage_repository import SQLAlchemyClientStorage

__all__ = [
    "SQLAlchemyClientStorage",
]
