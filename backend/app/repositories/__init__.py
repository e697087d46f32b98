# backend/app/repositories/__init__.py
"""
Repository layer for the dance school platform.

Repositories own all SQL. Services call them and own transactions.
"""

from .base_repository import BaseRepository
from .factory import RepositoryFactory

__all__ = ["BaseRepository", "RepositoryFactory"]
