# backend/thrive/repositories/__init__.py
"""
Repository layer for the Thrive scheduling backend.

Repositories own every query; services get them from RepositoryFactory.
"""

from .base_repository import BaseRepository
from .factory import RepositoryFactory

__all__ = ["BaseRepository", "RepositoryFactory"]
