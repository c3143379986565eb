from .base import CanteenRepository
from .in_memory import InMemoryCanteenRepository
from .sql import SqlCanteenRepository

__all__ = ["CanteenRepository", "InMemoryCanteenRepository", "SqlCanteenRepository"]
