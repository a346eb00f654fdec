"""Auth adapters."""

from aurora.adapters.auth.memory import InMemoryAuthRepository
from aurora.adapters.auth.postgres import PostgresAuthRepository

__all__ = ["InMemoryAuthRepository", "PostgresAuthRepository"]
