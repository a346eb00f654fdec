"""Adapters - Infrastructure implementations of core interfaces.

Adapters are organized by type:
- db/: asyncpg connection pool and schema bootstrap
- auth/: AuthRepository implementations (PostgreSQL, in-memory)
- cache/: Refresh-token revocation cache (Redis, no-op)
- audit/: Audit log recording and storage
"""
