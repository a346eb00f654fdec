"""Audit log repository."""

import json
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from aurora.adapters.audit.types import AuditLogCreate, AuditLogEntry
from aurora.adapters.db.app_db import AppDatabase

DEFAULT_RETENTION = timedelta(days=365)


def _json_column(value: Any) -> dict[str, Any] | None:
    """JSONB comes back from asyncpg as text unless a codec is registered."""
    if value is None or isinstance(value, dict):
        return value
    decoded: dict[str, Any] = json.loads(value)
    return decoded


class AuditRepository:
    """Repository for audit log operations."""

    def __init__(self, db: AppDatabase, retention: timedelta = DEFAULT_RETENTION) -> None:
        """Initialize the repository.

        Args:
            db: Application database.
            retention: How long each entry is kept.
        """
        self._db = db
        self._retention = retention

    def _row_to_entry(self, row: dict[str, Any]) -> AuditLogEntry:
        return AuditLogEntry(
            id=row["id"],
            org_id=row["org_id"],
            actor_id=row["actor_id"],
            actor_email=row["actor_email"],
            action=row["action"],
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            changes=_json_column(row["changes"]),
            metadata=_json_column(row["metadata"]),
            ip_address=row["ip_address"],
            user_agent=row["user_agent"],
            created_at=row["created_at"],
            expires_at=row.get("expires_at"),
        )

    async def record(self, entry: AuditLogCreate) -> UUID:
        """Record an audit log entry.

        Args:
            entry: Audit log entry to record.

        Returns:
            ID of the created entry.
        """
        row = await self._db.fetch_one(
            """
            INSERT INTO audit_logs (
                org_id, actor_id, actor_email, action, entity_type, entity_id,
                changes, metadata, ip_address, user_agent, expires_at
            ) VALUES (
                $1, $2, $3, $4, $5, $6, $7::jsonb, $8::jsonb, $9, $10, NOW() + $11::interval
            )
            RETURNING id
            """,
            entry.org_id,
            entry.actor_id,
            entry.actor_email,
            entry.action,
            entry.entity_type,
            entry.entity_id,
            json.dumps(entry.changes) if entry.changes is not None else None,
            json.dumps(entry.metadata) if entry.metadata is not None else None,
            entry.ip_address,
            entry.user_agent,
            self._retention,
        )
        assert row is not None, "INSERT RETURNING should always return a row"
        result: UUID = row["id"]
        return result

    async def list(
        self,
        org_id: UUID,
        limit: int = 50,
        offset: int = 0,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        action: str | None = None,
        actor_id: UUID | None = None,
        entity_type: str | None = None,
    ) -> tuple[list[AuditLogEntry], int]:
        """List audit log entries of one organization with filters.

        Args:
            org_id: Organization to filter by.
            limit: Maximum entries to return.
            offset: Number of entries to skip.
            start_date: Filter entries after this date.
            end_date: Filter entries before this date.
            action: Filter by action type.
            actor_id: Filter by actor.
            entity_type: Filter by entity type.

        Returns:
            Tuple of (entries, total_count).
        """
        conditions = ["org_id = $1"]
        params: list[Any] = [org_id]
        param_idx = 2

        for clause, value in (
            ("created_at >= ${}", start_date),
            ("created_at <= ${}", end_date),
            ("action = ${}", action),
            ("actor_id = ${}", actor_id),
            ("entity_type = ${}", entity_type),
        ):
            if value is not None:
                conditions.append(clause.format(param_idx))
                params.append(value)
                param_idx += 1

        where_clause = " AND ".join(conditions)

        count_row = await self._db.fetch_one(
            f"SELECT COUNT(*) AS total FROM audit_logs WHERE {where_clause}", *params
        )
        rows = await self._db.fetch_all(
            f"""
            SELECT * FROM audit_logs
            WHERE {where_clause}
            ORDER BY created_at DESC
            LIMIT ${param_idx} OFFSET ${param_idx + 1}
            """,
            *params,
            limit,
            offset,
        )

        total_count: int = count_row["total"] if count_row else 0
        return [self._row_to_entry(row) for row in rows], total_count

    async def get(self, org_id: UUID, entry_id: UUID) -> AuditLogEntry | None:
        """Get a single audit log entry.

        Args:
            org_id: Organization ID for access control.
            entry_id: Entry ID to fetch.

        Returns:
            Audit log entry or None if not found.
        """
        row = await self._db.fetch_one(
            "SELECT * FROM audit_logs WHERE org_id = $1 AND id = $2",
            org_id,
            entry_id,
        )
        return self._row_to_entry(row) if row else None

    async def delete_before(self, cutoff: datetime) -> int:
        """Delete audit logs created before the cutoff, or already past expiry.

        Args:
            cutoff: Delete entries older than this.

        Returns:
            Number of entries deleted.
        """
        result = await self._db.execute(
            "DELETE FROM audit_logs WHERE created_at < $1 OR expires_at < NOW()",
            cutoff,
        )
        # Result is like "DELETE 100"
        return int(result.split()[-1])
