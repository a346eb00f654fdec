"""Non-blocking audit recording."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Any, Protocol
from uuid import UUID, uuid4

from fastapi import Request

from aurora.adapters.audit.types import AuditLogCreate, AuditLogEntry
from aurora.core.detached import run_detached


class AuditSink(Protocol):
    """Anything that can durably store an audit entry."""

    async def record(self, entry: AuditLogCreate) -> Any:
        """Store the entry."""
        ...


def get_client_ip(request: Request) -> str | None:
    """Extract client IP from request.

    Args:
        request: FastAPI request object.

    Returns:
        Client IP address or None.
    """
    # Check X-Forwarded-For header first (for proxied requests)
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        # Take the first IP in the chain
        return forwarded_for.split(",")[0].strip()

    if request.client:
        return request.client.host

    return None


class AuditRecorder:
    """Fire-and-forget front of the audit repository.

    ``record`` returns immediately. Write failures are logged as
    ``audit_log_failed`` and never reach the request that triggered them.
    """

    def __init__(self, sink: AuditSink) -> None:
        """Initialize the recorder.

        Args:
            sink: Durable storage for entries.
        """
        self._sink = sink
        self._tasks: set[asyncio.Task[Any]] = set()

    def record(self, entry: AuditLogCreate) -> None:
        """Schedule an entry to be written."""
        task = run_detached(
            self._sink.record(entry),
            "audit_log_failed",
            action=entry.action,
            org_id=str(entry.org_id) if entry.org_id else None,
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def record_request(
        self,
        request: Request,
        action: str,
        *,
        org_id: UUID | None = None,
        actor_id: UUID | None = None,
        actor_email: str | None = None,
        entity_type: str | None = None,
        entity_id: str | UUID | None = None,
        changes: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Build an entry from the request context and schedule it."""
        self.record(
            self.from_request(
                request,
                action,
                org_id=org_id,
                actor_id=actor_id,
                actor_email=actor_email,
                entity_type=entity_type,
                entity_id=entity_id,
                changes=changes,
                metadata=metadata,
            )
        )

    @staticmethod
    def from_request(
        request: Request,
        action: str,
        *,
        org_id: UUID | None = None,
        actor_id: UUID | None = None,
        actor_email: str | None = None,
        entity_type: str | None = None,
        entity_id: str | UUID | None = None,
        changes: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AuditLogCreate:
        """Build an entry, filling client IP and user agent from the request."""
        return AuditLogCreate(
            org_id=org_id,
            actor_id=actor_id,
            actor_email=actor_email,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            changes=changes,
            metadata=metadata,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for outstanding writes."""
        if self._tasks:
            await asyncio.wait(list(self._tasks), timeout=timeout)


class InMemoryAuditSink:
    """Keeps entries in a list. Used by tests and when no database is configured."""

    def __init__(self) -> None:
        self.entries: list[AuditLogEntry] = []

    async def record(self, entry: AuditLogCreate) -> UUID:
        stored = AuditLogEntry(id=uuid4(), created_at=datetime.now(UTC), **entry.model_dump())
        self.entries.append(stored)
        return stored.id

    async def list(
        self,
        org_id: UUID,
        limit: int = 50,
        offset: int = 0,
        action: str | None = None,
    ) -> tuple[list[AuditLogEntry], int]:
        matching = [
            e
            for e in reversed(self.entries)
            if e.org_id == org_id and (action is None or e.action == action)
        ]
        return matching[offset : offset + limit], len(matching)
