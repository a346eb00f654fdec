"""Audit log, expired session and reset token cleanup job.

Run via: python -m aurora.jobs.audit_cleanup
"""

import asyncio
import os
from datetime import UTC, datetime, timedelta

import structlog

from aurora.adapters.audit import AuditRepository
from aurora.adapters.auth import PostgresAuthRepository
from aurora.adapters.db.app_db import AppDatabase

logger = structlog.get_logger()

RETENTION_DAYS = int(os.getenv("AUDIT_RETENTION_DAYS", "365"))


async def run_cleanup(
    audit_repo: AuditRepository,
    auth_repo: PostgresAuthRepository,
    retention_days: int = RETENTION_DAYS,
    now: datetime | None = None,
) -> tuple[int, int, int]:
    """Purge audit entries past retention, and sessions and reset tokens past expiry.

    Returns:
        Tuple of (audit entries deleted, sessions deleted, reset tokens deleted).
    """
    now = now or datetime.now(UTC)
    cutoff = now - timedelta(days=retention_days)

    logger.info("audit_cleanup_started", cutoff=cutoff.isoformat())
    audit_count = await audit_repo.delete_before(cutoff)
    session_count = await auth_repo.purge_expired_sessions(now)
    reset_count = await auth_repo.purge_expired_reset_tokens(now)
    logger.info(
        "audit_cleanup_finished",
        audit_entries_deleted=audit_count,
        sessions_deleted=session_count,
        reset_tokens_deleted=reset_count,
    )
    return audit_count, session_count, reset_count


async def main() -> None:
    """Run audit log cleanup."""
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        logger.error("audit_cleanup_skipped", reason="DATABASE_URL not set")
        return

    db = AppDatabase(database_url)
    await db.connect()
    try:
        await run_cleanup(AuditRepository(db), PostgresAuthRepository(db))
    finally:
        await db.close()


if __name__ == "__main__":
    asyncio.run(main())
