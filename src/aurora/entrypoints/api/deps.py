"""Dependency injection and application lifespan management."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import structlog
from fastapi import Request

from aurora.adapters.audit import AuditRecorder, AuditRepository, InMemoryAuditSink
from aurora.adapters.auth import InMemoryAuthRepository, PostgresAuthRepository
from aurora.adapters.cache import RevocationCache, build_revocation_cache
from aurora.adapters.db.app_db import AppDatabase
from aurora.core.auth.jwt import JwtConfig, TokenIssuer
from aurora.core.auth.repository import AuthRepository
from aurora.core.auth.service import AuthService
from aurora.core.rbac.checker import PermissionChecker
from aurora.services.membership import MembershipService
from aurora.services.tenant import TenantResolver

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = structlog.get_logger()


class Settings:
    """Application settings loaded from environment."""

    def __init__(self) -> None:
        """Load settings from environment variables."""
        # Empty DATABASE_URL runs everything in memory (local development only)
        self.database_url = os.getenv("DATABASE_URL", "")
        self.redis_url = os.getenv("REDIS_URL", "")
        self.app_env = os.getenv("APP_ENV", "production").lower()
        self.audit_retention_days = int(os.getenv("AUDIT_RETENTION_DAYS", "365"))
        self.cors_origins = [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "*").split(",")
            if origin.strip()
        ]
        self.jwt = JwtConfig.from_env()

    @property
    def is_development(self) -> bool:
        """Whether internal error details may be returned to clients."""
        return self.app_env == "development"


settings = Settings()


@dataclass
class Services:
    """Everything the request handlers need, built once per application."""

    repo: AuthRepository
    cache: RevocationCache
    issuer: TokenIssuer
    auth: AuthService
    checker: PermissionChecker
    tenants: TenantResolver
    memberships: MembershipService
    audit_store: Any
    audit: AuditRecorder


def build_services(
    repo: AuthRepository,
    cache: RevocationCache,
    jwt_config: JwtConfig,
    audit_store: Any,
) -> Services:
    """Wire the core services on top of the given adapters."""
    issuer = TokenIssuer(jwt_config)
    checker = PermissionChecker(repo)
    return Services(
        repo=repo,
        cache=cache,
        issuer=issuer,
        auth=AuthService(repo, issuer, cache),
        checker=checker,
        tenants=TenantResolver(repo),
        memberships=MembershipService(repo, checker),
        audit_store=audit_store,
        audit=AuditRecorder(audit_store),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan - setup and teardown.

    This context manager handles:
    - Database connection pool setup and schema creation
    - Revocation cache connection
    - Service wiring into ``app.state.services``
    """
    app_db: AppDatabase | None = None
    repo: AuthRepository
    audit_store: Any
    if settings.database_url:
        app_db = AppDatabase(settings.database_url)
        await app_db.connect()
        await app_db.create_schema()
        repo = PostgresAuthRepository(app_db)
        audit_store = AuditRepository(
            app_db, retention=timedelta(days=settings.audit_retention_days)
        )
    else:
        logger.warning("using_in_memory_storage", reason="DATABASE_URL not set")
        repo = InMemoryAuthRepository()
        audit_store = InMemoryAuditSink()

    cache = build_revocation_cache(settings.redis_url)
    await cache.connect()

    services = build_services(repo, cache, settings.jwt, audit_store)
    app.state.app_db = app_db
    app.state.services = services
    logger.info("application_started", env=settings.app_env)

    yield

    await services.audit.drain(timeout=5.0)
    await cache.close()
    if app_db is not None:
        await app_db.close()
    logger.info("application_stopped")


def get_settings() -> Settings:
    """Get the process-wide settings."""
    return settings


def get_services(request: Request) -> Services:
    """Get the wired services from app state."""
    services: Services = request.app.state.services
    return services


def get_auth_service(request: Request) -> AuthService:
    """Get the auth service from app state."""
    return get_services(request).auth


def get_membership_service(request: Request) -> MembershipService:
    """Get the membership service from app state."""
    return get_services(request).memberships


def get_permission_checker(request: Request) -> PermissionChecker:
    """Get the permission checker from app state."""
    return get_services(request).checker


def get_tenant_resolver(request: Request) -> TenantResolver:
    """Get the tenant resolver from app state."""
    return get_services(request).tenants


def get_audit_recorder(request: Request) -> AuditRecorder:
    """Get the audit recorder from app state."""
    return get_services(request).audit


def get_audit_store(request: Request) -> Any:
    """Get the audit log storage from app state."""
    return get_services(request).audit_store
