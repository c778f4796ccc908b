"""
Database engine and tenant-scoped connection management.

Table metadata is declared without a schema. Each tenant owns a schema named
``tenant_<uuid with underscores>``; connections opened through
``tenant_transaction``/``tenant_connection`` translate the empty schema to the
tenant's schema, so one set of table definitions serves every tenant.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import Table
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from helpdesk.core.config import get_settings
from helpdesk.core.errors import ProvisioningError

settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    future=True,
)


def get_engine() -> AsyncEngine:
    """FastAPI dependency returning the process-wide engine."""
    return engine


def tenant_schema_name(tenant_id: uuid.UUID | str) -> str:
    """Schema holding a tenant's data: ``tenant_<uuid with '-' replaced by '_'>``."""
    tenant_uuid = tenant_id if isinstance(tenant_id, uuid.UUID) else uuid.UUID(str(tenant_id))
    return f"tenant_{str(tenant_uuid).replace('-', '_')}"


@asynccontextmanager
async def tenant_transaction(engine: AsyncEngine, schema: str) -> AsyncIterator[AsyncConnection]:
    """Open a transaction whose tables resolve to ``schema``. Commits on success."""
    scoped = engine.execution_options(schema_translate_map={None: schema})
    async with scoped.begin() as conn:
        yield conn


@asynccontextmanager
async def tenant_connection(engine: AsyncEngine, schema: str) -> AsyncIterator[AsyncConnection]:
    """Read-only counterpart of ``tenant_transaction``."""
    scoped = engine.execution_options(schema_translate_map={None: schema})
    async with scoped.connect() as conn:
        yield conn


def upsert(conn: AsyncConnection, table: Table):
    """Dialect-specific INSERT supporting ON CONFLICT clauses."""
    dialect = conn.dialect.name
    if dialect == "postgresql":
        return pg_insert(table)
    if dialect == "sqlite":
        return sqlite_insert(table)
    raise ProvisioningError(f"Unsupported database dialect for upserts: {dialect}")
