"""
Shared fixtures: an in-memory SQLite engine per test.

SQLite has no schemas; the tenant schema is an attached in-memory database,
which ``ensure_tables`` attaches on first use. ``StaticPool`` keeps every
checkout on the one connection that holds the attachment.
"""

from __future__ import annotations

import uuid

import pytest
import sqlalchemy as sa
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from helpdesk.core.config import Settings
from helpdesk.core.database import tenant_connection, tenant_schema_name, tenant_transaction
from helpdesk.services.companies import create_company
from helpdesk.services.schema import ensure_tables
from helpdesk.services.templates import default_template
from helpdesk_shared.schemas.templates import CompanyTemplate

TENANT_ID = uuid.UUID("3f6c1a52-8d7e-4b1a-9c2e-5a4b3c2d1e0f")
SCHEMA = tenant_schema_name(TENANT_ID)


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield eng
    await eng.dispose()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite://",
        provisioning_timeout_seconds=10.0,
        lock_wait_seconds=0.2,
        lock_poll_interval_seconds=0.02,
        lock_stale_seconds=60.0,
    )


@pytest.fixture
def template():
    return default_template()


async def count_rows(engine, table: sa.Table, **filters) -> int:
    """Rows in ``table`` of the test tenant's schema matching ``filters``."""
    clauses = [table.c[name] == value for name, value in filters.items()]
    async with tenant_connection(engine, SCHEMA) as conn:
        result = await conn.execute(sa.select(sa.func.count()).select_from(table).where(*clauses))
        return result.scalar_one()


async def fetch_rows(engine, table: sa.Table, **filters) -> list[dict]:
    clauses = [table.c[name] == value for name, value in filters.items()]
    async with tenant_connection(engine, SCHEMA) as conn:
        result = await conn.execute(sa.select(table).where(*clauses))
        return [dict(row) for row in result.mappings().all()]


LEGACY_CATEGORIES_DDL = """
CREATE TABLE "{schema}".ticket_categories (
    id CHAR(32) PRIMARY KEY,
    tenant_id CHAR(32) NOT NULL,
    name VARCHAR NOT NULL,
    description VARCHAR,
    color VARCHAR,
    icon VARCHAR,
    active BOOLEAN NOT NULL,
    sort_order INTEGER NOT NULL,
    created_at DATETIME,
    updated_at DATETIME
)
"""


LEGACY_FIELD_OPTIONS_DDL = """
CREATE TABLE "{schema}".ticket_field_options (
    id CHAR(32) PRIMARY KEY,
    tenant_id CHAR(32) NOT NULL,
    field_name VARCHAR NOT NULL,
    value VARCHAR NOT NULL,
    label VARCHAR NOT NULL,
    color VARCHAR,
    sort_order INTEGER NOT NULL,
    active BOOLEAN NOT NULL,
    is_default BOOLEAN NOT NULL,
    status_type VARCHAR,
    created_at DATETIME,
    updated_at DATETIME
)
"""


async def create_legacy_table(engine, ddl: str, schema: str = SCHEMA) -> None:
    """Create a table as it looked before per-company configuration (no company_id)."""
    async with engine.connect() as conn:
        attached = {row[1] for row in (await conn.exec_driver_sql("PRAGMA database_list")).all()}
        if schema not in attached:
            await conn.exec_driver_sql(f"ATTACH DATABASE ':memory:' AS \"{schema}\"")
        await conn.exec_driver_sql(ddl.format(schema=schema))
        await conn.commit()


async def create_legacy_categories(engine, schema: str = SCHEMA) -> None:
    await create_legacy_table(engine, LEGACY_CATEGORIES_DDL, schema)


async def create_legacy_field_options(engine, schema: str = SCHEMA) -> None:
    await create_legacy_table(engine, LEGACY_FIELD_OPTIONS_DDL, schema)


async def add_company(engine, company_id: uuid.UUID, name: str = "Initech", *, is_active: bool = True) -> None:
    """Insert a company row into the test tenant, creating the tables if needed."""
    await ensure_tables(engine, SCHEMA)
    company = CompanyTemplate(id=company_id, name=name, is_active=is_active)
    async with tenant_transaction(engine, SCHEMA) as conn:
        await create_company(conn, TENANT_ID, company)
