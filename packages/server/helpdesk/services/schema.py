"""
Tenant schema management: create the provisioning tables and detect drift.

Older tenant schemas predate per-company configuration and lack the
``company_id`` column on some tables. Instead of probing the catalog before
every write, the schema is inspected once per operation and the result is
carried as a ``SchemaCapabilities`` value into every writer.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import sqlalchemy as sa
import structlog
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine

from helpdesk.core.database import tenant_transaction
from helpdesk.core.errors import CompanyScopeUnavailableError, SchemaDriftError
from helpdesk.models import (
    Company,
    ProvisioningLock,
    TicketAction,
    TicketCategory,
    TicketFieldOption,
    TicketSubcategory,
)

log = structlog.get_logger()

# Creation order matters: foreign keys point at earlier tables.
REQUIRED_TABLES: list[sa.Table] = [
    Company.__table__,
    TicketFieldOption.__table__,
    TicketCategory.__table__,
    TicketSubcategory.__table__,
    TicketAction.__table__,
    ProvisioningLock.__table__,
]

# Tables whose company_id column is optional in older schemas
COMPANY_SCOPED_TABLES: list[str] = [
    TicketFieldOption.__tablename__,
    TicketCategory.__tablename__,
    TicketSubcategory.__tablename__,
    TicketAction.__tablename__,
]

# PostgreSQL SQLSTATEs raised when a concurrent creator won the race
_ALREADY_EXISTS_SQLSTATES = {
    "42P06",  # duplicate_schema
    "42P07",  # duplicate_table
    "42701",  # duplicate_column
    "42710",  # duplicate_object
    "23505",  # unique_violation on pg_type / pg_namespace
}


@dataclass(frozen=True)
class SchemaCapabilities:
    """What a tenant schema looks like, computed once per operation."""

    schema: str
    tables: frozenset[str] = field(default_factory=frozenset)
    company_scoped: frozenset[str] = field(default_factory=frozenset)

    def has_table(self, name: str) -> bool:
        return name in self.tables

    def has_tables(self, *names: str) -> bool:
        return all(n in self.tables for n in names)

    def is_company_scoped(self, name: str) -> bool:
        return name in self.company_scoped

    @property
    def missing_tables(self) -> list[str]:
        return [t.name for t in REQUIRED_TABLES if t.name not in self.tables]

    @property
    def unscoped_tables(self) -> list[str]:
        return [
            name for name in COMPANY_SCOPED_TABLES
            if name in self.tables and name not in self.company_scoped
        ]

    def require_tables(self) -> None:
        """Raise ``SchemaDriftError`` if a required table is missing."""
        missing = self.missing_tables
        if missing:
            raise SchemaDriftError(self.schema, missing)

    def require_company_scope(self) -> None:
        """Raise if any hierarchy table cannot be filtered by company."""
        unscoped = self.unscoped_tables
        if unscoped:
            raise CompanyScopeUnavailableError(self.schema, unscoped)


def _read_capabilities(sync_conn, schema: str) -> SchemaCapabilities:
    inspector = sa.inspect(sync_conn)
    if schema not in inspector.get_schema_names():
        return SchemaCapabilities(schema=schema)

    tables = set(inspector.get_table_names(schema=schema))
    scoped = set()
    for name in COMPANY_SCOPED_TABLES:
        if name not in tables:
            continue
        columns = {c["name"] for c in inspector.get_columns(name, schema=schema)}
        if "company_id" in columns:
            scoped.add(name)
    return SchemaCapabilities(
        schema=schema,
        tables=frozenset(tables),
        company_scoped=frozenset(scoped),
    )


async def inspect_capabilities(engine: AsyncEngine, schema: str) -> SchemaCapabilities:
    """Read-only inspection of a tenant schema. Never creates anything."""
    async with engine.connect() as conn:
        caps = await conn.run_sync(_read_capabilities, schema)

    for name in caps.unscoped_tables:
        log.warning("schema.company_id_missing", schema=schema, table=name)
    return caps


def _is_already_exists(exc: DBAPIError) -> bool:
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if sqlstate in _ALREADY_EXISTS_SQLSTATES:
        return True
    return "already exists" in str(exc.orig).lower()


async def _ensure_schema(engine: AsyncEngine, schema: str) -> None:
    async with engine.connect() as conn:
        if conn.dialect.name == "sqlite":
            # SQLite has no schemas; an attached database plays the same role.
            attached = await conn.run_sync(lambda c: sa.inspect(c).get_schema_names())
            if schema not in attached:
                await conn.exec_driver_sql(f"ATTACH DATABASE ':memory:' AS \"{schema}\"")
        else:
            await conn.execute(sa.schema.CreateSchema(schema, if_not_exists=True))
        await conn.commit()


async def _create_table(engine: AsyncEngine, schema: str, table: sa.Table) -> None:
    try:
        async with tenant_transaction(engine, schema) as conn:
            await conn.run_sync(table.create, checkfirst=True)
    except DBAPIError as exc:
        if not _is_already_exists(exc):
            raise
        log.warning("schema.table_create_conflict", schema=schema, table=table.name, error=str(exc.orig))


async def ensure_tables(engine: AsyncEngine, schema: str) -> SchemaCapabilities:
    """Guarantee the schema and every provisioning table exist.

    Missing tables are created with their canonical column set; existing
    tables are left untouched, whatever their shape. Returns the capabilities
    of the resulting schema.
    """
    caps = await inspect_capabilities(engine, schema)
    try:
        caps.require_tables()
        return caps
    except SchemaDriftError as drift:
        log.info("schema.creating_tables", schema=schema, missing=drift.missing)

    try:
        await _ensure_schema(engine, schema)
    except DBAPIError as exc:
        if not _is_already_exists(exc):
            raise
        log.warning("schema.create_conflict", schema=schema, error=str(exc.orig))

    for table in REQUIRED_TABLES:
        if not caps.has_table(table.name):
            await _create_table(engine, schema, table)

    return await inspect_capabilities(engine, schema)
