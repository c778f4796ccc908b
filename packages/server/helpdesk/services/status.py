"""
Template status checks.

``is_template_applied`` is a coarse heuristic: a tenant counts as provisioned
once it has a company, a field option and a category. It is cheap enough to
run on every tenant-creation request and never creates anything.
"""

from __future__ import annotations

import uuid

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlmodel import SQLModel, func, select

from helpdesk.core.database import tenant_connection, tenant_schema_name
from helpdesk.models import Company, TicketAction, TicketCategory, TicketFieldOption, TicketSubcategory
from helpdesk.services.schema import inspect_capabilities

_APPLIED_MODELS: list[type[SQLModel]] = [Company, TicketFieldOption, TicketCategory]
_STATUS_MODELS: list[type[SQLModel]] = _APPLIED_MODELS + [TicketSubcategory, TicketAction]


async def _has_rows(conn: AsyncConnection, model: type[SQLModel], tenant_id: uuid.UUID) -> bool:
    result = await conn.execute(
        select(model.tenant_id).where(model.tenant_id == tenant_id).limit(1)
    )
    return result.first() is not None


async def is_template_applied(engine: AsyncEngine, tenant_id: uuid.UUID) -> bool:
    schema = tenant_schema_name(tenant_id)
    caps = await inspect_capabilities(engine, schema)
    if not caps.has_tables(*(m.__tablename__ for m in _APPLIED_MODELS)):
        return False

    async with tenant_connection(engine, schema) as conn:
        for model in _APPLIED_MODELS:
            if not await _has_rows(conn, model, tenant_id):
                return False
    return True


async def provisioning_status(engine: AsyncEngine, tenant_id: uuid.UUID) -> dict[str, int]:
    """Row counts per provisioning table for the tenant; missing tables are omitted."""
    schema = tenant_schema_name(tenant_id)
    caps = await inspect_capabilities(engine, schema)
    present = [m for m in _STATUS_MODELS if caps.has_table(m.__tablename__)]
    if not present:
        return {}

    counts: dict[str, int] = {}
    async with tenant_connection(engine, schema) as conn:
        for model in present:
            result = await conn.execute(
                select(func.count()).select_from(model).where(model.tenant_id == tenant_id)
            )
            counts[model.__tablename__] = result.scalar_one()
    return counts
