"""Company rows created during provisioning."""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection
from sqlmodel import select

from helpdesk.core.errors import CompanyCreationError
from helpdesk.core.database import upsert
from helpdesk.models import Company
from helpdesk_shared.schemas.templates import CompanyTemplate

log = structlog.get_logger()


async def create_company(
    conn: AsyncConnection,
    tenant_id: uuid.UUID,
    company: CompanyTemplate,
    created_by: str | None = None,
) -> bool:
    """Insert the company unless ``(tenant_id, id)`` already exists.

    Returns True when a row was inserted. Any database failure is raised as
    ``CompanyCreationError``.
    """
    table = Company.__table__
    values = company.model_dump()
    values.update(tenant_id=tenant_id, created_by=created_by)
    stmt = upsert(conn, table).values(**values).on_conflict_do_nothing().returning(table.c.id)
    try:
        inserted = (await conn.execute(stmt)).scalar_one_or_none()
    except SQLAlchemyError as exc:
        log.error("company.create_failed", company_id=str(company.id), error=str(exc))
        raise CompanyCreationError(f"Could not create company {company.id}: {exc}") from exc

    if inserted is None:
        log.info("company.exists", company_id=str(company.id))
        return False
    log.info("company.created", company_id=str(company.id), name=company.name)
    return True


async def active_company_ids(conn: AsyncConnection, tenant_id: uuid.UUID) -> list[uuid.UUID]:
    result = await conn.execute(
        select(Company.id)
        .where(Company.tenant_id == tenant_id, Company.is_active == True)  # noqa: E712
        .limit(2)
    )
    return list(result.scalars().all())


async def is_active_company(conn: AsyncConnection, tenant_id: uuid.UUID, company_id: uuid.UUID) -> bool:
    result = await conn.execute(
        select(Company.is_active).where(Company.tenant_id == tenant_id, Company.id == company_id)
    )
    return bool(result.scalar_one_or_none())
