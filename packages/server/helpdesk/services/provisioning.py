"""
Tenant provisioning entry points.

Every call follows the same shape: make sure the tenant schema has the
provisioning tables, take the provisioning lock for the company, then write.
Template application writes the company, the hierarchy, the template field
options and the fallback field options in separate transactions: only a
failure to create the company is fatal, later failures degrade the result
and are reported as warnings. A clone is one transaction.

The whole call is bounded by ``settings.provisioning_timeout_seconds``.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable
from typing import TypeVar

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from helpdesk.core.config import Settings
from helpdesk.core.database import tenant_connection, tenant_schema_name, tenant_transaction
from helpdesk.core.errors import InvalidCloneRequestError, ProvisioningError, ProvisioningTimeoutError
from helpdesk.models import Company
from helpdesk.services import status
from helpdesk.services.cloner import clone_hierarchy
from helpdesk.services.companies import active_company_ids, create_company, is_active_company
from helpdesk.services.field_options import apply_field_options
from helpdesk.services.hierarchy import apply_hierarchy
from helpdesk.services.locks import provisioning_lock
from helpdesk.services.schema import ensure_tables, inspect_capabilities
from helpdesk.services.templates import with_overrides
from helpdesk_shared.schemas.common import LockOperation
from helpdesk_shared.schemas.provisioning import CloneResult, ProvisioningResult
from helpdesk_shared.schemas.templates import TemplateDefinition, TemplateOverrides

log = structlog.get_logger()

T = TypeVar("T")

SYSTEM_USER = "system"


async def _with_deadline(work: Awaitable[T], settings: Settings, operation: str) -> T:
    try:
        return await asyncio.wait_for(work, timeout=settings.provisioning_timeout_seconds)
    except asyncio.TimeoutError as exc:
        log.error("provisioning.timeout", operation=operation, timeout=settings.provisioning_timeout_seconds)
        raise ProvisioningTimeoutError(
            f"{operation} did not finish within {settings.provisioning_timeout_seconds}s"
        ) from exc


async def _apply_template(
    engine: AsyncEngine,
    tenant_id: uuid.UUID,
    acting_user_id: str,
    template: TemplateDefinition,
    settings: Settings,
    force: bool,
) -> ProvisioningResult:
    schema = tenant_schema_name(tenant_id)
    company_id = template.company.id
    result = ProvisioningResult(tenant_id=tenant_id, company_id=company_id, schema_name=schema)

    caps = await ensure_tables(engine, schema)

    async with provisioning_lock(
        engine, schema, tenant_id, company_id, LockOperation.TEMPLATE, acting_user_id, settings,
        reacquire_completed=force,
    ) as lock:
        if not lock.acquired:
            result.already_applied = True
            return result

        # Fatal: CompanyCreationError propagates and the lock is released
        async with tenant_transaction(engine, schema) as conn:
            result.company_created = await create_company(conn, tenant_id, template.company, acting_user_id)

        try:
            result.hierarchy = await apply_hierarchy(engine, caps, tenant_id, company_id, template)
        except (SQLAlchemyError, ProvisioningError) as exc:
            log.warning("provisioning.hierarchy_failed", error=str(exc))
            result.degraded = True
            result.warnings.append(f"Hierarchy application failed: {exc}")
        result.warnings.extend(result.hierarchy.warnings)

        options = await apply_field_options(engine, caps, tenant_id, company_id, template.field_options)
        result.field_options = options.total
        result.degraded = result.degraded or options.degraded
        result.warnings.extend(options.warnings)

        if not result.degraded:
            lock.mark_completed()

    log.info(
        "provisioning.completed",
        company_created=result.company_created,
        categories=result.hierarchy.categories,
        subcategories=result.hierarchy.subcategories,
        actions=result.hierarchy.actions,
        field_options=result.field_options,
        degraded=result.degraded,
        warnings=len(result.warnings),
    )
    return result


async def apply_default_template(
    engine: AsyncEngine,
    tenant_id: uuid.UUID,
    acting_user_id: str,
    *,
    template: TemplateDefinition,
    settings: Settings,
    force: bool = False,
) -> ProvisioningResult:
    """Provision the tenant's default company from ``template``.

    Idempotent: rows that already exist are left alone, and a run recorded as
    complete returns ``already_applied`` without writing unless ``force``.
    """
    with structlog.contextvars.bound_contextvars(
        tenant_id=str(tenant_id), company_id=str(template.company.id)
    ):
        return await _with_deadline(
            _apply_template(engine, tenant_id, acting_user_id, template, settings, force),
            settings,
            "apply_default_template",
        )


async def apply_customized_template(
    engine: AsyncEngine,
    tenant_id: uuid.UUID,
    acting_user_id: str,
    overrides: TemplateOverrides,
    *,
    template: TemplateDefinition,
    settings: Settings,
    force: bool = False,
) -> ProvisioningResult:
    """Like ``apply_default_template`` with company identity and categories overridden."""
    customized = with_overrides(template, overrides)
    with structlog.contextvars.bound_contextvars(
        tenant_id=str(tenant_id), company_id=str(customized.company.id)
    ):
        return await _with_deadline(
            _apply_template(engine, tenant_id, acting_user_id, customized, settings, force),
            settings,
            "apply_customized_template",
        )


async def _copy(
    engine: AsyncEngine,
    tenant_id: uuid.UUID,
    source_company_id: uuid.UUID,
    target_company_id: uuid.UUID,
    holder: str,
    settings: Settings,
) -> CloneResult:
    schema = tenant_schema_name(tenant_id)
    caps = await ensure_tables(engine, schema)
    caps.require_company_scope()

    async with provisioning_lock(
        engine, schema, tenant_id, target_company_id, LockOperation.CLONE, holder, settings
    ):
        async with tenant_transaction(engine, schema) as conn:
            if not await is_active_company(conn, tenant_id, target_company_id):
                raise InvalidCloneRequestError(
                    f"Target company {target_company_id} does not exist or is inactive"
                )
            return await clone_hierarchy(conn, caps, tenant_id, source_company_id, target_company_id)


async def copy_hierarchy(
    engine: AsyncEngine,
    tenant_id: uuid.UUID,
    source_company_id: uuid.UUID,
    target_company_id: uuid.UUID,
    *,
    settings: Settings,
    holder: str = SYSTEM_USER,
) -> CloneResult:
    """Copy categories, subcategories, actions and field options between two companies.

    Atomic: either the whole hierarchy is written or nothing is. The target
    must be an active company of the tenant, otherwise
    ``InvalidCloneRequestError`` is raised.
    """
    if source_company_id == target_company_id:
        raise InvalidCloneRequestError(
            f"Source and target company are the same: {source_company_id}"
        )
    with structlog.contextvars.bound_contextvars(
        tenant_id=str(tenant_id),
        source_company_id=str(source_company_id),
        company_id=str(target_company_id),
    ):
        return await _with_deadline(
            _copy(engine, tenant_id, source_company_id, target_company_id, holder, settings),
            settings,
            "copy_hierarchy",
        )


async def is_template_applied(engine: AsyncEngine, tenant_id: uuid.UUID) -> bool:
    return await status.is_template_applied(engine, tenant_id)


async def apply_template_if_first_company(
    engine: AsyncEngine,
    tenant_id: uuid.UUID,
    company_id: uuid.UUID,
    *,
    template: TemplateDefinition,
    settings: Settings,
    acting_user_id: str = SYSTEM_USER,
) -> bool:
    """Apply ``template`` to ``company_id`` if it is the tenant's only active company.

    Returns False without writing anything otherwise. The template's company
    block is retargeted at ``company_id``; the existing company row is kept.
    """
    with structlog.contextvars.bound_contextvars(tenant_id=str(tenant_id), company_id=str(company_id)):
        schema = tenant_schema_name(tenant_id)
        caps = await inspect_capabilities(engine, schema)
        if not caps.has_table(Company.__tablename__):
            log.info("provisioning.first_company_skipped", reason="no_companies_table")
            return False

        async with tenant_connection(engine, schema) as conn:
            active = await active_company_ids(conn, tenant_id)
        if active != [company_id]:
            log.info("provisioning.first_company_skipped", reason="not_first_company", active=len(active))
            return False

        retargeted = template.model_copy(
            update={"company": template.company.model_copy(update={"id": company_id})}
        )
        result = await _with_deadline(
            _apply_template(engine, tenant_id, acting_user_id, retargeted, settings, force=False),
            settings,
            "apply_template_if_first_company",
        )
        return result.success
