"""
ARQ background tasks: provision new tenants and repair incomplete ones.

Enqueued on tenant creation so the request that created the tenant does not
wait for provisioning.
"""

from __future__ import annotations

import uuid

import structlog

from helpdesk.core.config import get_settings
from helpdesk.core.database import get_engine
from helpdesk.core.logging import configure_logging
from helpdesk.services.provisioning import apply_default_template, is_template_applied
from helpdesk.services.templates import load_configured_template

log = structlog.get_logger()


async def startup(ctx: dict) -> None:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    ctx["settings"] = settings
    ctx["engine"] = get_engine()
    ctx["template"] = load_configured_template(settings)
    log.info("worker.started", template_version=ctx["template"].version)


async def shutdown(ctx: dict) -> None:
    await ctx["engine"].dispose()
    log.info("worker.stopped")


async def provision_tenant(ctx: dict, tenant_id: str, acting_user_id: str) -> dict:
    """Apply the default template to a tenant. Returns the result as a dict."""
    result = await apply_default_template(
        ctx["engine"],
        uuid.UUID(tenant_id),
        acting_user_id,
        template=ctx["template"],
        settings=ctx["settings"],
    )
    if result.degraded:
        log.warning("provision_tenant.degraded", tenant_id=tenant_id, warnings=result.warnings)
    return result.model_dump(mode="json")


async def repair_tenant(ctx: dict, tenant_id: str, acting_user_id: str) -> dict | None:
    """Re-apply the default template to a tenant that does not look provisioned.

    Returns None when the tenant already has a company, categories and field
    options.
    """
    tenant_uuid = uuid.UUID(tenant_id)
    if await is_template_applied(ctx["engine"], tenant_uuid):
        log.info("repair_tenant.not_needed", tenant_id=tenant_id)
        return None

    log.info("repair_tenant.reapplying", tenant_id=tenant_id)
    result = await apply_default_template(
        ctx["engine"],
        tenant_uuid,
        acting_user_id,
        template=ctx["template"],
        settings=ctx["settings"],
        force=True,
    )
    return result.model_dump(mode="json")


# ARQ worker settings
class WorkerSettings:
    """ARQ worker configuration."""

    functions = [provision_tenant, repair_tenant]
    on_startup = startup
    on_shutdown = shutdown
