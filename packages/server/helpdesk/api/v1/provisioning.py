"""
Tenant provisioning endpoints.

- Apply the default or a customized template to a tenant
- Template status (coarse applied flag plus per-table counts)
- First-company gate: apply the template only to a tenant's sole company
- Copy a company's hierarchy and field options to another company
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncEngine

from helpdesk.core.config import Settings, get_settings
from helpdesk.core.database import get_engine
from helpdesk.core.errors import (
    CompanyScopeUnavailableError,
    InvalidCloneRequestError,
    ProvisioningError,
    ProvisioningTimeoutError,
)
from helpdesk.services import provisioning
from helpdesk.services.status import provisioning_status
from helpdesk_shared.schemas.provisioning import (
    ApplyCustomizedTemplateRequest,
    ApplyTemplateRequest,
    CloneResult,
    CopyHierarchyRequest,
    FirstCompanyResponse,
    ProvisioningResult,
    TemplateStatusResponse,
)
from helpdesk_shared.schemas.templates import TemplateDefinition

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def get_template(request: Request) -> TemplateDefinition:
    """Template loaded at startup by ``create_app``."""
    return request.app.state.template


def _to_http(exc: ProvisioningError) -> HTTPException:
    if isinstance(exc, InvalidCloneRequestError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, CompanyScopeUnavailableError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, ProvisioningTimeoutError):
        return HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


# ---------------------------------------------------------------------------
# Template application
# ---------------------------------------------------------------------------


@router.post("/template", response_model=ProvisioningResult)
async def apply_default_template(
    tenant_id: uuid.UUID,
    body: ApplyTemplateRequest,
    engine: AsyncEngine = Depends(get_engine),
    template: TemplateDefinition = Depends(get_template),
    settings: Settings = Depends(get_settings),
):
    """Provision the tenant's default company, hierarchy and field options."""
    try:
        return await provisioning.apply_default_template(
            engine, tenant_id, body.acting_user_id,
            template=template, settings=settings, force=body.force,
        )
    except ProvisioningError as exc:
        raise _to_http(exc) from exc


@router.post("/template/customized", response_model=ProvisioningResult)
async def apply_customized_template(
    tenant_id: uuid.UUID,
    body: ApplyCustomizedTemplateRequest,
    engine: AsyncEngine = Depends(get_engine),
    template: TemplateDefinition = Depends(get_template),
    settings: Settings = Depends(get_settings),
):
    try:
        return await provisioning.apply_customized_template(
            engine, tenant_id, body.acting_user_id, body.overrides,
            template=template, settings=settings, force=body.force,
        )
    except ProvisioningError as exc:
        raise _to_http(exc) from exc


@router.get("/template/status", response_model=TemplateStatusResponse)
async def template_status(
    tenant_id: uuid.UUID,
    engine: AsyncEngine = Depends(get_engine),
):
    applied = await provisioning.is_template_applied(engine, tenant_id)
    counts = await provisioning_status(engine, tenant_id)
    return TemplateStatusResponse(tenant_id=tenant_id, applied=applied, counts=counts)


@router.post(
    "/companies/{company_id}/template/first-company",
    response_model=FirstCompanyResponse,
)
async def apply_template_if_first_company(
    tenant_id: uuid.UUID,
    company_id: uuid.UUID,
    engine: AsyncEngine = Depends(get_engine),
    template: TemplateDefinition = Depends(get_template),
    settings: Settings = Depends(get_settings),
):
    """Apply the template only when ``company_id`` is the tenant's sole active company."""
    try:
        applied = await provisioning.apply_template_if_first_company(
            engine, tenant_id, company_id, template=template, settings=settings,
        )
    except ProvisioningError as exc:
        raise _to_http(exc) from exc
    return FirstCompanyResponse(
        tenant_id=tenant_id,
        company_id=company_id,
        applied=applied,
        detail=None if applied else "Company is not the tenant's only active company",
    )


# ---------------------------------------------------------------------------
# Hierarchy copy
# ---------------------------------------------------------------------------


@router.post(
    "/companies/{target_company_id}/hierarchy/copy",
    response_model=CloneResult,
)
async def copy_hierarchy(
    tenant_id: uuid.UUID,
    target_company_id: uuid.UUID,
    body: CopyHierarchyRequest,
    engine: AsyncEngine = Depends(get_engine),
    settings: Settings = Depends(get_settings),
):
    """Copy the source company's hierarchy and field options onto the target company."""
    try:
        return await provisioning.copy_hierarchy(
            engine, tenant_id, body.source_company_id, target_company_id, settings=settings,
        )
    except ProvisioningError as exc:
        raise _to_http(exc) from exc
