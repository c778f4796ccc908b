"""
API v1 Router

All provisioning endpoints are prefixed with /tenants/{tenant_id}.
"""

from fastapi import APIRouter
from . import provisioning

router = APIRouter()

router.include_router(provisioning.router, prefix="/tenants/{tenant_id}", tags=["Provisioning"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/tenants/{tenant_id}/template",
            "/tenants/{tenant_id}/template/customized",
            "/tenants/{tenant_id}/template/status",
            "/tenants/{tenant_id}/companies/{company_id}/template/first-company",
            "/tenants/{tenant_id}/companies/{target_company_id}/hierarchy/copy",
        ],
    }
