"""
Provisioning request/response schemas shared between the server and clients.

Covers: default/customized template application, first-company gating,
hierarchy copy between companies, and template status.
"""

from __future__ import annotations

import uuid
from typing import Optional

from pydantic import BaseModel, Field

from helpdesk_shared.schemas.templates import TemplateOverrides


# ---------------------------------------------------------------------------
# Counts
# ---------------------------------------------------------------------------

class HierarchyCounts(BaseModel):
    """Rows written per hierarchy level, after skips."""

    categories: int = 0
    subcategories: int = 0
    actions: int = 0
    skipped_subcategories: int = 0
    skipped_actions: int = 0
    # Carried up into the enclosing result's warnings, not serialized here
    warnings: list[str] = Field(default_factory=list, exclude=True)

    @property
    def skipped(self) -> int:
        return self.skipped_subcategories + self.skipped_actions


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class ApplyTemplateRequest(BaseModel):
    acting_user_id: str = Field(..., min_length=1, max_length=255)
    force: bool = Field(
        default=False,
        description="Re-apply even if a previous run was recorded as complete",
    )


class ApplyCustomizedTemplateRequest(ApplyTemplateRequest):
    overrides: TemplateOverrides = Field(default_factory=TemplateOverrides)


class CopyHierarchyRequest(BaseModel):
    source_company_id: uuid.UUID


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class ProvisioningResult(BaseModel):
    tenant_id: uuid.UUID
    company_id: uuid.UUID
    schema_name: str
    success: bool = True
    already_applied: bool = False
    company_created: bool = False
    degraded: bool = False
    hierarchy: HierarchyCounts = Field(default_factory=HierarchyCounts)
    field_options: int = 0
    warnings: list[str] = Field(default_factory=list)


class CloneResult(BaseModel):
    tenant_id: uuid.UUID
    source_company_id: uuid.UUID
    target_company_id: uuid.UUID
    summary: str
    categories: int = 0
    subcategories: int = 0
    actions: int = 0
    field_options: int = 0
    skipped: int = 0
    used_fallback_field_options: bool = False
    warnings: list[str] = Field(default_factory=list)


class TemplateStatusResponse(BaseModel):
    tenant_id: uuid.UUID
    applied: bool
    counts: dict[str, int] = Field(default_factory=dict)


class FirstCompanyResponse(BaseModel):
    tenant_id: uuid.UUID
    company_id: uuid.UUID
    applied: bool
    detail: Optional[str] = None
