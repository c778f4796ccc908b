"""
Template definition schemas.

A template describes the configuration a freshly provisioned company starts
with: the company identity, the Category -> Subcategory -> Action ticket
classification hierarchy, and the selectable ticket field options.

Children reference their parent by *name*, never by id. Subcategory and
category names must therefore be unique inside one template. References to
names that do not exist are accepted here and skipped at apply time.
"""

from __future__ import annotations

import uuid
from collections import Counter
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from helpdesk_shared.schemas.common import FieldName, StatusType

# Well-known id of the default company. Unique per tenant because companies
# are keyed by (tenant_id, id) inside each tenant's own schema.
DEFAULT_COMPANY_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")

_HEX_COLOR = r"^#[0-9a-fA-F]{6}$"


class CompanyTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = DEFAULT_COMPANY_ID
    name: str = Field(..., min_length=1, max_length=255)
    display_name: Optional[str] = None
    description: Optional[str] = None
    industry: Optional[str] = None
    size: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    subscription_tier: str = "basic"
    status: str = "active"
    is_active: bool = True


class CategoryTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=_HEX_COLOR)
    icon: Optional[str] = None
    active: bool = True
    sort_order: int = 0


class SubcategoryTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    category_name: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=_HEX_COLOR)
    icon: Optional[str] = None
    active: bool = True
    sort_order: int = 0


class ActionTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    subcategory_name: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    estimated_time_minutes: Optional[int] = Field(default=None, ge=0)
    color: Optional[str] = Field(default=None, pattern=_HEX_COLOR)
    icon: Optional[str] = None
    active: bool = True
    sort_order: int = 0
    action_type: Optional[str] = None


class FieldOptionTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    field_name: str = Field(..., min_length=1, max_length=50)
    value: str = Field(..., min_length=1, max_length=100)
    label: str = Field(..., min_length=1, max_length=255)
    color: Optional[str] = None
    sort_order: int = 0
    active: bool = True
    is_default: bool = False
    status_type: Optional[StatusType] = None


class TemplateDefinition(BaseModel):
    """Complete, versioned provisioning template."""

    model_config = ConfigDict(frozen=True)

    version: str = "1"
    company: CompanyTemplate
    categories: list[CategoryTemplate] = Field(default_factory=list)
    subcategories: list[SubcategoryTemplate] = Field(default_factory=list)
    actions: list[ActionTemplate] = Field(default_factory=list)
    field_options: list[FieldOptionTemplate] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_names(self) -> "TemplateDefinition":
        _reject_duplicates("category", [c.name for c in self.categories])
        _reject_duplicates("subcategory", [s.name for s in self.subcategories])
        _reject_duplicates(
            "field option",
            [f"{o.field_name}={o.value}" for o in self.field_options],
        )

        allowed = {f.value for f in FieldName}
        defaults: Counter[str] = Counter()
        for option in self.field_options:
            if option.field_name not in allowed:
                raise ValueError(f"Unknown field name '{option.field_name}'")
            if option.status_type is not None and option.field_name != FieldName.STATUS.value:
                raise ValueError(
                    f"status_type is only valid for status options (got {option.field_name}={option.value})"
                )
            if option.is_default:
                defaults[option.field_name] += 1

        multiple = sorted(name for name, count in defaults.items() if count > 1)
        if multiple:
            raise ValueError(f"More than one default option for: {', '.join(multiple)}")
        return self


def _reject_duplicates(kind: str, names: list[str]) -> None:
    dupes = sorted(name for name, count in Counter(names).items() if count > 1)
    if dupes:
        raise ValueError(f"Duplicate {kind} names: {', '.join(dupes)}")


class TemplateOverrides(BaseModel):
    """Company identity overrides for a customized template application."""

    company_name: Optional[str] = Field(None, min_length=1, max_length=255)
    company_email: Optional[str] = Field(None, max_length=255)
    industry: Optional[str] = Field(None, max_length=100)
    custom_categories: Optional[list[CategoryTemplate]] = Field(
        None,
        description="Categories added to the template; a name already present replaces the template's entry",
    )
