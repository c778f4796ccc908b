"""
Template loading and customization.

The shipped default template lives in ``helpdesk/templates/default_company.yaml``.
Templates are loaded once per process and passed into provisioning calls.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from helpdesk.core.config import Settings
from helpdesk.core.errors import TemplateLoadError
from helpdesk_shared.schemas.templates import TemplateDefinition, TemplateOverrides

log = structlog.get_logger()

DEFAULT_TEMPLATE_PATH = Path(__file__).resolve().parent.parent / "templates" / "default_company.yaml"


def load_template(path: str | Path) -> TemplateDefinition:
    """Load and validate a template from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise TemplateLoadError(f"Template file not found: {path}")

    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise TemplateLoadError(f"Invalid YAML in {path}: {exc}") from exc

    try:
        template = TemplateDefinition.model_validate(raw)
    except ValidationError as exc:
        raise TemplateLoadError(f"Invalid template {path}: {exc}") from exc

    log.info(
        "template.loaded",
        path=str(path),
        version=template.version,
        categories=len(template.categories),
        subcategories=len(template.subcategories),
        actions=len(template.actions),
        field_options=len(template.field_options),
    )
    return template


@lru_cache
def default_template() -> TemplateDefinition:
    return load_template(DEFAULT_TEMPLATE_PATH)


def load_configured_template(settings: Settings) -> TemplateDefinition:
    """The template named by ``HD_TEMPLATE_PATH``, or the shipped default."""
    if settings.template_path:
        return load_template(settings.template_path)
    return default_template()


def with_overrides(template: TemplateDefinition, overrides: TemplateOverrides) -> TemplateDefinition:
    """Return a copy of ``template`` with company identity overridden.

    Custom categories are appended; one sharing a name with a template
    category replaces it in place. The hierarchy below is left as is.
    """
    company_changes = {}
    if overrides.company_name is not None:
        company_changes["name"] = overrides.company_name
        company_changes["display_name"] = overrides.company_name
    if overrides.company_email is not None:
        company_changes["email"] = overrides.company_email
    if overrides.industry is not None:
        company_changes["industry"] = overrides.industry

    categories = list(template.categories)
    if overrides.custom_categories:
        positions = {c.name: i for i, c in enumerate(categories)}
        for custom in overrides.custom_categories:
            if custom.name in positions:
                categories[positions[custom.name]] = custom
            else:
                positions[custom.name] = len(categories)
                categories.append(custom)

    # Revalidate the merged result
    return TemplateDefinition.model_validate(
        {
            **template.model_dump(),
            "company": template.company.model_copy(update=company_changes).model_dump(),
            "categories": [c.model_dump() for c in categories],
        }
    )
