"""
Tests for template loading, validation and customization.
"""

from __future__ import annotations

import pytest
import yaml

from helpdesk.core.config import Settings
from helpdesk.core.errors import TemplateLoadError
from helpdesk.services.hierarchy import find_orphans
from helpdesk.services.templates import (
    default_template,
    load_configured_template,
    load_template,
    with_overrides,
)
from helpdesk_shared.schemas.common import REQUIRED_FIELD_NAMES
from helpdesk_shared.schemas.templates import (
    DEFAULT_COMPANY_ID,
    CategoryTemplate,
    TemplateDefinition,
    TemplateOverrides,
)


def _minimal(**extra) -> dict:
    return {"company": {"name": "Acme"}, **extra}


class TestDefaultTemplate:
    def test_counts(self):
        template = default_template()
        assert len(template.categories) == 5
        assert len(template.subcategories) == 20
        assert len(template.actions) == 30
        assert len(template.field_options) == 15

    def test_every_reference_resolves(self):
        """Applying the shipped template must never skip anything."""
        assert find_orphans(default_template()) == []

    def test_default_company_id(self):
        assert default_template().company.id == DEFAULT_COMPANY_ID

    def test_one_default_per_required_field(self):
        options = default_template().field_options
        for field_name in REQUIRED_FIELD_NAMES:
            defaults = [o for o in options if o.field_name == field_name.value and o.is_default]
            assert len(defaults) == 1, field_name

    def test_four_subcategories_per_category(self):
        template = default_template()
        for category in template.categories:
            subs = [s for s in template.subcategories if s.category_name == category.name]
            assert len(subs) == 4, category.name


class TestLoadTemplate:
    def test_load_from_yaml(self, tmp_path):
        data = _minimal(
            categories=[{"name": "Hardware", "color": "#112233"}],
            subcategories=[{"category_name": "Hardware", "name": "Laptops"}],
        )
        path = tmp_path / "template.yaml"
        path.write_text(yaml.dump(data))

        template = load_template(path)
        assert template.company.name == "Acme"
        assert template.categories[0].color == "#112233"
        assert template.subcategories[0].category_name == "Hardware"

    def test_file_not_found(self):
        with pytest.raises(TemplateLoadError, match="not found"):
            load_template("/nonexistent/template.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("company: [unclosed")
        with pytest.raises(TemplateLoadError, match="Invalid YAML"):
            load_template(path)

    def test_missing_company(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        with pytest.raises(TemplateLoadError):
            load_template(path)

    def test_configured_path_wins(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text(yaml.dump(_minimal()))
        template = load_configured_template(Settings(template_path=str(path)))
        assert template.company.name == "Acme"
        assert template.categories == []

    def test_configured_falls_back_to_shipped(self):
        assert load_configured_template(Settings(template_path=None)) is default_template()


class TestValidation:
    def test_duplicate_category_names(self):
        with pytest.raises(ValueError, match="Duplicate category names: Hardware"):
            TemplateDefinition.model_validate(
                _minimal(categories=[{"name": "Hardware"}, {"name": "Hardware"}])
            )

    def test_duplicate_subcategory_names_across_categories(self):
        """Actions reference subcategories by name alone."""
        with pytest.raises(ValueError, match="Duplicate subcategory names"):
            TemplateDefinition.model_validate(
                _minimal(
                    categories=[{"name": "A"}, {"name": "B"}],
                    subcategories=[
                        {"category_name": "A", "name": "Other"},
                        {"category_name": "B", "name": "Other"},
                    ],
                )
            )

    def test_two_defaults_for_one_field(self):
        with pytest.raises(ValueError, match="More than one default option for: priority"):
            TemplateDefinition.model_validate(
                _minimal(
                    field_options=[
                        {"field_name": "priority", "value": "low", "label": "Low", "is_default": True},
                        {"field_name": "priority", "value": "high", "label": "High", "is_default": True},
                    ]
                )
            )

    def test_unknown_field_name(self):
        with pytest.raises(ValueError, match="Unknown field name 'severity'"):
            TemplateDefinition.model_validate(
                _minimal(field_options=[{"field_name": "severity", "value": "x", "label": "X"}])
            )

    def test_status_type_only_on_status(self):
        with pytest.raises(ValueError, match="status_type is only valid"):
            TemplateDefinition.model_validate(
                _minimal(
                    field_options=[
                        {"field_name": "priority", "value": "low", "label": "Low", "status_type": "open"}
                    ]
                )
            )

    def test_orphans_are_accepted(self):
        template = TemplateDefinition.model_validate(
            _minimal(subcategories=[{"category_name": "Missing", "name": "Lonely"}])
        )
        errors = find_orphans(template)
        assert [str(e) for e in errors] == ["Skipped subcategory 'Lonely': parent 'Missing' not found"]


class TestOverrides:
    def test_company_identity(self):
        custom = with_overrides(
            default_template(),
            TemplateOverrides(company_name="Globex", company_email="it@globex.test", industry="Energy"),
        )
        assert custom.company.name == "Globex"
        assert custom.company.display_name == "Globex"
        assert custom.company.email == "it@globex.test"
        assert custom.company.industry == "Energy"
        assert custom.company.id == DEFAULT_COMPANY_ID
        # Hierarchy is untouched
        assert custom.subcategories == default_template().subcategories

    def test_no_overrides_is_identity(self):
        assert with_overrides(default_template(), TemplateOverrides()) == default_template()

    def test_custom_categories_extend_and_replace(self):
        custom = with_overrides(
            default_template(),
            TemplateOverrides(
                custom_categories=[
                    CategoryTemplate(name="Facilities", sort_order=6),
                    CategoryTemplate(name="Customer Service", description="Replaced", sort_order=5),
                ]
            ),
        )
        names = [c.name for c in custom.categories]
        assert len(names) == 6
        assert names[-1] == "Facilities"
        replaced = next(c for c in custom.categories if c.name == "Customer Service")
        assert replaced.description == "Replaced"
        assert names.index("Customer Service") == 4
