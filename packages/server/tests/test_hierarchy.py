"""
Tests for the hierarchy applier.

Tests cover:
- Two-pass name resolution (pure)
- Applying the shipped template and re-applying it (idempotence)
- Skip-and-warn for subcategories/actions with an unknown parent
- Every written child points at a parent of the same company
"""

from __future__ import annotations

import uuid

import pytest
import sqlalchemy as sa

from conftest import SCHEMA, TENANT_ID, count_rows, fetch_rows
from helpdesk.core.database import tenant_transaction
from helpdesk.models import TicketAction, TicketCategory, TicketSubcategory
from helpdesk.services.hierarchy import apply_hierarchy, link_to_parents
from helpdesk.services.schema import ensure_tables
from helpdesk_shared.schemas.templates import TemplateDefinition

COMPANY_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")


# ---------------------------------------------------------------------------
# Name resolution
# ---------------------------------------------------------------------------


class TestLinkToParents:
    def test_resolves_in_order(self):
        children = [("a", "P1"), ("b", "P2"), ("c", "P1")]
        resolved, orphans = link_to_parents(children, {"P1": 1, "P2": 2}, lambda c: c[1])
        assert resolved == [(("a", "P1"), 1), (("b", "P2"), 2), (("c", "P1"), 1)]
        assert orphans == []

    def test_orphans_kept_separately(self):
        children = [("a", "P1"), ("b", "missing")]
        resolved, orphans = link_to_parents(children, {"P1": 1}, lambda c: c[1])
        assert resolved == [(("a", "P1"), 1)]
        assert orphans == [("b", "missing")]

    def test_empty_parent_map(self):
        resolved, orphans = link_to_parents(["x"], {}, lambda c: c)
        assert resolved == []
        assert orphans == ["x"]


# ---------------------------------------------------------------------------
# Applier
# ---------------------------------------------------------------------------


@pytest.fixture
async def caps(engine):
    return await ensure_tables(engine, SCHEMA)


@pytest.mark.asyncio
async def test_apply_shipped_template(engine, caps, template):
    counts = await apply_hierarchy(engine, caps, TENANT_ID, COMPANY_ID, template)

    assert (counts.categories, counts.subcategories, counts.actions) == (5, 20, 30)
    assert counts.skipped == 0
    assert counts.warnings == []
    assert await count_rows(engine, TicketCategory.__table__, company_id=COMPANY_ID) == 5
    assert await count_rows(engine, TicketSubcategory.__table__, company_id=COMPANY_ID) == 20
    assert await count_rows(engine, TicketAction.__table__, company_id=COMPANY_ID) == 30


@pytest.mark.asyncio
async def test_reapply_is_noop(engine, caps, template):
    await apply_hierarchy(engine, caps, TENANT_ID, COMPANY_ID, template)
    before = await fetch_rows(engine, TicketCategory.__table__)

    counts = await apply_hierarchy(engine, caps, TENANT_ID, COMPANY_ID, template)

    assert (counts.categories, counts.subcategories, counts.actions) == (0, 0, 0)
    after = await fetch_rows(engine, TicketCategory.__table__)
    assert {r["id"] for r in after} == {r["id"] for r in before}
    assert await count_rows(engine, TicketSubcategory.__table__) == 20
    assert await count_rows(engine, TicketAction.__table__) == 30


@pytest.mark.asyncio
async def test_children_point_at_same_company_parents(engine, caps, template):
    other = uuid.uuid4()
    await apply_hierarchy(engine, caps, TENANT_ID, COMPANY_ID, template)
    await apply_hierarchy(engine, caps, TENANT_ID, other, template)

    for company in (COMPANY_ID, other):
        category_ids = {r["id"] for r in await fetch_rows(engine, TicketCategory.__table__, company_id=company)}
        subs = await fetch_rows(engine, TicketSubcategory.__table__, company_id=company)
        assert {s["category_id"] for s in subs} <= category_ids

        sub_ids = {s["id"] for s in subs}
        actions = await fetch_rows(engine, TicketAction.__table__, company_id=company)
        assert {a["subcategory_id"] for a in actions} <= sub_ids


@pytest.mark.asyncio
async def test_missing_parents_are_skipped(engine, caps):
    template = TemplateDefinition.model_validate(
        {
            "company": {"name": "Acme"},
            "categories": [{"name": "Hardware"}],
            "subcategories": [
                {"category_name": "Hardware", "name": "Laptops"},
                {"category_name": "Software", "name": "Licenses"},
            ],
            "actions": [
                {"subcategory_name": "Laptops", "name": "Replace battery"},
                {"subcategory_name": "Licenses", "name": "Renew"},
                {"subcategory_name": "Phones", "name": "Reset"},
            ],
        }
    )

    counts = await apply_hierarchy(engine, caps, TENANT_ID, COMPANY_ID, template)

    assert (counts.categories, counts.subcategories, counts.actions) == (1, 1, 1)
    assert counts.skipped_subcategories == 1
    assert counts.skipped_actions == 2
    assert counts.warnings == [
        "Skipped subcategory 'Licenses': parent 'Software' not found",
        "Skipped action 'Renew': parent 'Licenses' not found",
        "Skipped action 'Reset': parent 'Phones' not found",
    ]


@pytest.mark.asyncio
async def test_existing_rows_are_not_overwritten(engine, caps, template):
    """Re-applying leaves admin edits alone; only missing rows are inserted."""
    await apply_hierarchy(engine, caps, TENANT_ID, COMPANY_ID, template)
    table = TicketCategory.__table__
    async with tenant_transaction(engine, SCHEMA) as conn:
        await conn.execute(
            sa.update(table).where(table.c.name == "Customer Service").values(description="Edited")
        )
        await conn.execute(sa.delete(table).where(table.c.name == "Access & Accounts"))

    counts = await apply_hierarchy(engine, caps, TENANT_ID, COMPANY_ID, template)

    assert counts.categories == 1
    rows = await fetch_rows(engine, table, name="Customer Service")
    assert rows[0]["description"] == "Edited"
