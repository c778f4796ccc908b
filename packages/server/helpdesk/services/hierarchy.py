"""
Hierarchy applier: write a template's Category -> Subcategory -> Action tree
for one company.

Templates link children to parents by name. Resolution is two-pass and kept
free of SQL so it can be tested on its own: parents are written first and
yield a ``name -> id`` map, children are then paired with their parent id by
``link_to_parents``. Children whose parent cannot be resolved are skipped and
reported, never fatal.

The row helpers at the bottom are shared with the cloner.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Hashable, Mapping, Sequence
from typing import Any, TypeVar

import sqlalchemy as sa
import structlog
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlmodel import SQLModel, select

from helpdesk.core.database import tenant_transaction, upsert
from helpdesk.core.errors import ParentNotFoundError, ProvisioningError
from helpdesk.models import TicketAction, TicketCategory, TicketSubcategory
from helpdesk.models.base import utcnow
from helpdesk.services.schema import SchemaCapabilities
from helpdesk_shared.schemas.provisioning import HierarchyCounts
from helpdesk_shared.schemas.templates import TemplateDefinition

log = structlog.get_logger()

C = TypeVar("C")
K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

CATEGORY_FIELDS = ("description", "color", "icon", "active", "sort_order")
ACTION_FIELDS = CATEGORY_FIELDS + ("estimated_time_minutes", "action_type")


# ---------------------------------------------------------------------------
# Name resolution (pure)
# ---------------------------------------------------------------------------


def link_to_parents(
    children: Sequence[C],
    parent_ids: Mapping[K, V],
    parent_key: Callable[[C], K],
) -> tuple[list[tuple[C, V]], list[C]]:
    """Pair each child with its parent's id.

    Returns ``(resolved, orphans)``; both preserve the input order.
    """
    resolved: list[tuple[C, V]] = []
    orphans: list[C] = []
    for child in children:
        parent_id = parent_ids.get(parent_key(child))
        if parent_id is None:
            orphans.append(child)
        else:
            resolved.append((child, parent_id))
    return resolved, orphans


def find_orphans(template: TemplateDefinition) -> list[ParentNotFoundError]:
    """Report every subcategory/action of ``template`` whose parent name is unknown.

    Mirrors what ``apply_hierarchy`` would skip, without touching a database.
    An action under an orphaned subcategory is reported as well.
    """
    category_names = {c.name: c.name for c in template.categories}
    linked_subs, orphan_subs = link_to_parents(
        template.subcategories, category_names, lambda s: s.category_name
    )
    subcategory_names = {s.name: s.name for s, _ in linked_subs}
    _, orphan_actions = link_to_parents(
        template.actions, subcategory_names, lambda a: a.subcategory_name
    )
    return [
        ParentNotFoundError("subcategory", s.name, s.category_name) for s in orphan_subs
    ] + [
        ParentNotFoundError("action", a.name, a.subcategory_name) for a in orphan_actions
    ]


# ---------------------------------------------------------------------------
# Row helpers (shared with the cloner)
# ---------------------------------------------------------------------------


def scope_filters(
    model: type[SQLModel],
    caps: SchemaCapabilities,
    tenant_id: uuid.UUID,
    company_id: uuid.UUID,
) -> list:
    """WHERE clauses selecting one company's rows, or the tenant's on old schemas."""
    clauses = [model.tenant_id == tenant_id]
    if caps.is_company_scoped(model.__tablename__):
        clauses.append(model.company_id == company_id)
    return clauses


def scoped_values(
    model: type[SQLModel],
    caps: SchemaCapabilities,
    tenant_id: uuid.UUID,
    company_id: uuid.UUID,
    values: Mapping[str, Any],
) -> dict[str, Any]:
    row = {"tenant_id": tenant_id, **values}
    if caps.is_company_scoped(model.__tablename__):
        row["company_id"] = company_id
    return row


async def find_row_id(
    conn: AsyncConnection,
    model: type[SQLModel],
    caps: SchemaCapabilities,
    tenant_id: uuid.UUID,
    company_id: uuid.UUID,
    natural_key: Mapping[str, Any],
) -> uuid.UUID | None:
    clauses = scope_filters(model, caps, tenant_id, company_id)
    clauses += [getattr(model, name) == value for name, value in natural_key.items()]
    result = await conn.execute(select(model.id).where(*clauses).limit(1))
    return result.scalar_one_or_none()


async def insert_if_absent(
    conn: AsyncConnection,
    model: type[SQLModel],
    caps: SchemaCapabilities,
    tenant_id: uuid.UUID,
    company_id: uuid.UUID,
    natural_key: Mapping[str, Any],
    values: Mapping[str, Any],
) -> tuple[uuid.UUID, bool]:
    """Return ``(id, inserted)`` for the row matching ``natural_key``.

    An existing row is reused untouched. Otherwise a row with a fresh id is
    inserted with ON CONFLICT DO NOTHING; if a concurrent writer got there
    first the winner's id is returned.
    """
    existing = await find_row_id(conn, model, caps, tenant_id, company_id, natural_key)
    if existing is not None:
        return existing, False

    new_id = uuid.uuid4()
    table = model.__table__
    row = scoped_values(model, caps, tenant_id, company_id, {"id": new_id, **natural_key, **values})
    stmt = upsert(conn, table).values(**row).on_conflict_do_nothing().returning(table.c.id)
    inserted = (await conn.execute(stmt)).scalar_one_or_none()
    if inserted is not None:
        return inserted, True

    winner = await find_row_id(conn, model, caps, tenant_id, company_id, natural_key)
    if winner is None:
        raise ProvisioningError(f"Insert into {table.name} conflicted but no row matches {dict(natural_key)}")
    return winner, False


async def upsert_row(
    conn: AsyncConnection,
    model: type[SQLModel],
    caps: SchemaCapabilities,
    tenant_id: uuid.UUID,
    company_id: uuid.UUID,
    natural_key: Mapping[str, Any],
    values: Mapping[str, Any],
) -> tuple[uuid.UUID, bool]:
    """Like ``insert_if_absent`` but overwrites ``values`` on an existing row."""
    existing = await find_row_id(conn, model, caps, tenant_id, company_id, natural_key)
    if existing is None:
        return await insert_if_absent(conn, model, caps, tenant_id, company_id, natural_key, values)

    table = model.__table__
    await conn.execute(
        sa.update(table)
        .where(table.c.id == existing)
        .values(**values, updated_at=utcnow())
    )
    return existing, False


# ---------------------------------------------------------------------------
# Applier
# ---------------------------------------------------------------------------


def _pick(source: Any, fields: Sequence[str]) -> dict[str, Any]:
    return {name: getattr(source, name) for name in fields}


async def write_template_hierarchy(
    conn: AsyncConnection,
    caps: SchemaCapabilities,
    tenant_id: uuid.UUID,
    company_id: uuid.UUID,
    template: TemplateDefinition,
) -> HierarchyCounts:
    """Write the template hierarchy on an open tenant transaction."""
    counts = HierarchyCounts()

    # Pass 1: categories
    category_ids: dict[str, uuid.UUID] = {}
    for category in template.categories:
        category_id, inserted = await insert_if_absent(
            conn, TicketCategory, caps, tenant_id, company_id,
            {"name": category.name},
            _pick(category, CATEGORY_FIELDS),
        )
        category_ids[category.name] = category_id
        counts.categories += int(inserted)

    # Pass 2: subcategories resolved through the category map
    linked_subs, orphan_subs = link_to_parents(
        template.subcategories, category_ids, lambda s: s.category_name
    )
    for sub in orphan_subs:
        _skip(counts, ParentNotFoundError("subcategory", sub.name, sub.category_name))
        counts.skipped_subcategories += 1

    subcategory_ids: dict[str, uuid.UUID] = {}
    for sub, category_id in linked_subs:
        subcategory_id, inserted = await insert_if_absent(
            conn, TicketSubcategory, caps, tenant_id, company_id,
            {"category_id": category_id, "name": sub.name},
            _pick(sub, CATEGORY_FIELDS),
        )
        subcategory_ids[sub.name] = subcategory_id
        counts.subcategories += int(inserted)

    # Pass 3: actions resolved through the subcategory map
    linked_actions, orphan_actions = link_to_parents(
        template.actions, subcategory_ids, lambda a: a.subcategory_name
    )
    for action in orphan_actions:
        _skip(counts, ParentNotFoundError("action", action.name, action.subcategory_name))
        counts.skipped_actions += 1

    for action, subcategory_id in linked_actions:
        _, inserted = await insert_if_absent(
            conn, TicketAction, caps, tenant_id, company_id,
            {"subcategory_id": subcategory_id, "name": action.name},
            _pick(action, ACTION_FIELDS),
        )
        counts.actions += int(inserted)

    return counts


def _skip(counts: HierarchyCounts, error: ParentNotFoundError) -> None:
    log.warning("hierarchy.parent_missing", level=error.level, name=error.name, parent=error.parent)
    counts.warnings.append(str(error))


async def apply_hierarchy(
    engine: AsyncEngine,
    caps: SchemaCapabilities,
    tenant_id: uuid.UUID,
    company_id: uuid.UUID,
    template: TemplateDefinition,
) -> HierarchyCounts:
    """Apply ``template``'s hierarchy to one company in a single transaction.

    Counts report rows actually inserted; re-applying to a provisioned
    company inserts nothing.
    """
    async with tenant_transaction(engine, caps.schema) as conn:
        counts = await write_template_hierarchy(conn, caps, tenant_id, company_id, template)

    log.info(
        "hierarchy.applied",
        categories=counts.categories,
        subcategories=counts.subcategories,
        actions=counts.actions,
        skipped=counts.skipped,
    )
    return counts
