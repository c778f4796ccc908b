"""
Hierarchy cloner: copy one company's categories, subcategories, actions and
field options to another company of the same tenant.

Symmetric to the template applier but reading from the database. Parents are
resolved by source id (the joins already tie children to their parents), and
target rows are matched by natural key so a clone can be repeated: matching
rows are updated in place, missing rows are inserted.

All four passes share the caller's transaction; a fatal error rolls back the
whole clone.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncConnection
from sqlmodel import SQLModel, select

from helpdesk.core.errors import InvalidCloneRequestError, ParentNotFoundError
from helpdesk.models import TicketAction, TicketCategory, TicketFieldOption, TicketSubcategory
from helpdesk.services.field_options import UPDATABLE_FIELDS, insert_fallback_options, upsert_option_rows
from helpdesk.services.hierarchy import ACTION_FIELDS, CATEGORY_FIELDS, upsert_row
from helpdesk.services.schema import SchemaCapabilities
from helpdesk_shared.schemas.provisioning import CloneResult

log = structlog.get_logger()


def _columns(model: type[SQLModel], *names: str) -> list:
    return [getattr(model, name) for name in names]


def clone_summary(result: CloneResult) -> str:
    return (
        f"Copied {result.categories} categories, {result.subcategories} subcategories, "
        f"{result.actions} actions and {result.field_options} field options "
        f"from company {result.source_company_id} to company {result.target_company_id}"
    )


async def clone_hierarchy(
    conn: AsyncConnection,
    caps: SchemaCapabilities,
    tenant_id: uuid.UUID,
    source_company_id: uuid.UUID,
    target_company_id: uuid.UUID,
) -> CloneResult:
    """Clone ``source_company_id``'s configuration onto ``target_company_id``.

    Only active categories are copied; their subcategories and actions follow
    regardless of their own ``active`` flag. Counts are rows written
    (inserted or updated). A source without field options gets the fallback
    set written to the target instead.

    Raises ``InvalidCloneRequestError`` when source and target are the same
    and ``CompanyScopeUnavailableError`` when the schema cannot tell
    companies apart.
    """
    if source_company_id == target_company_id:
        raise InvalidCloneRequestError(
            f"Source and target company are the same: {source_company_id}"
        )
    caps.require_company_scope()

    result = CloneResult(
        tenant_id=tenant_id,
        source_company_id=source_company_id,
        target_company_id=target_company_id,
        summary="",
    )
    # Pass 1: active categories
    rows = await conn.execute(
        select(*_columns(TicketCategory, "id", "name", *CATEGORY_FIELDS))
        .where(
            TicketCategory.tenant_id == tenant_id,
            TicketCategory.company_id == source_company_id,
            TicketCategory.active == True,  # noqa: E712
        )
        .order_by(TicketCategory.sort_order, TicketCategory.name)
    )
    category_map: dict[uuid.UUID, uuid.UUID] = {}
    for row in rows.mappings().all():
        target_id, _ = await upsert_row(
            conn, TicketCategory, caps, tenant_id, target_company_id,
            {"name": row["name"]},
            {name: row[name] for name in CATEGORY_FIELDS},
        )
        category_map[row["id"]] = target_id
        result.categories += 1

    # Pass 2: subcategories of any source category; inactive parents were not copied
    rows = await conn.execute(
        select(
            *_columns(TicketSubcategory, "id", "category_id", "name", *CATEGORY_FIELDS),
            TicketCategory.name.label("parent_name"),
        )
        .join(TicketCategory, TicketSubcategory.category_id == TicketCategory.id)
        .where(
            TicketSubcategory.tenant_id == tenant_id,
            TicketCategory.tenant_id == tenant_id,
            TicketCategory.company_id == source_company_id,
        )
        .order_by(TicketSubcategory.sort_order, TicketSubcategory.name)
    )
    subcategory_map: dict[uuid.UUID, uuid.UUID] = {}
    for row in rows.mappings().all():
        target_category_id = category_map.get(row["category_id"])
        if target_category_id is None:
            _skip(result, ParentNotFoundError("subcategory", row["name"], row["parent_name"]))
            continue
        target_id, _ = await upsert_row(
            conn, TicketSubcategory, caps, tenant_id, target_company_id,
            {"category_id": target_category_id, "name": row["name"]},
            {name: row[name] for name in CATEGORY_FIELDS},
        )
        subcategory_map[row["id"]] = target_id
        result.subcategories += 1

    # Pass 3: actions through subcategories and categories of the source
    rows = await conn.execute(
        select(
            *_columns(TicketAction, "id", "subcategory_id", "name", *ACTION_FIELDS),
            TicketSubcategory.name.label("parent_name"),
        )
        .join(TicketSubcategory, TicketAction.subcategory_id == TicketSubcategory.id)
        .join(TicketCategory, TicketSubcategory.category_id == TicketCategory.id)
        .where(
            TicketAction.tenant_id == tenant_id,
            TicketCategory.tenant_id == tenant_id,
            TicketCategory.company_id == source_company_id,
        )
        .order_by(TicketAction.sort_order, TicketAction.name)
    )
    for row in rows.mappings().all():
        target_subcategory_id = subcategory_map.get(row["subcategory_id"])
        if target_subcategory_id is None:
            _skip(result, ParentNotFoundError("action", row["name"], row["parent_name"]))
            continue
        await upsert_row(
            conn, TicketAction, caps, tenant_id, target_company_id,
            {"subcategory_id": target_subcategory_id, "name": row["name"]},
            {name: row[name] for name in ACTION_FIELDS},
        )
        result.actions += 1

    # Pass 4: field options, or the fallback set for an unfinished source
    rows = await conn.execute(
        select(*_columns(TicketFieldOption, "field_name", "value", *UPDATABLE_FIELDS))
        .where(
            TicketFieldOption.tenant_id == tenant_id,
            TicketFieldOption.company_id == source_company_id,
        )
        .order_by(TicketFieldOption.field_name, TicketFieldOption.sort_order)
    )
    options = [
        {k: row[k] for k in ("field_name", "value", *UPDATABLE_FIELDS)}
        for row in rows.mappings().all()
    ]
    if options:
        result.field_options = await upsert_option_rows(
            conn, caps, tenant_id, target_company_id, options
        )
    else:
        log.warning("clone.source_without_field_options", source_company_id=str(source_company_id))
        result.used_fallback_field_options = True
        result.field_options = await insert_fallback_options(conn, caps, tenant_id, target_company_id)

    result.summary = clone_summary(result)
    log.info(
        "clone.completed",
        categories=result.categories,
        subcategories=result.subcategories,
        actions=result.actions,
        field_options=result.field_options,
        skipped=result.skipped,
    )
    return result


def _skip(result: CloneResult, error: ParentNotFoundError) -> None:
    log.warning("clone.parent_missing", level=error.level, name=error.name, parent=error.parent)
    result.skipped += 1
    result.warnings.append(str(error))
