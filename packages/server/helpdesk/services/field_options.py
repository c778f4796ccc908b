"""
Field options provisioner: the selectable status/priority/impact/urgency values
of one company.

Template options are upserted by ``(field_name, value)`` (template values win
on reapply). A fixed fallback set is written afterwards without overwriting
anything, so that a company always ends up with at least one default value
per field, even when the template set is empty or failed to write.

Rows are matched by natural key before writing, as in the hierarchy, so older
tables without a unique index on the key stay free of duplicates.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import sqlalchemy as sa
import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlmodel import select

from helpdesk.core.database import tenant_transaction
from helpdesk.models import TicketFieldOption
from helpdesk.models.base import utcnow
from helpdesk.services.hierarchy import insert_if_absent, scope_filters, upsert_row
from helpdesk.services.schema import SchemaCapabilities
from helpdesk_shared.schemas.common import FieldName, StatusType
from helpdesk_shared.schemas.templates import FieldOptionTemplate

log = structlog.get_logger()

UPDATABLE_FIELDS = ("label", "color", "sort_order", "is_default", "active", "status_type")

FALLBACK_FIELD_OPTIONS: list[FieldOptionTemplate] = [
    FieldOptionTemplate(field_name=FieldName.STATUS.value, value="new", label="New", color="#6b7280",
                        sort_order=1, is_default=True, status_type=StatusType.OPEN),
    FieldOptionTemplate(field_name=FieldName.STATUS.value, value="in_progress", label="In Progress",
                        color="#f59e0b", sort_order=2, status_type=StatusType.OPEN),
    FieldOptionTemplate(field_name=FieldName.STATUS.value, value="resolved", label="Resolved",
                        color="#10b981", sort_order=3, status_type=StatusType.RESOLVED),
    FieldOptionTemplate(field_name=FieldName.STATUS.value, value="closed", label="Closed",
                        color="#374151", sort_order=4, status_type=StatusType.CLOSED),
    FieldOptionTemplate(field_name=FieldName.PRIORITY.value, value="low", label="Low", color="#10b981", sort_order=1),
    FieldOptionTemplate(field_name=FieldName.PRIORITY.value, value="medium", label="Medium", color="#f59e0b",
                        sort_order=2, is_default=True),
    FieldOptionTemplate(field_name=FieldName.PRIORITY.value, value="high", label="High", color="#ef4444", sort_order=3),
    FieldOptionTemplate(field_name=FieldName.PRIORITY.value, value="critical", label="Critical", color="#dc2626",
                        sort_order=4),
    FieldOptionTemplate(field_name=FieldName.IMPACT.value, value="low", label="Low", color="#10b981",
                        sort_order=1, is_default=True),
    FieldOptionTemplate(field_name=FieldName.IMPACT.value, value="medium", label="Medium", color="#f59e0b", sort_order=2),
    FieldOptionTemplate(field_name=FieldName.IMPACT.value, value="high", label="High", color="#ef4444", sort_order=3),
    FieldOptionTemplate(field_name=FieldName.URGENCY.value, value="low", label="Low", color="#10b981",
                        sort_order=1, is_default=True),
    FieldOptionTemplate(field_name=FieldName.URGENCY.value, value="medium", label="Medium", color="#f59e0b",
                        sort_order=2),
    FieldOptionTemplate(field_name=FieldName.URGENCY.value, value="high", label="High", color="#ef4444", sort_order=3),
]


@dataclass
class FieldOptionsOutcome:
    written: int = 0
    fallback_written: int = 0
    degraded: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.written + self.fallback_written


def _option_values(option: FieldOptionTemplate) -> dict:
    return {
        "label": option.label,
        "color": option.color,
        "sort_order": option.sort_order,
        "is_default": option.is_default,
        "active": option.active,
        "status_type": option.status_type.value if option.status_type else None,
    }


async def fields_with_default(
    conn: AsyncConnection,
    caps: SchemaCapabilities,
    tenant_id: uuid.UUID,
    company_id: uuid.UUID,
) -> set[str]:
    result = await conn.execute(
        select(TicketFieldOption.field_name)
        .where(
            *scope_filters(TicketFieldOption, caps, tenant_id, company_id),
            TicketFieldOption.is_default == True,  # noqa: E712
        )
        .distinct()
    )
    return set(result.scalars().all())


async def upsert_option_rows(
    conn: AsyncConnection,
    caps: SchemaCapabilities,
    tenant_id: uuid.UUID,
    company_id: uuid.UUID,
    rows: Sequence[Mapping[str, Any]],
) -> int:
    """Insert or overwrite option rows by ``(field_name, value)``.

    Each row carries ``field_name``, ``value`` and the ``UPDATABLE_FIELDS``.
    Returns rows written.
    """
    scope = scope_filters(TicketFieldOption, caps, tenant_id, company_id)

    # Move the default before setting it, so at most one row per field is default.
    for row in rows:
        if row["is_default"]:
            await conn.execute(
                sa.update(TicketFieldOption.__table__)
                .where(
                    *scope,
                    TicketFieldOption.field_name == row["field_name"],
                    TicketFieldOption.value != row["value"],
                    TicketFieldOption.is_default == True,  # noqa: E712
                )
                .values(is_default=False, updated_at=utcnow())
            )

    for row in rows:
        await upsert_row(
            conn, TicketFieldOption, caps, tenant_id, company_id,
            {"field_name": row["field_name"], "value": row["value"]},
            {name: row[name] for name in UPDATABLE_FIELDS},
        )
    return len(rows)


async def upsert_field_options(
    conn: AsyncConnection,
    caps: SchemaCapabilities,
    tenant_id: uuid.UUID,
    company_id: uuid.UUID,
    options: Sequence[FieldOptionTemplate],
) -> int:
    rows = [
        {"field_name": o.field_name, "value": o.value, **_option_values(o)}
        for o in options
    ]
    return await upsert_option_rows(conn, caps, tenant_id, company_id, rows)


async def insert_fallback_options(
    conn: AsyncConnection,
    caps: SchemaCapabilities,
    tenant_id: uuid.UUID,
    company_id: uuid.UUID,
) -> int:
    """Insert the fixed fallback set without overwriting anything.

    A fallback value is only marked default when its field has no default yet.
    Returns rows actually inserted.
    """
    has_default = await fields_with_default(conn, caps, tenant_id, company_id)

    inserted = 0
    for option in FALLBACK_FIELD_OPTIONS:
        values = _option_values(option)
        values["is_default"] = option.is_default and option.field_name not in has_default
        _, created = await insert_if_absent(
            conn, TicketFieldOption, caps, tenant_id, company_id,
            {"field_name": option.field_name, "value": option.value},
            values,
        )
        if created:
            inserted += 1
            if values["is_default"]:
                has_default.add(option.field_name)
    return inserted


async def apply_field_options(
    engine: AsyncEngine,
    caps: SchemaCapabilities,
    tenant_id: uuid.UUID,
    company_id: uuid.UUID,
    options: Sequence[FieldOptionTemplate],
) -> FieldOptionsOutcome:
    """Write template options, then the fallback set, in separate transactions.

    A failure of either step is logged and reported as degraded; the fallback
    step still runs when the template step failed.
    """
    outcome = FieldOptionsOutcome()

    try:
        async with tenant_transaction(engine, caps.schema) as conn:
            outcome.written = await upsert_field_options(conn, caps, tenant_id, company_id, options)
    except SQLAlchemyError as exc:
        log.warning("field_options.template_failed", error=str(exc))
        outcome.degraded = True
        outcome.warnings.append(f"Template field options failed: {exc}")

    try:
        async with tenant_transaction(engine, caps.schema) as conn:
            outcome.fallback_written = await insert_fallback_options(conn, caps, tenant_id, company_id)
    except SQLAlchemyError as exc:
        log.warning("field_options.fallback_failed", error=str(exc))
        outcome.degraded = True
        outcome.warnings.append(f"Fallback field options failed: {exc}")

    log.info(
        "field_options.applied",
        written=outcome.written,
        fallback_written=outcome.fallback_written,
        degraded=outcome.degraded,
    )
    return outcome
