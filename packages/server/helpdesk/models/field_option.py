"""Ticket field option model (status / priority / impact / urgency values)."""

from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TenantScopedMixin, TimestampMixin, UUIDMixin


class TicketFieldOption(UUIDMixin, TenantScopedMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "ticket_field_options"
    __table_args__ = (
        sa.UniqueConstraint(
            "tenant_id", "company_id", "field_name", "value",
            name="uq_ticket_field_options_natural_key",
        ),
        # At most one default value per (tenant, company, field)
        sa.Index(
            "uq_ticket_field_options_default",
            "tenant_id", "company_id", "field_name",
            unique=True,
            postgresql_where=sa.text("is_default"),
            sqlite_where=sa.text("is_default"),
        ),
    )

    field_name: str = Field(nullable=False)  # status | priority | impact | urgency
    value: str = Field(nullable=False)
    label: str = Field(nullable=False)
    color: Optional[str] = None
    sort_order: int = Field(default=0, nullable=False)
    active: bool = Field(default=True, nullable=False)
    is_default: bool = Field(default=False, nullable=False)
    status_type: Optional[str] = None  # open | resolved | closed (status only)
