"""Ticket category model (hierarchy level 1)."""

from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TenantScopedMixin, TimestampMixin, UUIDMixin


class TicketCategory(UUIDMixin, TenantScopedMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "ticket_categories"
    __table_args__ = (
        sa.UniqueConstraint("tenant_id", "company_id", "name", name="uq_ticket_categories_natural_key"),
    )

    name: str = Field(nullable=False)
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    active: bool = Field(default=True, nullable=False)
    sort_order: int = Field(default=0, nullable=False)
