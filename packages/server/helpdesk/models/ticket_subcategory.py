"""Ticket subcategory model (hierarchy level 2)."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TenantScopedMixin, TimestampMixin, UUIDMixin


class TicketSubcategory(UUIDMixin, TenantScopedMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "ticket_subcategories"
    __table_args__ = (
        sa.UniqueConstraint(
            "tenant_id", "company_id", "category_id", "name",
            name="uq_ticket_subcategories_natural_key",
        ),
    )

    category_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid,
            sa.ForeignKey("ticket_categories.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    name: str = Field(nullable=False)
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    active: bool = Field(default=True, nullable=False)
    sort_order: int = Field(default=0, nullable=False)
