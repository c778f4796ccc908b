"""Ticket action model (hierarchy level 3)."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TenantScopedMixin, TimestampMixin, UUIDMixin


class TicketAction(UUIDMixin, TenantScopedMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "ticket_actions"
    __table_args__ = (
        sa.UniqueConstraint(
            "tenant_id", "company_id", "subcategory_id", "name",
            name="uq_ticket_actions_natural_key",
        ),
    )

    subcategory_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid,
            sa.ForeignKey("ticket_subcategories.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    name: str = Field(nullable=False)
    description: Optional[str] = None
    estimated_time_minutes: Optional[int] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    active: bool = Field(default=True, nullable=False)
    sort_order: int = Field(default=0, nullable=False)
    action_type: Optional[str] = None
