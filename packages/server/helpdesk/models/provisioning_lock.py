"""Provisioning lock / completion marker model."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import utcnow


class ProvisioningLock(SQLModel, table=True):
    __tablename__ = "provisioning_locks"

    tenant_id: uuid.UUID = Field(primary_key=True, nullable=False)
    company_id: uuid.UUID = Field(primary_key=True, nullable=False)
    operation: str = Field(primary_key=True, nullable=False)  # template | clone
    holder: Optional[str] = None
    acquired_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
    completed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
