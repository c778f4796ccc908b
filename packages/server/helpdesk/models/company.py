"""Company model."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin


class Company(TimestampMixin, SQLModel, table=True):
    __tablename__ = "companies"

    # Composite key: the same well-known id may exist in every tenant.
    tenant_id: uuid.UUID = Field(primary_key=True, nullable=False)
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, nullable=False)
    name: str = Field(nullable=False, index=True)
    display_name: Optional[str] = None
    description: Optional[str] = None
    industry: Optional[str] = None
    size: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    subscription_tier: str = Field(default="basic", nullable=False)
    status: str = Field(default="active", nullable=False)
    is_active: bool = Field(default=True, nullable=False)
    created_by: Optional[str] = None
