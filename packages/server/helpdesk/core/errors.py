"""
Provisioning error taxonomy.

Database errors that do not fit one of these categories are not wrapped:
they propagate as ``sqlalchemy.exc.SQLAlchemyError``.
"""

from __future__ import annotations


class ProvisioningError(Exception):
    """Base exception for provisioning and replication errors."""

    pass


class SchemaDriftError(ProvisioningError):
    """An expected table or column is missing from the tenant schema.

    Always recovered locally (tables are created, writes omit the column).
    """

    def __init__(self, schema: str, missing: list[str]):
        self.schema = schema
        self.missing = missing
        super().__init__(f"Schema {schema} is missing: {', '.join(missing)}")


class ParentNotFoundError(ProvisioningError):
    """A subcategory or action references a parent that could not be resolved."""

    def __init__(self, level: str, name: str, parent: str):
        self.level = level
        self.name = name
        self.parent = parent
        super().__init__(f"Skipped {level} '{name}': parent '{parent}' not found")


class CompanyCreationError(ProvisioningError):
    """The company row itself could not be created."""

    pass


class CompanyScopeUnavailableError(ProvisioningError):
    """The tenant schema cannot distinguish companies (no company_id column)."""

    def __init__(self, schema: str, tables: list[str]):
        self.schema = schema
        self.tables = tables
        super().__init__(
            f"Tables without company_id in {schema}: {', '.join(tables)}"
        )


class InvalidCloneRequestError(ProvisioningError):
    """Source and target company are the same."""

    pass


class ProvisioningTimeoutError(ProvisioningError):
    """The provisioning deadline elapsed or the lock could not be acquired in time."""

    pass


class TemplateLoadError(ProvisioningError):
    """A template file is missing or does not validate."""

    pass
