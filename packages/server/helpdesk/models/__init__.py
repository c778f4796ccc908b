# SQLModel definitions, imported here to ensure metadata is populated.
from .base import UUIDMixin, TimestampMixin, TenantScopedMixin  # noqa: F401
from .company import Company  # noqa: F401
from .field_option import TicketFieldOption  # noqa: F401
from .ticket_category import TicketCategory  # noqa: F401
from .ticket_subcategory import TicketSubcategory  # noqa: F401
from .ticket_action import TicketAction  # noqa: F401
from .provisioning_lock import ProvisioningLock  # noqa: F401
