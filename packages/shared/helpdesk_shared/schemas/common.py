from enum import Enum


class FieldName(str, Enum):
    STATUS = "status"
    PRIORITY = "priority"
    IMPACT = "impact"
    URGENCY = "urgency"


class StatusType(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"
    CLOSED = "closed"


class LockOperation(str, Enum):
    TEMPLATE = "template"
    CLONE = "clone"


# Field names every company must be able to select a value for
REQUIRED_FIELD_NAMES: list[FieldName] = [
    FieldName.STATUS,
    FieldName.PRIORITY,
    FieldName.IMPACT,
    FieldName.URGENCY,
]
