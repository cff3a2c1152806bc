import enum


class RequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    RETURNED = "RETURNED"


class UsageType(str, enum.Enum):
    add = "add"
    remove = "remove"
