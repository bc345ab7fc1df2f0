from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Closed set of roles; ordered from most to least privileged."""

    SUPER_ADMIN = "SuperAdmin"
    ADMIN = "Admin"
    MANAGER = "Manager"
    USER = "User"


class Resource(str, Enum):
    ORGANIZATION = "Organization"
    DEPARTMENT = "Department"
    USER = "User"
    TASK = "Task"
    TASK_ACTIVITY = "TaskActivity"
    TASK_COMMENT = "TaskComment"
    MATERIAL = "Material"
    VENDOR = "Vendor"
    NOTIFICATION = "Notification"
    ATTACHMENT = "Attachment"


class Operation(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    RESTORE = "restore"


class Context(str, Enum):
    """Same-tenant relationship between the caller and the target."""

    OWN = "own"
    OWN_DEPT = "ownDept"
    CROSS_DEPT = "crossDept"


class Scope(str, Enum):
    ORG = "org"
    CROSS_ORG = "crossOrg"


# Source value of a cross-org grant that matches members of the platform organization.
PLATFORM_SOURCE = "platform"
