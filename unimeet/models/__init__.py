# unimeet/models/__init__.py
from unimeet.models.base import Base  # noqa: F401

from unimeet.models.institution import Institution, ApprovalMode  # noqa: F401
from unimeet.models.representative import Representative  # noqa: F401
from unimeet.models.availability_rule import AvailabilityRule, DAY_CODES  # noqa: F401
from unimeet.models.hold import Hold  # noqa: F401
from unimeet.models.meeting import Meeting, MeetingStatus, ACTIVE_STATUSES  # noqa: F401
from unimeet.models.audit_entry import AuditEntry, AuditAction  # noqa: F401
