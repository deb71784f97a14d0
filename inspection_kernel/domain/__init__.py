"""
Pure domain layer.

Value objects, the inspection state machine, the authorization table and
the output projections, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from inspection_kernel.domain.authorization import (
    ActorContext,
    AuthorizationDecision,
    Operation,
    Role,
    authorize,
    check_authorization,
    is_allowed,
)
from inspection_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inspection_kernel.domain.inspection import (
    INSPECTION_TRANSITIONS,
    ApprovalDecision,
    InspectionDetail,
    InspectionStatus,
    InspectionSummary,
    PhotoType,
    VehicleStatus,
)

__all__ = [
    "ActorContext",
    "ApprovalDecision",
    "AuthorizationDecision",
    "Clock",
    "DeterministicClock",
    "INSPECTION_TRANSITIONS",
    "InspectionDetail",
    "InspectionStatus",
    "InspectionSummary",
    "Operation",
    "PhotoType",
    "Role",
    "SystemClock",
    "VehicleStatus",
    "authorize",
    "check_authorization",
    "is_allowed",
]
