"""
Inspection domain types (``inspection_kernel.domain.inspection``).

Responsibility
--------------
Pure value objects for the inspection workflow: the lifecycle state
machine, the fixed photo-type and checklist enumerations, and the frozen
DTOs that services and selectors hand back to callers.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/``, ``selectors/`` or outer layers.

Invariants enforced
-------------------
* ``INSPECTION_TRANSITIONS`` is the only table of legal status edges.
  APPROVED has no outgoing edge: re-inspection creates a new inspection.
* APPROVED and REJECTED are reachable only from SUBMITTED.
* A SUBMITTED inspection carries every required photo type and, unless
  configured otherwise, the inspector's signature.
* An inspection exposes at most one current approval; superseded
  approvals never appear in ``InspectionDetail.approval``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID

from inspection_kernel.exceptions import (
    InvalidChecklistError,
    MissingPhotosError,
    MissingSignatureError,
    UnknownPhotoTypeError,
)


# =========================================================================
# Lifecycle
# =========================================================================


class InspectionStatus(str, Enum):
    """Inspection lifecycle states."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


INITIAL_STATUSES: frozenset[InspectionStatus] = frozenset({
    InspectionStatus.DRAFT,
    InspectionStatus.SUBMITTED,
})

INSPECTION_TRANSITIONS: dict[InspectionStatus, frozenset[InspectionStatus]] = {
    InspectionStatus.DRAFT: frozenset({InspectionStatus.SUBMITTED}),
    InspectionStatus.SUBMITTED: frozenset({
        InspectionStatus.APPROVED,
        InspectionStatus.REJECTED,
    }),
    InspectionStatus.REJECTED: frozenset({InspectionStatus.SUBMITTED}),
    InspectionStatus.APPROVED: frozenset(),
}

TERMINAL_STATUSES: frozenset[InspectionStatus] = frozenset({
    InspectionStatus.APPROVED,
})

# Statuses in which content (fields, photos) may still change
EDITABLE_STATUSES: frozenset[InspectionStatus] = frozenset({
    InspectionStatus.DRAFT,
    InspectionStatus.SUBMITTED,
    InspectionStatus.REJECTED,
})


def can_transition(current: InspectionStatus, target: InspectionStatus) -> bool:
    """True iff ``current -> target`` is an edge of the state machine."""
    return target in INSPECTION_TRANSITIONS.get(current, frozenset())


class ApprovalDecision(str, Enum):
    """Outcome recorded by a reviewer."""

    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def target_status(self) -> InspectionStatus:
        if self is ApprovalDecision.APPROVED:
            return InspectionStatus.APPROVED
        return InspectionStatus.REJECTED


class VehicleStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


# =========================================================================
# Photo types and checklist
# =========================================================================


class PhotoType(str, Enum):
    """Fixed set of photo slots an inspection collects."""

    FRONT = "FRONT"
    REAR = "REAR"
    DRIVER_SIDE = "DRIVER_SIDE"
    PASSENGER_SIDE = "PASSENGER_SIDE"
    INTERIOR = "INTERIOR"
    SAFETY_DEVICES = "SAFETY_DEVICES"

    @property
    def label(self) -> str:
        return PHOTO_TYPE_LABELS[self]


PHOTO_TYPE_LABELS: dict[PhotoType, str] = {
    PhotoType.FRONT: "Front",
    PhotoType.REAR: "Rear",
    PhotoType.DRIVER_SIDE: "Driver Side",
    PhotoType.PASSENGER_SIDE: "Passenger Side",
    PhotoType.INTERIOR: "Interior",
    PhotoType.SAFETY_DEVICES: "Safety Devices",
}


def parse_photo_type(value: str | PhotoType) -> PhotoType:
    """Coerce ``value`` to a PhotoType or raise UnknownPhotoTypeError."""
    if isinstance(value, PhotoType):
        return value
    try:
        return PhotoType(str(value).strip().upper())
    except ValueError:
        raise UnknownPhotoTypeError(str(value)) from None


def missing_photo_types(
    present: Iterable[PhotoType],
    required: Iterable[PhotoType],
) -> frozenset[PhotoType]:
    return frozenset(required) - frozenset(present)


def require_photo_set(
    present: Iterable[PhotoType],
    required: Iterable[PhotoType],
) -> None:
    """Raise MissingPhotosError unless every required type is present."""
    missing = missing_photo_types(present, required)
    if missing:
        raise MissingPhotosError(p.value for p in missing)


def require_signature(signature: SignatureRecord | None) -> None:
    """Raise MissingSignatureError when the inspection is unsigned."""
    if signature is None:
        raise MissingSignatureError()


# (group, key, label) in display order
CHECKLIST_ITEMS: tuple[tuple[str, str, str], ...] = (
    ("Levels", "oil_level", "Oil"),
    ("Levels", "coolant_level", "Coolant"),
    ("Levels", "brake_fluid_level", "Brake fluid"),
    ("Levels", "hydraulic_level", "Hydraulic"),
    ("Pedals", "brake_pedal", "Brake pedal"),
    ("Pedals", "clutch_pedal", "Clutch pedal"),
    ("Pedals", "gas_pedal", "Gas pedal"),
    ("Lights", "headlights", "Headlights"),
    ("Lights", "tail_lights", "Tail lights"),
    ("Lights", "brake_lights", "Brake lights"),
    ("Lights", "turn_signals", "Turn signals"),
    ("Lights", "hazard_lights", "Hazard lights"),
    ("Lights", "reversing_lights", "Reversing lights"),
    ("Lights", "dashboard_lights", "Dashboard lights"),
)

CHECKLIST_KEYS: tuple[str, ...] = tuple(key for _, key, _ in CHECKLIST_ITEMS)


def normalize_checklist(
    values: Mapping[str, object] | None,
    base: Mapping[str, bool] | None = None,
) -> dict[str, bool]:
    """
    Merge ``values`` over ``base`` into a full checklist.

    Missing keys default to ``False`` (or to ``base``); unknown keys raise
    InvalidChecklistError.
    """
    values = values or {}
    unknown = set(values) - set(CHECKLIST_KEYS)
    if unknown:
        raise InvalidChecklistError(unknown)
    merged = {key: bool((base or {}).get(key, False)) for key in CHECKLIST_KEYS}
    for key, value in values.items():
        merged[key] = bool(value)
    return merged


# =========================================================================
# DTOs
# =========================================================================


@dataclass(frozen=True)
class UserRef:
    user_id: UUID
    name: str | None
    email: str


@dataclass(frozen=True)
class VehicleSummary:
    vehicle_id: UUID
    model: str
    plate: str
    status: VehicleStatus
    image_url: str | None = None
    assigned_inspector: UserRef | None = None


@dataclass(frozen=True)
class InspectionPhotoRecord:
    photo_id: UUID
    inspection_id: UUID
    photo_type: PhotoType
    remote_id: str
    url: str
    content_type: str | None = None
    size: int | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class UploadedPhoto:
    """A photo already in the media store, not yet bound to a row."""

    photo_type: PhotoType
    remote_id: str
    url: str
    content_type: str | None = None
    size: int | None = None


@dataclass(frozen=True)
class SignatureRecord:
    """The inspector's signature image, held in the media store."""

    remote_id: str
    url: str
    signed_at: datetime | None = None


@dataclass(frozen=True)
class ApprovalRecord:
    """A recorded decision. Decision fields never change after creation."""

    approval_id: UUID
    inspection_id: UUID
    reviewer: UserRef
    decision: ApprovalDecision
    comment: str | None
    decided_at: datetime
    is_current: bool = True
    superseded_at: datetime | None = None


@dataclass(frozen=True)
class InspectionSummary:
    """List projection: no photos, no approval history."""

    inspection_id: UUID
    vehicle: VehicleSummary
    author: UserRef
    status: InspectionStatus
    mileage: int
    photo_count: int
    created_at: datetime
    updated_at: datetime
    decision: ApprovalDecision | None = None


@dataclass(frozen=True)
class InspectionDetail:
    """Full-detail projection used by fetch, notifications and PDF export."""

    inspection_id: UUID
    vehicle: VehicleSummary
    author: UserRef
    status: InspectionStatus
    mileage: int
    checklist: Mapping[str, bool]
    observations: str | None
    created_at: datetime
    updated_at: datetime
    submitted_at: datetime | None = None
    photos: tuple[InspectionPhotoRecord, ...] = ()
    signature: SignatureRecord | None = None
    approval: ApprovalRecord | None = None
    approval_history: tuple[ApprovalRecord, ...] = field(default=())

    @property
    def photo_types(self) -> frozenset[PhotoType]:
        return frozenset(p.photo_type for p in self.photos)
