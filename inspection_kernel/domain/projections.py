"""
Output projections (``inspection_kernel.domain.projections``).

Responsibility
--------------
Pure assembly of what leaves the system about an inspection: the PDF
document model handed to a PdfRenderer, the export filename, and the
notification messages handed to a NotificationSender.  Renderers and
senders only lay these out; they never query anything.

Architecture position
---------------------
**Kernel domain layer**.  ZERO I/O.  Input is an ``InspectionDetail``.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from inspection_kernel.domain.inspection import (
    CHECKLIST_ITEMS,
    ApprovalDecision,
    InspectionDetail,
    InspectionStatus,
    UserRef,
)


def display_name(user: UserRef | None) -> str:
    if user is None:
        return "Unknown"
    return user.name or user.email


STATUS_LABELS: dict[InspectionStatus, str] = {
    InspectionStatus.DRAFT: "Draft",
    InspectionStatus.SUBMITTED: "Pending Approval",
    InspectionStatus.APPROVED: "Approved",
    InspectionStatus.REJECTED: "Rejected",
}


# =========================================================================
# PDF
# =========================================================================


@dataclass(frozen=True)
class ChecklistRow:
    group: str
    label: str
    passed: bool


@dataclass(frozen=True)
class PhotoEntry:
    label: str
    url: str


@dataclass(frozen=True)
class ApprovalBlock:
    decision: ApprovalDecision
    reviewer_name: str
    comment: str | None
    decided_at: datetime


@dataclass(frozen=True)
class InspectionPdfDocument:
    """Everything a renderer needs to lay out one inspection report."""

    title: str
    inspection_id: str
    status_label: str
    created_at: datetime
    vehicle_model: str
    vehicle_plate: str
    vehicle_status: str
    inspector_name: str
    inspector_email: str
    mileage: int
    checklist: tuple[ChecklistRow, ...]
    observations: str | None
    photos: tuple[PhotoEntry, ...]
    approval: ApprovalBlock | None = None
    signature_url: str | None = None
    signed_at: datetime | None = None

    @property
    def checklist_score(self) -> tuple[int, int]:
        """(items passed, items total)."""
        return sum(1 for row in self.checklist if row.passed), len(self.checklist)


def build_pdf_document(
    detail: InspectionDetail,
    title: str = "Vehicle Inspection Report",
) -> InspectionPdfDocument:
    """Assemble the PDF model; only the current approval is included."""
    approval = None
    if detail.approval is not None:
        approval = ApprovalBlock(
            decision=detail.approval.decision,
            reviewer_name=display_name(detail.approval.reviewer),
            comment=detail.approval.comment,
            decided_at=detail.approval.decided_at,
        )
    return InspectionPdfDocument(
        title=title,
        inspection_id=str(detail.inspection_id),
        status_label=STATUS_LABELS[detail.status],
        created_at=detail.created_at,
        vehicle_model=detail.vehicle.model,
        vehicle_plate=detail.vehicle.plate,
        vehicle_status=detail.vehicle.status.value,
        inspector_name=display_name(detail.author),
        inspector_email=detail.author.email,
        mileage=detail.mileage,
        checklist=tuple(
            ChecklistRow(group, label, bool(detail.checklist.get(key, False)))
            for group, key, label in CHECKLIST_ITEMS
        ),
        observations=detail.observations,
        photos=tuple(
            PhotoEntry(photo.photo_type.label, photo.url)
            for photo in detail.photos
        ),
        approval=approval,
        signature_url=detail.signature.url if detail.signature else None,
        signed_at=detail.signature.signed_at if detail.signature else None,
    )


def pdf_filename(plate: str, created_at: datetime) -> str:
    """``inspection_<plate>_<yyyymmdd>.pdf`` with whitespace runs as ``_``."""
    slug = re.sub(r"\s+", "_", plate.strip())
    return f"inspection_{slug}_{created_at:%Y%m%d}.pdf"


def ascii_filename(filename: str) -> str:
    """
    Latin-1 safe fallback for ``filename``.

    Accents are stripped; anything outside ``[A-Za-z0-9_.-]`` becomes ``_``.
    """
    folded = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode()
    return re.sub(r"[^A-Za-z0-9_.-]", "_", folded)


# =========================================================================
# Notifications
# =========================================================================


class NotificationTemplate(str, Enum):
    INSPECTION_SUBMITTED = "inspection_submitted"
    INSPECTION_RESUBMITTED = "inspection_resubmitted"
    INSPECTION_APPROVED = "inspection_approved"
    INSPECTION_REJECTED = "inspection_rejected"

    @classmethod
    def for_decision(cls, decision: ApprovalDecision) -> NotificationTemplate:
        if decision is ApprovalDecision.APPROVED:
            return cls.INSPECTION_APPROVED
        return cls.INSPECTION_REJECTED


_TITLES = {
    NotificationTemplate.INSPECTION_SUBMITTED: "New Vehicle Inspection Submitted",
    NotificationTemplate.INSPECTION_RESUBMITTED: "Vehicle Inspection Resubmitted",
    NotificationTemplate.INSPECTION_APPROVED: "Vehicle Inspection Approved",
    NotificationTemplate.INSPECTION_REJECTED: "Vehicle Inspection Rejected",
}

_SUBJECT_LABELS = {
    NotificationTemplate.INSPECTION_SUBMITTED: "New inspection",
    NotificationTemplate.INSPECTION_RESUBMITTED: "Resubmitted inspection",
    NotificationTemplate.INSPECTION_APPROVED: "Approved",
    NotificationTemplate.INSPECTION_REJECTED: "Rejected",
}


@dataclass(frozen=True)
class NotificationData:
    """Template variables for an inspection notification."""

    inspection_id: str
    vehicle_model: str
    vehicle_plate: str
    mileage: int
    inspector_name: str
    created_at: datetime
    status_label: str
    observations: str | None = None
    photos: tuple[PhotoEntry, ...] = ()
    reviewer_name: str | None = None
    reviewer_comment: str | None = None
    dashboard_url: str | None = None


def build_notification_data(
    detail: InspectionDetail,
    dashboard_url: str | None = None,
) -> NotificationData:
    approval = detail.approval
    return NotificationData(
        inspection_id=str(detail.inspection_id),
        vehicle_model=detail.vehicle.model,
        vehicle_plate=detail.vehicle.plate,
        mileage=detail.mileage,
        inspector_name=display_name(detail.author),
        created_at=detail.created_at,
        status_label=STATUS_LABELS[detail.status],
        observations=detail.observations,
        photos=tuple(PhotoEntry(p.photo_type.label, p.url) for p in detail.photos),
        reviewer_name=display_name(approval.reviewer) if approval else None,
        reviewer_comment=approval.comment if approval else None,
        dashboard_url=dashboard_url,
    )


def notification_title(template: NotificationTemplate) -> str:
    return _TITLES[template]


def notification_subject(
    template: NotificationTemplate,
    data: NotificationData,
    prefix: str = "[Inspection]",
) -> str:
    return (
        f"{prefix} {_SUBJECT_LABELS[template]} - "
        f"{data.vehicle_model} ({data.vehicle_plate})"
    )


def notification_text(template: NotificationTemplate, data: NotificationData) -> str:
    """Plain-text body."""
    title = _TITLES[template]
    lines = [
        title,
        "=" * len(title),
        "",
        f"Vehicle: {data.vehicle_model} ({data.vehicle_plate})",
        f"Mileage: {data.mileage:,} km",
        f"Inspector: {data.inspector_name}",
        f"Date: {data.created_at:%Y-%m-%d}",
        f"Status: {data.status_label}",
    ]
    if data.observations:
        lines += ["", f"Observations: {data.observations}"]
    if data.photos:
        lines += ["", f"Inspection Photos ({len(data.photos)}):"]
        lines += [f"  {photo.label}: {photo.url}" for photo in data.photos]
    if data.reviewer_comment:
        lines += [
            "",
            f"Reviewer Comments: {data.reviewer_comment}",
            f"By: {data.reviewer_name}",
        ]
    if data.dashboard_url:
        lines += ["", f"View inspections: {data.dashboard_url}"]
    return "\n".join(lines)
