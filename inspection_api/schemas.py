"""Request and response models for the inspection HTTP surface."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from inspection_kernel.domain.inspection import (
    ApprovalDecision,
    InspectionStatus,
    PhotoType,
    VehicleStatus,
)
from inspection_kernel.domain.projections import NotificationTemplate
from inspection_services.workflow import DeletionStatus


class _FromDomain(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# REQUESTS
# ============================================================================


class InspectionCreate(BaseModel):
    """JSON ``payload`` part of the multipart create request."""

    vehicle_id: UUID
    mileage: int
    checklist: dict[str, bool] = Field(default_factory=dict)
    observations: str | None = None
    submit: bool = True


class InspectionUpdate(BaseModel):
    """Only the fields present in the body are changed."""

    mileage: int | None = None
    checklist: dict[str, bool] | None = None
    observations: str | None = None


class DecisionRequest(BaseModel):
    approved: bool
    comments: str | None = None


# ============================================================================
# RESPONSES
# ============================================================================


class UserOut(_FromDomain):
    user_id: UUID
    name: str | None = None
    email: str


class VehicleOut(_FromDomain):
    vehicle_id: UUID
    model: str
    plate: str
    status: VehicleStatus
    image_url: str | None = None


class PhotoOut(_FromDomain):
    photo_id: UUID
    photo_type: PhotoType
    url: str
    content_type: str | None = None
    size: int | None = None
    created_at: datetime | None = None


class SignatureOut(_FromDomain):
    remote_id: str
    url: str
    signed_at: datetime | None = None


class ApprovalOut(_FromDomain):
    approval_id: UUID
    reviewer: UserOut
    decision: ApprovalDecision
    comment: str | None = None
    decided_at: datetime
    is_current: bool
    superseded_at: datetime | None = None


class InspectionOut(_FromDomain):
    inspection_id: UUID
    vehicle: VehicleOut
    author: UserOut
    status: InspectionStatus
    mileage: int
    checklist: dict[str, bool]
    observations: str | None = None
    created_at: datetime
    updated_at: datetime
    submitted_at: datetime | None = None
    photos: list[PhotoOut] = Field(default_factory=list)
    signature: SignatureOut | None = None
    approval: ApprovalOut | None = None
    approval_history: list[ApprovalOut] = Field(default_factory=list)


class InspectionListItem(_FromDomain):
    inspection_id: UUID
    vehicle: VehicleOut
    author: UserOut
    status: InspectionStatus
    mileage: int
    photo_count: int
    created_at: datetime
    updated_at: datetime
    decision: ApprovalDecision | None = None


class NotificationOut(_FromDomain):
    template: NotificationTemplate
    recipients: list[str]
    delivered: bool
    error: str | None = None


class TransitionOut(_FromDomain):
    inspection: InspectionOut
    notification: NotificationOut | None = None


class DeletionOut(_FromDomain):
    status: DeletionStatus
    inspection_id: UUID
    deleted_remote_ids: list[str]
    orphaned_remote_ids: list[str]


class ErrorBody(BaseModel):
    code: str
    message: str
    details: dict = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    error: ErrorBody
