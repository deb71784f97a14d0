"""
Module: inspection_kernel.models.inspection
Responsibility: ORM persistence for inspections and their photo rows.

Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - Status values are limited by a CHECK constraint; legal edges are
      enforced by InspectionService (and, for decisions, by the
      conditional UPDATE on ``status``).
    - Deleting an inspection deletes its photo rows and every approval
      row (ORM cascade plus ON DELETE CASCADE).
    - Photo type values are limited to the fixed PhotoType set.
    - The signature asset is referenced by ``signature_remote_id``; its
      url and timestamp are set together with it.

Failure modes:
    - IntegrityError on an unknown vehicle or author id.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inspection_kernel.db.base import Base, TimestampedBase, UTCDateTime, UUIDString
from inspection_kernel.models.user import UserModel
from inspection_kernel.models.vehicle import VehicleModel

if TYPE_CHECKING:
    from inspection_kernel.domain.inspection import (
        InspectionPhotoRecord,
        SignatureRecord,
    )
    from inspection_kernel.models.approval import InspectionApprovalModel


class InspectionModel(TimestampedBase):
    """Persistent inspection.

    Guarantees:
        - ``approvals`` holds the full decision history, oldest first;
          at most one row has ``is_current`` set.
    """

    __tablename__ = "inspections"

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'submitted', 'approved', 'rejected')",
            name="ck_inspections_valid_status",
        ),
        CheckConstraint("mileage >= 0", name="ck_inspections_mileage"),
        Index("ix_inspections_author_created", "author_id", "created_at"),
        Index("ix_inspections_vehicle_status", "vehicle_id", "status"),
    )

    vehicle_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("vehicles.id"), nullable=False,
    )
    author_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("users.id"), nullable=False,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    mileage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    checklist: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    observations: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True,
    )
    signature_remote_id: Mapped[str | None] = mapped_column(String(500), nullable=True)
    signature_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    signed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    vehicle: Mapped[VehicleModel] = relationship(VehicleModel, lazy="joined")
    author: Mapped[UserModel] = relationship(UserModel, lazy="joined")

    photos: Mapped[list[InspectionPhotoModel]] = relationship(
        "InspectionPhotoModel",
        back_populates="inspection",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="InspectionPhotoModel.created_at",
        lazy="select",
    )

    approvals: Mapped[list[InspectionApprovalModel]] = relationship(
        "InspectionApprovalModel",
        back_populates="inspection",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="InspectionApprovalModel.decided_at",
        lazy="select",
    )

    def __repr__(self) -> str:
        return f"<Inspection {self.id} status={self.status}>"

    @property
    def signature(self) -> SignatureRecord | None:
        if self.signature_remote_id is None:
            return None
        from inspection_kernel.domain.inspection import SignatureRecord

        return SignatureRecord(
            remote_id=self.signature_remote_id,
            url=self.signature_url or "",
            signed_at=self.signed_at,
        )

    @property
    def current_approval(self) -> InspectionApprovalModel | None:
        for approval in self.approvals:
            if approval.is_current:
                return approval
        return None


class InspectionPhotoModel(Base):
    """One uploaded photo bound to an inspection by ``remote_id``."""

    __tablename__ = "inspection_photos"

    __table_args__ = (
        CheckConstraint(
            "photo_type IN ('FRONT', 'REAR', 'DRIVER_SIDE', "
            "'PASSENGER_SIDE', 'INTERIOR', 'SAFETY_DEVICES')",
            name="ck_inspection_photos_type",
        ),
        Index("ix_inspection_photos_inspection", "inspection_id"),
    )

    inspection_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inspections.id", ondelete="CASCADE"),
        nullable=False,
    )
    photo_type: Mapped[str] = mapped_column(String(30), nullable=False)
    remote_id: Mapped[str] = mapped_column(String(500), nullable=False)
    url: Mapped[str] = mapped_column(String(1000), nullable=False)
    content_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    inspection: Mapped[InspectionModel] = relationship(
        InspectionModel, back_populates="photos",
    )

    def __repr__(self) -> str:
        return f"<InspectionPhoto {self.photo_type} remote={self.remote_id}>"

    def to_dto(self) -> InspectionPhotoRecord:
        from inspection_kernel.domain.inspection import (
            InspectionPhotoRecord,
            PhotoType,
        )

        return InspectionPhotoRecord(
            photo_id=self.id,
            inspection_id=self.inspection_id,
            photo_type=PhotoType(self.photo_type),
            remote_id=self.remote_id,
            url=self.url,
            content_type=self.content_type,
            size=self.size,
            created_at=self.created_at,
        )
