"""
Module: inspection_kernel.models.vehicle
Responsibility: ORM persistence for vehicles under inspection.

Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - Plate is unique.
    - The workflow never deletes a vehicle; approval updates ``status`` and
      ``last_approved_inspection_id``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inspection_kernel.db.base import TimestampedBase, UUIDString
from inspection_kernel.models.user import UserModel

if TYPE_CHECKING:
    from inspection_kernel.domain.inspection import VehicleSummary


class VehicleModel(TimestampedBase):
    __tablename__ = "vehicles"

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'inactive')",
            name="ck_vehicles_valid_status",
        ),
    )

    model: Mapped[str] = mapped_column(String(200), nullable=False)
    plate: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="inactive",
    )
    assigned_inspector_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    # Plain column: an inspection row may be deleted after approval
    last_approved_inspection_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )

    assigned_inspector: Mapped[UserModel | None] = relationship(
        UserModel, lazy="joined",
    )

    def __repr__(self) -> str:
        return f"<Vehicle {self.plate} status={self.status}>"

    def to_summary(self) -> VehicleSummary:
        from inspection_kernel.domain.inspection import VehicleStatus, VehicleSummary

        return VehicleSummary(
            vehicle_id=self.id,
            model=self.model,
            plate=self.plate,
            status=VehicleStatus(self.status),
            image_url=self.image_url,
            assigned_inspector=(
                self.assigned_inspector.to_ref()
                if self.assigned_inspector is not None else None
            ),
        )
