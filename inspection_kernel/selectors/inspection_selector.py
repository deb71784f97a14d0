"""
InspectionSelector -- named read projections over inspections.

Responsibility:
    Every read of an inspection goes through one of the shapes in
    ``ProjectionShape``.  Each shape declares which relations are loaded
    eagerly, so call sites never assemble ad-hoc nested fetches.

    FULL_DETAIL   vehicle, author, photos, signature, current approval + history
    LIST_SUMMARY  vehicle, author, photo count, current decision
    PDF_EXPORT    vehicle, author, photos, signature, current approval (no history)

Architecture position:
    Kernel > Selectors.  Read-only.  Returns frozen DTOs from
    ``inspection_kernel.domain.inspection``.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from inspection_kernel.domain.inspection import (
    InspectionDetail,
    InspectionStatus,
    InspectionSummary,
    UserRef,
    VehicleSummary,
    ApprovalDecision,
)
from inspection_kernel.exceptions import (
    InspectionNotFoundError,
    VehicleNotFoundError,
)
from inspection_kernel.models.approval import InspectionApprovalModel
from inspection_kernel.models.inspection import InspectionModel
from inspection_kernel.models.user import UserModel
from inspection_kernel.models.vehicle import VehicleModel
from inspection_kernel.selectors.base import BaseSelector


class ProjectionShape(str, Enum):
    FULL_DETAIL = "full_detail"
    LIST_SUMMARY = "list_summary"
    PDF_EXPORT = "pdf_export"


_SHAPE_OPTIONS = {
    ProjectionShape.FULL_DETAIL: (
        selectinload(InspectionModel.photos),
        selectinload(InspectionModel.approvals).joinedload(
            InspectionApprovalModel.reviewer
        ),
    ),
    ProjectionShape.LIST_SUMMARY: (
        selectinload(InspectionModel.photos),
        selectinload(InspectionModel.approvals),
    ),
    ProjectionShape.PDF_EXPORT: (
        selectinload(InspectionModel.photos),
        selectinload(InspectionModel.approvals).joinedload(
            InspectionApprovalModel.reviewer
        ),
    ),
}


class InspectionSelector(BaseSelector[InspectionModel]):
    """Read projections over inspections, vehicles and users."""

    def _load(self, inspection_id: UUID, shape: ProjectionShape) -> InspectionModel:
        stmt = (
            select(InspectionModel)
            .where(InspectionModel.id == inspection_id)
            .options(*_SHAPE_OPTIONS[shape])
        )
        model = self.session.execute(stmt).unique().scalar_one_or_none()
        if model is None:
            raise InspectionNotFoundError(str(inspection_id))
        return model

    def get_detail(
        self,
        inspection_id: UUID,
        shape: ProjectionShape = ProjectionShape.FULL_DETAIL,
    ) -> InspectionDetail:
        """
        Load one inspection in a detail shape.

        Raises:
            InspectionNotFoundError: no such inspection.
        """
        if shape is ProjectionShape.LIST_SUMMARY:
            raise ValueError("LIST_SUMMARY is not a detail shape")
        model = self._load(inspection_id, shape)
        current = model.current_approval
        history: tuple = ()
        if shape is ProjectionShape.FULL_DETAIL:
            history = tuple(a.to_dto() for a in model.approvals)
        return InspectionDetail(
            inspection_id=model.id,
            vehicle=model.vehicle.to_summary(),
            author=model.author.to_ref(),
            status=InspectionStatus(model.status),
            mileage=model.mileage,
            checklist=dict(model.checklist or {}),
            observations=model.observations,
            created_at=model.created_at,
            updated_at=model.updated_at,
            submitted_at=model.submitted_at,
            photos=tuple(p.to_dto() for p in model.photos),
            signature=model.signature,
            approval=current.to_dto() if current is not None else None,
            approval_history=history,
        )

    def get_author_and_status(
        self, inspection_id: UUID,
    ) -> tuple[UUID, InspectionStatus]:
        """Cheap header read used for authorization before any write."""
        row = self.session.execute(
            select(InspectionModel.author_id, InspectionModel.status)
            .where(InspectionModel.id == inspection_id)
        ).one_or_none()
        if row is None:
            raise InspectionNotFoundError(str(inspection_id))
        return row.author_id, InspectionStatus(row.status)

    def list_summaries(
        self,
        author_id: UUID | None = None,
        status: InspectionStatus | None = None,
        vehicle_id: UUID | None = None,
    ) -> list[InspectionSummary]:
        """
        List inspections newest first.

        ``author_id`` restricts the result to one author's inspections;
        None means every inspection.
        """
        stmt = select(InspectionModel).options(
            *_SHAPE_OPTIONS[ProjectionShape.LIST_SUMMARY]
        )
        if author_id is not None:
            stmt = stmt.where(InspectionModel.author_id == author_id)
        if status is not None:
            stmt = stmt.where(InspectionModel.status == status.value)
        if vehicle_id is not None:
            stmt = stmt.where(InspectionModel.vehicle_id == vehicle_id)
        stmt = stmt.order_by(
            InspectionModel.created_at.desc(), InspectionModel.id.desc(),
        )

        summaries = []
        for model in self.session.execute(stmt).unique().scalars():
            current = model.current_approval
            summaries.append(InspectionSummary(
                inspection_id=model.id,
                vehicle=model.vehicle.to_summary(),
                author=model.author.to_ref(),
                status=InspectionStatus(model.status),
                mileage=model.mileage,
                photo_count=len(model.photos),
                created_at=model.created_at,
                updated_at=model.updated_at,
                decision=(
                    ApprovalDecision(current.decision)
                    if current is not None else None
                ),
            ))
        return summaries

    def get_vehicle(self, vehicle_id: UUID) -> VehicleSummary:
        model = self.session.get(VehicleModel, vehicle_id)
        if model is None:
            raise VehicleNotFoundError(str(vehicle_id))
        return model.to_summary()

    def active_users_with_roles(self, roles: Iterable[str]) -> list[UserRef]:
        """Active users holding at least one of ``roles``, by email."""
        wanted = frozenset(r.upper() for r in roles)
        users = self.session.execute(
            select(UserModel)
            .where(UserModel.is_active.is_(True))
            .order_by(UserModel.email)
        ).scalars()
        return [u.to_ref() for u in users if u.role_set & wanted]

    def get_user(self, user_id: UUID) -> UserRef | None:
        model = self.session.get(UserModel, user_id)
        return model.to_ref() if model is not None else None
