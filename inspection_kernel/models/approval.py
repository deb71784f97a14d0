"""
Module: inspection_kernel.models.approval
Responsibility: ORM persistence for inspection decisions (approve/reject).

Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - At most one current approval per inspection: partial unique index on
      ``inspection_id`` where ``is_current``.
    - Decision fields (reviewer, decision, comment, decided_at) are
      write-once.  Only ``is_current`` and ``superseded_at`` may change,
      when a resubmission archives the decision.

Failure modes:
    - IntegrityError on a second current approval for one inspection.
    - ImmutabilityViolationError on an UPDATE touching decision fields.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    event,
    inspect,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inspection_kernel.db.base import Base, UTCDateTime, UUIDString
from inspection_kernel.exceptions import ImmutabilityViolationError
from inspection_kernel.models.inspection import InspectionModel
from inspection_kernel.models.user import UserModel
from inspection_kernel.domain.inspection import (
    ApprovalDecision,
    ApprovalRecord,
)


class InspectionApprovalModel(Base):
    """Persistent decision record. Archived, never overwritten."""

    __tablename__ = "inspection_approvals"

    __table_args__ = (
        CheckConstraint(
            "decision IN ('approved', 'rejected')",
            name="ck_inspection_approvals_decision",
        ),
        Index(
            "uq_inspection_approvals_current",
            "inspection_id",
            unique=True,
            sqlite_where=text("is_current = 1"),
            postgresql_where=text("is_current"),
        ),
        Index(
            "ix_inspection_approvals_history",
            "inspection_id", "decided_at",
        ),
    )

    inspection_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inspections.id", ondelete="CASCADE"),
        nullable=False,
    )
    reviewer_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("users.id"), nullable=False,
    )
    decision: Mapped[str] = mapped_column(String(20), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    is_current: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    superseded_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True,
    )

    inspection: Mapped[InspectionModel] = relationship(
        InspectionModel, back_populates="approvals",
    )
    reviewer: Mapped[UserModel] = relationship(UserModel, lazy="joined")

    def __repr__(self) -> str:
        return (
            f"<InspectionApproval {self.id} "
            f"inspection={self.inspection_id} "
            f"decision={self.decision} current={self.is_current}>"
        )

    def to_dto(self) -> ApprovalRecord:
        """Convert ORM model to frozen domain DTO."""
        return ApprovalRecord(
            approval_id=self.id,
            inspection_id=self.inspection_id,
            reviewer=self.reviewer.to_ref(),
            decision=ApprovalDecision(self.decision),
            comment=self.comment,
            decided_at=self.decided_at,
            is_current=self.is_current,
            superseded_at=self.superseded_at,
        )


# =============================================================================
# ORM-Level Immutability for Decision Fields
# =============================================================================

_DECISION_FIELDS = ("inspection_id", "reviewer_id", "decision", "comment", "decided_at")


@event.listens_for(InspectionApprovalModel, "before_update")
def prevent_decision_update(mapper, connection, target):
    """Only the archive columns of a recorded decision may change."""
    state = inspect(target)
    changed = [
        name for name in _DECISION_FIELDS
        if state.attrs[name].history.has_changes()
    ]
    if changed:
        raise ImmutabilityViolationError(
            entity_type="InspectionApproval",
            entity_id=str(target.id),
            reason=f"decision fields are immutable: {', '.join(changed)}",
        )
