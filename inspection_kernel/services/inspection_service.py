"""
inspection_kernel.services.inspection_service -- Inspection lifecycle writes.

Responsibility:
    Every persistent change to an inspection: creation, content edits,
    photo rows, status transitions, decisions and deletion.  Each method
    validates the state machine before writing and flushes; the caller
    owns the transaction.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.
    Authorization is NOT evaluated here; the orchestrator authorizes
    before it opens the transaction.

Invariants enforced:
    - Only edges in INSPECTION_TRANSITIONS are written.  Every status
      write is a conditional UPDATE on the expected current status, so two
      concurrent writers cannot both win.
    - A submission (create-as-submitted, submit, resubmit) requires the
      full photo set and, when configured, the inspector's signature.
      Neither may be removed from a SUBMITTED inspection, and approval
      checks both again.
    - Writes that depend on the current status load the row with
      SELECT ... FOR UPDATE, so a decision committed in between cannot
      be overwritten.
    - Resubmission archives the current approval (is_current=False,
      superseded_at set); the decision row itself is kept.
    - Content and photo changes are refused once APPROVED.

Failure modes:
    - InspectionNotFoundError / VehicleNotFoundError / PhotoNotFoundError.
    - InvalidTransitionError on an illegal edge or a lost race.
    - ValidationFailureError subclasses on malformed input.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from inspection_kernel.domain.clock import Clock, SystemClock
from inspection_kernel.domain.inspection import (
    EDITABLE_STATUSES,
    INITIAL_STATUSES,
    ApprovalDecision,
    ApprovalRecord,
    InspectionPhotoRecord,
    InspectionStatus,
    PhotoType,
    SignatureRecord,
    UploadedPhoto,
    VehicleStatus,
    can_transition,
    normalize_checklist,
    require_photo_set,
    require_signature,
)
from inspection_kernel.exceptions import (
    InspectionNotFoundError,
    InvalidTransitionError,
    PhotoNotFoundError,
    RejectionReasonRequiredError,
    ValidationFailureError,
    VehicleNotFoundError,
)
from inspection_kernel.models.approval import InspectionApprovalModel
from inspection_kernel.models.inspection import InspectionModel, InspectionPhotoModel
from inspection_kernel.models.vehicle import VehicleModel
from inspection_kernel.services.base import BaseService

logger = logging.getLogger("inspection_kernel.services.inspection")

UNSET = object()


def validate_mileage(mileage: int) -> int:
    if isinstance(mileage, bool) or not isinstance(mileage, int):
        raise ValidationFailureError("Mileage must be an integer", "mileage")
    if mileage < 0:
        raise ValidationFailureError("Mileage cannot be negative", "mileage")
    return mileage


class InspectionService(BaseService[InspectionModel]):
    """Transactional writes for inspections. Flush-only."""

    def __init__(self, session: Session, clock: Clock | None = None) -> None:
        super().__init__(session)
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _get(self, inspection_id: UUID, for_update: bool = False) -> InspectionModel:
        """
        Load one inspection with photos and approvals.

        ``for_update`` locks the inspection row until the transaction ends
        and refreshes any copy already in the identity map.
        """
        stmt = (
            select(InspectionModel)
            .where(InspectionModel.id == inspection_id)
            .options(
                selectinload(InspectionModel.photos),
                selectinload(InspectionModel.approvals),
            )
        )
        if for_update:
            # vehicle/author are outer-joined; lock only the inspection row
            stmt = stmt.with_for_update(of=InspectionModel).execution_options(
                populate_existing=True,
            )
        model = self.session.execute(stmt).unique().scalar_one_or_none()
        if model is None:
            raise InspectionNotFoundError(str(inspection_id))
        return model

    def _require_editable(self, model: InspectionModel, requested: str) -> None:
        status = InspectionStatus(model.status)
        if status not in EDITABLE_STATUSES:
            raise InvalidTransitionError(str(model.id), status.value, requested)

    def _conditional_status_update(
        self,
        inspection_id: UUID,
        expected: InspectionStatus,
        target: InspectionStatus,
        **values,
    ) -> None:
        """
        UPDATE ... SET status=target WHERE id=? AND status=expected.

        A row count of zero means the inspection is gone or someone else
        moved it first.
        """
        result = self.session.execute(
            update(InspectionModel)
            .where(
                InspectionModel.id == inspection_id,
                InspectionModel.status == expected.value,
            )
            .values(status=target.value, updated_at=self._clock.now(), **values)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            current = self.session.execute(
                select(InspectionModel.status)
                .where(InspectionModel.id == inspection_id)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if current is None:
                raise InspectionNotFoundError(str(inspection_id))
            raise InvalidTransitionError(str(inspection_id), current, target.value)

    # ------------------------------------------------------------------
    # Creation and edits
    # ------------------------------------------------------------------

    def create_inspection(
        self,
        author_id: UUID,
        vehicle_id: UUID,
        mileage: int,
        checklist: Mapping[str, object] | None = None,
        observations: str | None = None,
        status: InspectionStatus = InspectionStatus.SUBMITTED,
        photos: Iterable[UploadedPhoto] = (),
        required_photo_types: Iterable[PhotoType] = tuple(PhotoType),
        signature: SignatureRecord | None = None,
        signature_required: bool = True,
    ) -> UUID:
        """
        Persist a new inspection with its already-uploaded photos and
        signature.

        Returns the new inspection id.
        """
        if status not in INITIAL_STATUSES:
            raise InvalidTransitionError("new", "none", status.value)
        photos = tuple(photos)
        if status is InspectionStatus.SUBMITTED:
            require_photo_set((p.photo_type for p in photos), required_photo_types)
            if signature_required:
                require_signature(signature)
        if self.session.get(VehicleModel, vehicle_id) is None:
            raise VehicleNotFoundError(str(vehicle_id))

        now = self._clock.now()
        model = InspectionModel(
            id=uuid4(),
            vehicle_id=vehicle_id,
            author_id=author_id,
            status=status.value,
            mileage=validate_mileage(mileage),
            checklist=normalize_checklist(checklist),
            observations=observations,
            created_at=now,
            updated_at=now,
            submitted_at=now if status is InspectionStatus.SUBMITTED else None,
        )
        if signature is not None:
            self._apply_signature(model, signature)
        for photo in photos:
            model.photos.append(self._photo_row(photo))
        self.session.add(model)
        self.session.flush()

        logger.info(
            "inspection_created",
            extra={
                "inspection_id": str(model.id),
                "vehicle_id": str(vehicle_id),
                "status": status.value,
                "photo_count": len(photos),
                "signed": signature is not None,
            },
        )
        return model.id

    def update_fields(
        self,
        inspection_id: UUID,
        mileage: int | None = None,
        checklist: Mapping[str, object] | None = None,
        observations=UNSET,
    ) -> None:
        """Edit mileage, checklist items or observations in place."""
        model = self._get(inspection_id, for_update=True)
        self._require_editable(model, "edit")

        if mileage is not None:
            model.mileage = validate_mileage(mileage)
        if checklist is not None:
            model.checklist = normalize_checklist(checklist, base=model.checklist)
        if observations is not UNSET:
            model.observations = observations
        model.updated_at = self._clock.now()
        self.session.flush()

        logger.info("inspection_updated", extra={"inspection_id": str(inspection_id)})

    # ------------------------------------------------------------------
    # Photos
    # ------------------------------------------------------------------

    def _photo_row(self, photo: UploadedPhoto) -> InspectionPhotoModel:
        return InspectionPhotoModel(
            id=uuid4(),
            photo_type=photo.photo_type.value,
            remote_id=photo.remote_id,
            url=photo.url,
            content_type=photo.content_type,
            size=photo.size,
            created_at=self._clock.now(),
        )

    def ensure_editable(
        self, inspection_id: UUID, requested: str = "photo_change",
    ) -> None:
        """Raise unless photos or the signature may currently change."""
        self._require_editable(self._get(inspection_id), requested)

    def add_photo(
        self, inspection_id: UUID, photo: UploadedPhoto,
    ) -> InspectionPhotoRecord:
        model = self._get(inspection_id, for_update=True)
        self._require_editable(model, "photo_change")

        row = self._photo_row(photo)
        model.photos.append(row)
        model.updated_at = self._clock.now()
        self.session.flush()

        logger.info(
            "inspection_photo_added",
            extra={
                "inspection_id": str(inspection_id),
                "photo_type": photo.photo_type.value,
                "remote_id": photo.remote_id,
            },
        )
        return row.to_dto()

    def delete_photo(
        self,
        inspection_id: UUID,
        photo_id: UUID,
        required_photo_types: Iterable[PhotoType] = tuple(PhotoType),
    ) -> str:
        """
        Delete one photo row. Returns its remote id for asset cleanup.

        While SUBMITTED the remaining photos must still cover every
        required type; otherwise MissingPhotosError is raised.
        """
        model = self._get(inspection_id, for_update=True)
        self._require_editable(model, "photo_change")

        row = next((p for p in model.photos if p.id == photo_id), None)
        if row is None:
            raise PhotoNotFoundError(str(photo_id))
        if model.status == InspectionStatus.SUBMITTED.value:
            require_photo_set(
                (PhotoType(p.photo_type) for p in model.photos if p is not row),
                required_photo_types,
            )
        remote_id = row.remote_id
        model.photos.remove(row)
        model.updated_at = self._clock.now()
        self.session.flush()

        logger.info(
            "inspection_photo_deleted",
            extra={"inspection_id": str(inspection_id), "remote_id": remote_id},
        )
        return remote_id

    # ------------------------------------------------------------------
    # Signature
    # ------------------------------------------------------------------

    def _apply_signature(self, model: InspectionModel, signature: SignatureRecord) -> None:
        model.signature_remote_id = signature.remote_id
        model.signature_url = signature.url
        model.signed_at = self._clock.now()

    def set_signature(
        self, inspection_id: UUID, signature: SignatureRecord,
    ) -> str | None:
        """
        Attach or replace the inspector's signature.

        Returns the remote id of the replaced signature, if any; the
        caller removes that asset after commit.
        """
        model = self._get(inspection_id, for_update=True)
        self._require_editable(model, "signature_change")

        previous = model.signature_remote_id
        self._apply_signature(model, signature)
        model.updated_at = self._clock.now()
        self.session.flush()

        logger.info(
            "inspection_signed",
            extra={
                "inspection_id": str(inspection_id),
                "remote_id": signature.remote_id,
                "replaced_remote_id": previous,
            },
        )
        return previous

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def submit(
        self,
        inspection_id: UUID,
        expected: InspectionStatus,
        required_photo_types: Iterable[PhotoType] = tuple(PhotoType),
        signature_required: bool = True,
    ) -> None:
        """
        Move a DRAFT (submit) or REJECTED (resubmit) inspection to SUBMITTED.

        On resubmission the current approval is archived, not deleted.
        """
        model = self._get(inspection_id, for_update=True)
        current = InspectionStatus(model.status)
        if current is not expected or not can_transition(
            current, InspectionStatus.SUBMITTED
        ):
            raise InvalidTransitionError(
                str(inspection_id), current.value, InspectionStatus.SUBMITTED.value,
            )
        require_photo_set(
            (PhotoType(p.photo_type) for p in model.photos), required_photo_types,
        )
        if signature_required:
            require_signature(model.signature)

        now = self._clock.now()
        superseded = model.current_approval
        if superseded is not None:
            superseded.is_current = False
            superseded.superseded_at = now
            self.session.flush()

        self._conditional_status_update(
            inspection_id, expected, InspectionStatus.SUBMITTED, submitted_at=now,
        )
        self.session.flush()

        logger.info(
            "inspection_submitted",
            extra={
                "inspection_id": str(inspection_id),
                "from_status": expected.value,
                "superseded_approval_id": (
                    str(superseded.id) if superseded is not None else None
                ),
            },
        )

    def record_decision(
        self,
        inspection_id: UUID,
        reviewer_id: UUID,
        decision: ApprovalDecision,
        comment: str | None = None,
        require_rejection_comment: bool = True,
        approved_vehicle_status: VehicleStatus = VehicleStatus.ACTIVE,
        required_photo_types: Iterable[PhotoType] = tuple(PhotoType),
        signature_required: bool = True,
    ) -> ApprovalRecord:
        """
        Record an approve/reject decision on a SUBMITTED inspection.

        The status change, the approval row and the vehicle update are
        written in the caller's transaction; they commit together or not
        at all.  An approval re-checks the photo set and signature under
        the row lock taken by the status update.
        """
        comment = (comment or "").strip() or None
        if (
            decision is ApprovalDecision.REJECTED
            and require_rejection_comment
            and comment is None
        ):
            raise RejectionReasonRequiredError()

        self._conditional_status_update(
            inspection_id, InspectionStatus.SUBMITTED, decision.target_status,
        )
        model = self._get(inspection_id, for_update=True)
        if decision is ApprovalDecision.APPROVED:
            require_photo_set(
                (PhotoType(p.photo_type) for p in model.photos), required_photo_types,
            )
            if signature_required:
                require_signature(model.signature)

        now = self._clock.now()
        approval = InspectionApprovalModel(
            id=uuid4(),
            inspection_id=inspection_id,
            reviewer_id=reviewer_id,
            decision=decision.value,
            comment=comment,
            decided_at=now,
            is_current=True,
        )
        self.session.add(approval)

        if decision is ApprovalDecision.APPROVED:
            self.session.execute(
                update(VehicleModel)
                .where(VehicleModel.id == model.vehicle_id)
                .values(
                    status=approved_vehicle_status.value,
                    last_approved_inspection_id=inspection_id,
                    updated_at=now,
                )
                .execution_options(synchronize_session="fetch")
            )
        self.session.flush()

        logger.info(
            "approval_recorded",
            extra={
                "inspection_id": str(inspection_id),
                "approval_id": str(approval.id),
                "decision": decision.value,
            },
        )
        return approval.to_dto()

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete_inspection(
        self, inspection_id: UUID, allow_approved: bool = False,
    ) -> tuple[str, ...]:
        """
        Delete the inspection with its photo and approval rows.

        Returns the remote ids of the deleted photos and signature; the
        caller removes the assets after commit.
        """
        model = self._get(inspection_id, for_update=True)
        if model.status == InspectionStatus.APPROVED.value and not allow_approved:
            raise InvalidTransitionError(
                str(inspection_id), model.status, "delete",
            )
        remote_ids = tuple(p.remote_id for p in model.photos)
        if model.signature_remote_id is not None:
            remote_ids += (model.signature_remote_id,)

        self.session.execute(
            update(VehicleModel)
            .where(VehicleModel.last_approved_inspection_id == inspection_id)
            .values(last_approved_inspection_id=None)
            .execution_options(synchronize_session="fetch")
        )
        self.session.delete(model)
        self.session.flush()

        logger.info(
            "inspection_deleted",
            extra={
                "inspection_id": str(inspection_id),
                "asset_count": len(remote_ids),
            },
        )
        return remote_ids
