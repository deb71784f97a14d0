"""
inspection_services.workflow -- Inspection workflow orchestration.

Responsibility:
    The single entry point for every inspection operation.  Each method
    authorizes the actor, opens its own transaction from the injected
    session factory, delegates the write to InspectionService, and then
    drives the side effects (media store, notifications, PDF renderer)
    around that transaction.

Architecture position:
    Services layer.  May import from inspection_kernel (domain, db,
    selectors, services) and inspection_config.  Holds no request state
    between calls; the actor is passed into every operation.

Invariants enforced:
    - Authorization is evaluated before any write or upload.
    - A decision commits the status change, the approval row and the
      vehicle update together; the author is notified after commit.
    - An uploaded photo or signature whose row cannot be persisted is
      deleted again (compensation).  An upload that times out and completes later is
      deleted by a late-result hook.
    - Row deletions commit before remote assets are removed, so no
      persisted row ever points at a deleted asset.  A remote deletion
      failure yields DeletionStatus.PARTIAL_FAILURE, never plain success.
    - Every transition emits a ``workflow_transition`` trace with its
      outcome and duration.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from inspection_config.schema import TimeoutSettings, WorkflowConfig
from inspection_kernel.db.engine import session_scope
from inspection_kernel.domain.authorization import (
    DECISION_OPERATIONS,
    DEFAULT_CAPABILITIES,
    ActorContext,
    CapabilityTable,
    Operation,
    approval_capable_roles,
    authorize,
    build_capability_table,
    check_authorization,
    is_allowed,
)
from inspection_kernel.domain.clock import Clock, SystemClock
from inspection_kernel.domain.inspection import (
    ApprovalDecision,
    InspectionDetail,
    InspectionPhotoRecord,
    InspectionStatus,
    InspectionSummary,
    PhotoType,
    SignatureRecord,
    UploadedPhoto,
    VehicleStatus,
    normalize_checklist,
    parse_photo_type,
    require_photo_set,
)
from inspection_kernel.domain.projections import (
    NotificationTemplate,
    build_pdf_document,
    pdf_filename,
)
from inspection_kernel.exceptions import (
    AuthorizationError,
    InspectionKernelError,
    MediaUploadError,
    MissingSignatureError,
    PdfRenderError,
    PhotoPersistenceError,
    SelfApprovalError,
    UpstreamFailureError,
)
from inspection_kernel.logging_config import LogContext, get_logger
from inspection_kernel.selectors.inspection_selector import (
    InspectionSelector,
    ProjectionShape,
)
from inspection_kernel.services.inspection_service import (
    UNSET,
    InspectionService,
    validate_mileage,
)
from inspection_services.media_store import MediaStore, StoredAsset
from inspection_services.notifier import InspectionNotifier, NotificationReport
from inspection_services.pdf_renderer import PdfRenderer
from inspection_services.upstream import bounded_call

logger = get_logger("services.workflow")

TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_SUCCESS = "success"
OUTCOME_FAILED = "failed"


def _emit_workflow_trace(
    action: str,
    inspection_id: UUID | None,
    from_state: str | None,
    outcome: str,
    reason: str,
    duration_ms: float,
    to_state: str | None = None,
    error_code: str | None = None,
) -> None:
    """Emit a structured workflow transition record."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
        "trace_ts": datetime.now(UTC).isoformat(),
        "action": action,
        "entity_type": "Inspection",
        "entity_id": str(inspection_id) if inspection_id is not None else None,
        "from_state": from_state,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
    }
    if to_state is not None:
        record["to_state"] = to_state
    if error_code is not None:
        record["error_code"] = error_code
    logger.info("workflow_transition", extra=record)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PhotoUpload:
    """A photo as received from the caller, before upload."""

    photo_type: str | PhotoType
    content: bytes
    content_type: str | None = None


@dataclass(frozen=True)
class SignatureUpload:
    """The inspector's signature image, before upload."""

    content: bytes
    content_type: str | None = "image/png"


@dataclass(frozen=True)
class TransitionResult:
    inspection: InspectionDetail
    notification: NotificationReport | None = None


class DeletionStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL_FAILURE = "partial_failure"


@dataclass(frozen=True)
class DeletionOutcome:
    """
    Result of deleting an inspection or a photo.

    The rows are always gone; ``orphaned_remote_ids`` lists assets that
    are still in the media store and need reconciliation.
    """

    status: DeletionStatus
    inspection_id: UUID
    deleted_remote_ids: tuple[str, ...] = ()
    orphaned_remote_ids: tuple[str, ...] = ()

    @property
    def is_complete(self) -> bool:
        return self.status is DeletionStatus.COMPLETED


@dataclass(frozen=True)
class PdfExport:
    filename: str
    content: bytes
    content_type: str = field(default="application/pdf")


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


class InspectionWorkflow:
    """Orchestrates every inspection operation for an explicit actor."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        media_store: MediaStore,
        notifier: InspectionNotifier,
        pdf_renderer: PdfRenderer,
        config: WorkflowConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._media_store = media_store
        self._notifier = notifier
        self._pdf_renderer = pdf_renderer
        self._clock = clock or SystemClock()

        if config is not None:
            self._capabilities: CapabilityTable = build_capability_table(
                config.capabilities
            )
            self._required_photo_types = tuple(
                PhotoType(p) for p in config.workflow.required_photo_types
            )
            self._require_rejection_comment = config.workflow.require_rejection_comment
            self._require_signature = config.workflow.require_signature
            self._approved_vehicle_status = VehicleStatus(
                config.workflow.approved_vehicle_status
            )
            self._timeouts = config.timeouts
            self._media_folder = config.media.folder
            self._pdf_title = config.pdf.title
        else:
            self._capabilities = DEFAULT_CAPABILITIES
            self._required_photo_types = tuple(PhotoType)
            self._require_rejection_comment = True
            self._require_signature = True
            self._approved_vehicle_status = VehicleStatus.ACTIVE
            self._timeouts = TimeoutSettings()
            self._media_folder = "inspections"
            self._pdf_title = "Vehicle Inspection Report"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _session(self):
        return session_scope(self._session_factory)

    def _authorize(
        self,
        actor: ActorContext,
        operation: Operation,
        author_id: UUID | None = None,
        inspection_id: UUID | None = None,
    ) -> None:
        decision = authorize(actor, operation, author_id, self._capabilities)
        if decision:
            return
        logger.warning(
            "authorization_denied",
            extra={"requested": operation.value, "reason": decision.reason},
        )
        if (
            operation in DECISION_OPERATIONS
            and author_id is not None
            and author_id == actor.user_id
        ):
            raise SelfApprovalError(
                str(actor.user_id), operation.value, str(inspection_id),
            )
        raise AuthorizationError(str(actor.user_id), operation.value, decision.reason)

    def _require_capability(self, actor: ActorContext, operation: Operation) -> None:
        """Role-only check; needs no I/O."""
        decision = check_authorization(actor.roles, operation, self._capabilities)
        if not decision:
            logger.warning(
                "authorization_denied",
                extra={"requested": operation.value, "reason": decision.reason},
            )
            raise AuthorizationError(str(actor.user_id), operation.value, decision.reason)

    def _header(self, inspection_id: UUID) -> tuple[UUID, InspectionStatus]:
        with self._session() as session:
            return InspectionSelector(session).get_author_and_status(inspection_id)

    def _detail(
        self,
        inspection_id: UUID,
        shape: ProjectionShape = ProjectionShape.FULL_DETAIL,
    ) -> InspectionDetail:
        with self._session() as session:
            return InspectionSelector(session).get_detail(inspection_id, shape)

    @contextmanager
    def _traced(
        self, action: str, inspection_id: UUID | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Time a transition and emit its trace on the way out."""
        t0 = time.monotonic()
        trace: dict[str, Any] = {
            "inspection_id": inspection_id,
            "from_state": None,
            "to_state": None,
        }
        try:
            yield trace
        except InspectionKernelError as exc:
            _emit_workflow_trace(
                action=action,
                inspection_id=trace["inspection_id"],
                from_state=trace["from_state"],
                outcome=OUTCOME_FAILED,
                reason=str(exc),
                duration_ms=(time.monotonic() - t0) * 1000,
                error_code=exc.code,
            )
            raise
        _emit_workflow_trace(
            action=action,
            inspection_id=trace["inspection_id"],
            from_state=trace["from_state"],
            outcome=OUTCOME_SUCCESS,
            reason="",
            duration_ms=(time.monotonic() - t0) * 1000,
            to_state=trace["to_state"],
        )

    def _reviewers(self, session: Session):
        roles = approval_capable_roles(self._capabilities)
        return InspectionSelector(session).active_users_with_roles(roles)

    def _notify_reviewers(
        self, inspection_id: UUID, template: NotificationTemplate,
    ) -> tuple[InspectionDetail, NotificationReport]:
        with self._session() as session:
            selector = InspectionSelector(session)
            detail = selector.get_detail(inspection_id)
            reviewers = self._reviewers(session)
        return detail, self._notifier.notify_reviewers(detail, reviewers, template)

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    def _discard_late_upload(self, asset: StoredAsset) -> None:
        logger.warning(
            "late_upload_discarded", extra={"remote_id": asset.remote_id},
        )
        if not self._media_store.delete(asset.remote_id):
            logger.error(
                "remote_asset_orphaned", extra={"remote_id": asset.remote_id},
            )

    def _store(
        self, content: bytes, content_type: str | None, folder: str,
    ) -> StoredAsset:
        return bounded_call(
            lambda: self._media_store.upload(content, content_type, folder),
            self._timeouts.upload_seconds,
            "media_upload",
            on_late_result=self._discard_late_upload,
            error_cls=MediaUploadError,
        )

    def _upload_signature(self, upload: SignatureUpload) -> SignatureRecord:
        folder = "/".join(p for p in (self._media_folder, "signatures") if p)
        asset = self._store(upload.content, upload.content_type, folder)
        return SignatureRecord(remote_id=asset.remote_id, url=asset.url)

    def _upload(self, upload: PhotoUpload, photo_type: PhotoType) -> UploadedPhoto:
        asset = self._store(upload.content, upload.content_type, self._media_folder)
        return UploadedPhoto(
            photo_type=photo_type,
            remote_id=asset.remote_id,
            url=asset.url,
            content_type=asset.content_type or upload.content_type,
            size=asset.size if asset.size is not None else len(upload.content),
        )

    def _delete_remote(self, remote_ids: Iterable[str]) -> tuple[list[str], list[str]]:
        """Attempt every deletion. Returns (deleted, orphaned)."""
        deleted: list[str] = []
        orphaned: list[str] = []
        for remote_id in remote_ids:
            try:
                ok = bounded_call(
                    lambda rid=remote_id: self._media_store.delete(rid),
                    self._timeouts.delete_seconds,
                    "media_delete",
                )
            except UpstreamFailureError as exc:
                logger.warning(
                    "media_delete_error",
                    extra={"remote_id": remote_id, "error": str(exc)},
                )
                ok = False
            if ok:
                deleted.append(remote_id)
            else:
                orphaned.append(remote_id)
                logger.error("remote_asset_orphaned", extra={"remote_id": remote_id})
        return deleted, orphaned

    def _upload_all(
        self, uploads: Sequence[tuple[PhotoUpload, PhotoType]],
    ) -> list[UploadedPhoto]:
        """Upload in order; on the first failure delete what was stored."""
        stored: list[UploadedPhoto] = []
        try:
            for upload, photo_type in uploads:
                stored.append(self._upload(upload, photo_type))
        except InspectionKernelError:
            self._delete_remote(p.remote_id for p in stored)
            raise
        return stored

    def _compensate(self, remote_ids: Sequence[str], exc: Exception) -> None:
        """Undo uploads whose rows were not persisted, then raise."""
        remote_ids = list(remote_ids)
        _, orphaned = self._delete_remote(remote_ids)
        logger.warning(
            "photo_upload_compensated",
            extra={"remote_ids": remote_ids, "orphaned_remote_ids": orphaned},
        )
        if isinstance(exc, InspectionKernelError):
            raise exc
        raise PhotoPersistenceError(
            f"{type(exc).__name__}: {exc}", remote_ids, orphaned,
        ) from exc

    # ------------------------------------------------------------------
    # Create / read / edit
    # ------------------------------------------------------------------

    def create_inspection(
        self,
        actor: ActorContext,
        vehicle_id: UUID,
        mileage: int,
        checklist: Mapping[str, object] | None = None,
        observations: str | None = None,
        photos: Sequence[PhotoUpload] = (),
        submit: bool = True,
        signature: SignatureUpload | None = None,
    ) -> TransitionResult:
        """
        Create an inspection, uploading its photos and signature first.

        ``submit=False`` saves a DRAFT, which may have an incomplete photo
        set and no signature.  A submitted inspection notifies the
        reviewers.
        """
        status = InspectionStatus.SUBMITTED if submit else InspectionStatus.DRAFT
        with LogContext.bind(actor_id=actor.user_id, operation=Operation.CREATE.value), \
                self._traced(Operation.CREATE.value) as trace:
            self._authorize(actor, Operation.CREATE)

            typed = [(p, parse_photo_type(p.photo_type)) for p in photos]
            if submit:
                require_photo_set((t for _, t in typed), self._required_photo_types)
                if self._require_signature and signature is None:
                    raise MissingSignatureError()
            validate_mileage(mileage)
            normalize_checklist(checklist)
            with self._session() as session:
                InspectionSelector(session).get_vehicle(vehicle_id)

            stored = self._upload_all(typed)
            remote_ids = [p.remote_id for p in stored]
            signed = None
            if signature is not None:
                try:
                    signed = self._upload_signature(signature)
                except InspectionKernelError:
                    self._delete_remote(remote_ids)
                    raise
                remote_ids.append(signed.remote_id)
            try:
                with self._session() as session:
                    inspection_id = InspectionService(session, self._clock).create_inspection(
                        author_id=actor.user_id,
                        vehicle_id=vehicle_id,
                        mileage=mileage,
                        checklist=checklist,
                        observations=observations,
                        status=status,
                        photos=stored,
                        required_photo_types=self._required_photo_types,
                        signature=signed,
                        signature_required=self._require_signature,
                    )
            except Exception as exc:
                self._compensate(remote_ids, exc)
            trace.update(inspection_id=inspection_id, to_state=status.value)

        with LogContext.bind(inspection_id=inspection_id):
            if submit:
                detail, report = self._notify_reviewers(
                    inspection_id, NotificationTemplate.INSPECTION_SUBMITTED,
                )
                return TransitionResult(detail, report)
            return TransitionResult(self._detail(inspection_id))

    def list_inspections(
        self,
        actor: ActorContext,
        status: InspectionStatus | None = None,
        vehicle_id: UUID | None = None,
    ) -> list[InspectionSummary]:
        """Actors without ``inspection.view_any`` see only their own."""
        self._authorize(actor, Operation.LIST)
        author_id = (
            None
            if is_allowed(actor.roles, Operation.VIEW_ANY, self._capabilities)
            else actor.user_id
        )
        with self._session() as session:
            return InspectionSelector(session).list_summaries(
                author_id=author_id, status=status, vehicle_id=vehicle_id,
            )

    def get_inspection(self, actor: ActorContext, inspection_id: UUID) -> InspectionDetail:
        self._require_capability(actor, Operation.VIEW)
        author_id, _ = self._header(inspection_id)
        self._authorize(actor, Operation.VIEW, author_id, inspection_id)
        return self._detail(inspection_id)

    def update_inspection(
        self,
        actor: ActorContext,
        inspection_id: UUID,
        mileage: int | None = None,
        checklist: Mapping[str, object] | None = None,
        observations=UNSET,
    ) -> InspectionDetail:
        """Edit content fields; refused once APPROVED."""
        with LogContext.bind(
            actor_id=actor.user_id,
            inspection_id=inspection_id,
            operation=Operation.EDIT.value,
        ):
            self._require_capability(actor, Operation.EDIT)
            with self._session() as session:
                author_id, _ = InspectionSelector(session).get_author_and_status(
                    inspection_id
                )
                self._authorize(actor, Operation.EDIT, author_id, inspection_id)
                InspectionService(session, self._clock).update_fields(
                    inspection_id,
                    mileage=mileage,
                    checklist=checklist,
                    observations=observations,
                )
            return self._detail(inspection_id)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def _submit(
        self,
        actor: ActorContext,
        inspection_id: UUID,
        operation: Operation,
        expected: InspectionStatus,
        template: NotificationTemplate,
    ) -> TransitionResult:
        with LogContext.bind(
            actor_id=actor.user_id,
            inspection_id=inspection_id,
            operation=operation.value,
        ):
            with self._traced(operation.value, inspection_id) as trace:
                self._require_capability(actor, operation)
                with self._session() as session:
                    author_id, current = InspectionSelector(
                        session
                    ).get_author_and_status(inspection_id)
                    trace["from_state"] = current.value
                    self._authorize(actor, operation, author_id, inspection_id)
                    InspectionService(session, self._clock).submit(
                        inspection_id, expected, self._required_photo_types,
                        signature_required=self._require_signature,
                    )
                trace["to_state"] = InspectionStatus.SUBMITTED.value
            detail, report = self._notify_reviewers(inspection_id, template)
            return TransitionResult(detail, report)

    def submit_inspection(
        self, actor: ActorContext, inspection_id: UUID,
    ) -> TransitionResult:
        """DRAFT -> SUBMITTED."""
        return self._submit(
            actor,
            inspection_id,
            Operation.SUBMIT,
            InspectionStatus.DRAFT,
            NotificationTemplate.INSPECTION_SUBMITTED,
        )

    def resubmit_inspection(
        self, actor: ActorContext, inspection_id: UUID,
    ) -> TransitionResult:
        """REJECTED -> SUBMITTED; the rejection is archived."""
        return self._submit(
            actor,
            inspection_id,
            Operation.RESUBMIT,
            InspectionStatus.REJECTED,
            NotificationTemplate.INSPECTION_RESUBMITTED,
        )

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def decide(
        self,
        actor: ActorContext,
        inspection_id: UUID,
        approved: bool,
        comment: str | None = None,
    ) -> TransitionResult:
        """
        Approve or reject a SUBMITTED inspection.

        Order: role capability, load, self-approval guard, comment
        validation, one transaction (conditional status update, approval
        row, vehicle update), then best-effort notification of the author.
        """
        decision = ApprovalDecision.APPROVED if approved else ApprovalDecision.REJECTED
        operation = Operation.APPROVE if approved else Operation.REJECT

        with LogContext.bind(
            actor_id=actor.user_id,
            inspection_id=inspection_id,
            operation=operation.value,
        ):
            with self._traced(operation.value, inspection_id) as trace:
                self._require_capability(actor, operation)
                with self._session() as session:
                    author_id, current = InspectionSelector(
                        session
                    ).get_author_and_status(inspection_id)
                    trace["from_state"] = current.value
                    self._authorize(actor, operation, author_id, inspection_id)
                    approval = InspectionService(session, self._clock).record_decision(
                        inspection_id,
                        reviewer_id=actor.user_id,
                        decision=decision,
                        comment=comment,
                        require_rejection_comment=self._require_rejection_comment,
                        approved_vehicle_status=self._approved_vehicle_status,
                        required_photo_types=self._required_photo_types,
                        signature_required=self._require_signature,
                    )
                trace["to_state"] = decision.target_status.value

            logger.info(
                "inspection_decided",
                extra={
                    "approval_id": str(approval.approval_id),
                    "decision": decision.value,
                },
            )
            detail = self._detail(inspection_id)
            report = self._notifier.notify_author(detail, decision)
            return TransitionResult(detail, report)

    def approve(
        self, actor: ActorContext, inspection_id: UUID, comment: str | None = None,
    ) -> TransitionResult:
        return self.decide(actor, inspection_id, True, comment)

    def reject(
        self, actor: ActorContext, inspection_id: UUID, comment: str | None,
    ) -> TransitionResult:
        return self.decide(actor, inspection_id, False, comment)

    # ------------------------------------------------------------------
    # Photos
    # ------------------------------------------------------------------

    def add_photo(
        self, actor: ActorContext, inspection_id: UUID, upload: PhotoUpload,
    ) -> InspectionPhotoRecord:
        """
        Upload, then persist the row.  If the row cannot be persisted the
        uploaded asset is deleted and PhotoPersistenceError is raised.
        """
        with LogContext.bind(
            actor_id=actor.user_id,
            inspection_id=inspection_id,
            operation=Operation.ADD_PHOTO.value,
        ):
            self._require_capability(actor, Operation.ADD_PHOTO)
            photo_type = parse_photo_type(upload.photo_type)
            with self._session() as session:
                author_id, _ = InspectionSelector(session).get_author_and_status(
                    inspection_id
                )
                self._authorize(actor, Operation.ADD_PHOTO, author_id, inspection_id)
                InspectionService(session, self._clock).ensure_editable(
                    inspection_id
                )

            stored = self._upload(upload, photo_type)
            try:
                with self._session() as session:
                    return InspectionService(session, self._clock).add_photo(
                        inspection_id, stored,
                    )
            except Exception as exc:
                self._compensate([stored.remote_id], exc)

    def delete_photo(
        self, actor: ActorContext, inspection_id: UUID, photo_id: UUID,
    ) -> DeletionOutcome:
        with LogContext.bind(
            actor_id=actor.user_id,
            inspection_id=inspection_id,
            operation=Operation.DELETE_PHOTO.value,
        ):
            self._require_capability(actor, Operation.DELETE_PHOTO)
            with self._session() as session:
                author_id, _ = InspectionSelector(session).get_author_and_status(
                    inspection_id
                )
                self._authorize(actor, Operation.DELETE_PHOTO, author_id, inspection_id)
                remote_id = InspectionService(session, self._clock).delete_photo(
                    inspection_id, photo_id, self._required_photo_types,
                )
            return self._finish_deletion(inspection_id, [remote_id])

    def sign_inspection(
        self, actor: ActorContext, inspection_id: UUID, upload: SignatureUpload,
    ) -> InspectionDetail:
        """
        Attach or replace the inspector's signature.

        Same upload-then-persist compensation as photos.  A replaced
        signature asset is deleted after commit; if that fails it is
        logged as orphaned and the new signature stays in place.
        """
        with LogContext.bind(
            actor_id=actor.user_id,
            inspection_id=inspection_id,
            operation=Operation.EDIT.value,
        ):
            self._require_capability(actor, Operation.EDIT)
            with self._session() as session:
                author_id, _ = InspectionSelector(session).get_author_and_status(
                    inspection_id
                )
                self._authorize(actor, Operation.EDIT, author_id, inspection_id)
                InspectionService(session, self._clock).ensure_editable(
                    inspection_id, "signature_change",
                )

            signed = self._upload_signature(upload)
            try:
                with self._session() as session:
                    replaced = InspectionService(session, self._clock).set_signature(
                        inspection_id, signed,
                    )
            except Exception as exc:
                self._compensate([signed.remote_id], exc)
            if replaced is not None:
                self._delete_remote([replaced])
            return self._detail(inspection_id)

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def _finish_deletion(
        self, inspection_id: UUID, remote_ids: Sequence[str],
    ) -> DeletionOutcome:
        deleted, orphaned = self._delete_remote(remote_ids)
        status = DeletionStatus.PARTIAL_FAILURE if orphaned else DeletionStatus.COMPLETED
        log = logger.error if orphaned else logger.info
        log(
            "deletion_finished",
            extra={
                "status": status.value,
                "deleted_count": len(deleted),
                "orphaned_remote_ids": orphaned,
            },
        )
        return DeletionOutcome(status, inspection_id, tuple(deleted), tuple(orphaned))

    def delete_inspection(
        self, actor: ActorContext, inspection_id: UUID,
    ) -> DeletionOutcome:
        """
        Delete the inspection, its photos and its approvals, then remove
        each remote asset.  Non-managers cannot delete once APPROVED.
        """
        with LogContext.bind(
            actor_id=actor.user_id,
            inspection_id=inspection_id,
            operation=Operation.DELETE.value,
        ):
            self._require_capability(actor, Operation.DELETE)
            allow_approved = is_allowed(
                actor.roles, Operation.MANAGE_ANY, self._capabilities,
            )
            with self._session() as session:
                author_id, _ = InspectionSelector(session).get_author_and_status(
                    inspection_id
                )
                self._authorize(actor, Operation.DELETE, author_id, inspection_id)
                remote_ids = InspectionService(session, self._clock).delete_inspection(
                    inspection_id, allow_approved=allow_approved,
                )
            return self._finish_deletion(inspection_id, remote_ids)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_pdf(self, actor: ActorContext, inspection_id: UUID) -> PdfExport:
        """Render the inspection report. No state changes."""
        with LogContext.bind(
            actor_id=actor.user_id,
            inspection_id=inspection_id,
            operation=Operation.EXPORT_PDF.value,
        ):
            self._require_capability(actor, Operation.EXPORT_PDF)
            author_id, _ = self._header(inspection_id)
            self._authorize(actor, Operation.EXPORT_PDF, author_id, inspection_id)

            detail = self._detail(inspection_id, ProjectionShape.PDF_EXPORT)
            document = build_pdf_document(detail, self._pdf_title)
            content = bounded_call(
                lambda: self._pdf_renderer.render(document),
                self._timeouts.render_seconds,
                "pdf_render",
                error_cls=PdfRenderError,
            )
            logger.info("pdf_exported", extra={"size": len(content)})
            return PdfExport(
                filename=pdf_filename(detail.vehicle.plate, detail.created_at),
                content=content,
            )
