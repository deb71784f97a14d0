"""
Typed exception hierarchy for the inspection kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every failure the workflow can produce maps to a distinct outcome for the
caller (the HTTP layer turns them into 403 / 404 / 409 / 422 / 502).  Callers
must be able to tell them apart without parsing message strings, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        workflow.approve(actor, inspection_id)
    except InvalidTransitionError as e:
        return conflict(code=e.code, current=e.current_status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InspectionKernelError (base)
    |
    +-- AuthorizationError              actor lacks the capability
    |   +-- SelfApprovalError           author judging own submission
    |
    +-- InvalidTransitionError          state change not legal from here
    |
    +-- NotFoundError
    |   +-- InspectionNotFoundError
    |   +-- VehicleNotFoundError
    |   +-- PhotoNotFoundError
    |
    +-- ValidationFailureError
    |   +-- UnknownPhotoTypeError
    |   +-- MissingPhotosError
    |   +-- InvalidChecklistError
    |   +-- RejectionReasonRequiredError
    |   +-- MissingSignatureError
    |
    +-- UpstreamFailureError
    |   +-- UpstreamTimeoutError
    |   +-- MediaUploadError
    |   +-- PhotoPersistenceError
    |   +-- PdfRenderError
    |
    +-- ImmutabilityViolationError      decided approval fields changed

===============================================================================
PROPAGATION
===============================================================================

AuthorizationError, InvalidTransitionError, NotFoundError and
ValidationFailureError are raised before any write is attempted and are
never retried.  UpstreamFailureError on a required step aborts the
operation after compensation; on a best-effort step (notify) it is caught
by the notifier and reported, never raised to the caller.
"""

from __future__ import annotations

from collections.abc import Iterable


class InspectionKernelError(Exception):
    """
    Base exception for all inspection kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "INSPECTION_KERNEL_ERROR"


# Authorization


class AuthorizationError(InspectionKernelError):
    """Actor's role set does not permit the requested operation."""

    code: str = "UNAUTHORIZED"

    def __init__(self, actor_id: str, operation: str, reason: str = ""):
        self.actor_id = actor_id
        self.operation = operation
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"Actor {actor_id} is not authorized for {operation}{detail}"
        )


class SelfApprovalError(AuthorizationError):
    """The inspection's author attempted to approve or reject it."""

    code: str = "SELF_APPROVAL_FORBIDDEN"

    def __init__(self, actor_id: str, operation: str, inspection_id: str):
        self.inspection_id = inspection_id
        super().__init__(
            actor_id,
            operation,
            f"author cannot judge own inspection {inspection_id}",
        )


# State machine


class InvalidTransitionError(InspectionKernelError):
    """Requested state change is not legal from the current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        inspection_id: str,
        current_status: str,
        requested: str,
    ):
        self.inspection_id = inspection_id
        self.current_status = current_status
        self.requested = requested
        super().__init__(
            f"Inspection {inspection_id} cannot go to {requested} "
            f"from {current_status}"
        )


# Not found


class NotFoundError(InspectionKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"
    entity_type: str = "Record"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class InspectionNotFoundError(NotFoundError):
    code: str = "INSPECTION_NOT_FOUND"
    entity_type: str = "Inspection"


class VehicleNotFoundError(NotFoundError):
    code: str = "VEHICLE_NOT_FOUND"
    entity_type: str = "Vehicle"


class PhotoNotFoundError(NotFoundError):
    code: str = "PHOTO_NOT_FOUND"
    entity_type: str = "InspectionPhoto"


# Validation


class ValidationFailureError(InspectionKernelError):
    """Malformed input rejected before any mutation."""

    code: str = "VALIDATION_FAILURE"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class UnknownPhotoTypeError(ValidationFailureError):
    code: str = "UNKNOWN_PHOTO_TYPE"

    def __init__(self, photo_type: str):
        self.photo_type = photo_type
        super().__init__(f"Unknown photo type: {photo_type!r}", "photo_type")


class MissingPhotosError(ValidationFailureError):
    """Submission attempted without the required photo set."""

    code: str = "MISSING_PHOTOS"

    def __init__(self, missing: Iterable[str]):
        self.missing = tuple(sorted(missing))
        super().__init__(
            f"Required photos missing: {', '.join(self.missing)}", "photos",
        )


class InvalidChecklistError(ValidationFailureError):
    code: str = "INVALID_CHECKLIST"

    def __init__(self, unknown_keys: Iterable[str]):
        self.unknown_keys = tuple(sorted(unknown_keys))
        super().__init__(
            f"Unknown checklist items: {', '.join(self.unknown_keys)}",
            "checklist",
        )


class RejectionReasonRequiredError(ValidationFailureError):
    code: str = "REJECTION_REASON_REQUIRED"

    def __init__(self):
        super().__init__("Comments are required when rejecting", "comments")


class MissingSignatureError(ValidationFailureError):
    """Submission attempted without the inspector's signature."""

    code: str = "MISSING_SIGNATURE"

    def __init__(self):
        super().__init__("Signature is required", "signature")


# Upstream collaborators


class UpstreamFailureError(InspectionKernelError):
    """A media store, notification sender or PDF renderer call failed."""

    code: str = "UPSTREAM_FAILURE"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Upstream failure during {operation}: {reason}")


class UpstreamTimeoutError(UpstreamFailureError):
    code: str = "UPSTREAM_TIMEOUT"

    def __init__(self, operation: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(operation, f"timed out after {timeout_seconds}s")


class MediaUploadError(UpstreamFailureError):
    code: str = "MEDIA_UPLOAD_FAILED"


class PhotoPersistenceError(UpstreamFailureError):
    """
    Photo row could not be persisted after a successful upload.

    ``compensated`` tells whether the uploaded asset was removed again;
    when False, ``orphaned_remote_ids`` must be reconciled by an operator.
    """

    code: str = "PHOTO_PERSISTENCE_FAILED"

    def __init__(
        self,
        reason: str,
        remote_ids: Iterable[str],
        orphaned_remote_ids: Iterable[str] = (),
    ):
        self.remote_ids = tuple(remote_ids)
        self.orphaned_remote_ids = tuple(orphaned_remote_ids)
        self.compensated = not self.orphaned_remote_ids
        super().__init__("photo_persist", reason)


class PdfRenderError(UpstreamFailureError):
    code: str = "PDF_RENDER_FAILED"


# Immutability


class ImmutabilityViolationError(InspectionKernelError):
    """Attempted to modify the decision fields of a recorded approval."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
