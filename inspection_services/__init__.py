"""
inspection_services -- Package init and public API.

Responsibility:
    Orchestration over the kernel: the InspectionWorkflow, the collaborator
    contracts (media store, notification sender, PDF renderer) with their
    adapters, and the bounded upstream call helper.  This is the only
    layer that talks to the network.

Architecture position:
    Services.  Dependency direction (enforced by
    tests/architecture/test_import_boundaries.py):
        inspection_services/ -> inspection_kernel/  (allowed)
        inspection_services/ -> inspection_config/  (allowed)
        inspection_kernel/   -> inspection_services/ (FORBIDDEN)
"""

from inspection_services.factory import build_workflow
from inspection_services.media_store import (
    InMemoryMediaStore,
    MediaStore,
    S3MediaStore,
    StoredAsset,
)
from inspection_services.notification_sender import (
    NotificationSender,
    RecordingNotificationSender,
    ResendEmailSender,
)
from inspection_services.notifier import InspectionNotifier, NotificationReport
from inspection_services.pdf_renderer import PdfRenderer, ReportLabPdfRenderer
from inspection_services.upstream import bounded_call
from inspection_services.workflow import (
    DeletionOutcome,
    DeletionStatus,
    InspectionWorkflow,
    PdfExport,
    PhotoUpload,
    TransitionResult,
)

__all__ = [
    "DeletionOutcome",
    "DeletionStatus",
    "InMemoryMediaStore",
    "InspectionNotifier",
    "InspectionWorkflow",
    "MediaStore",
    "NotificationReport",
    "NotificationSender",
    "PdfExport",
    "PdfRenderer",
    "PhotoUpload",
    "RecordingNotificationSender",
    "ReportLabPdfRenderer",
    "ResendEmailSender",
    "S3MediaStore",
    "StoredAsset",
    "TransitionResult",
    "bounded_call",
    "build_workflow",
]
