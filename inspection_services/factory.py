"""
inspection_services.factory -- Wire an InspectionWorkflow from configuration.

Picks the media store and notification sender adapters named in
``WorkflowConfig`` and hands them, with the session factory, to the
workflow.  Tests build the workflow directly with in-memory collaborators.
"""

from __future__ import annotations

from sqlalchemy.orm import Session, sessionmaker

from inspection_config.schema import MediaSettings, NotificationSettings, WorkflowConfig
from inspection_kernel.domain.clock import Clock
from inspection_kernel.logging_config import get_logger
from inspection_services.media_store import InMemoryMediaStore, MediaStore, S3MediaStore
from inspection_services.notification_sender import (
    NotificationSender,
    RecordingNotificationSender,
    ResendEmailSender,
)
from inspection_services.notifier import InspectionNotifier
from inspection_services.pdf_renderer import ReportLabPdfRenderer
from inspection_services.workflow import InspectionWorkflow

logger = get_logger("services.factory")


def build_media_store(settings: MediaSettings) -> MediaStore:
    if settings.backend == "memory":
        return InMemoryMediaStore()
    return S3MediaStore(
        bucket_name=settings.bucket,
        region_name=settings.region,
        aws_access_key_id=settings.access_key_id,
        aws_secret_access_key=settings.secret_access_key,
        endpoint_url=settings.endpoint_url,
        public_base_url=settings.public_base_url,
    )


def build_notifier(
    settings: NotificationSettings, timeout_seconds: float,
) -> InspectionNotifier:
    """A Resend sender without an API key leaves notifications disabled."""
    enabled = settings.enabled
    sender: NotificationSender
    if settings.sender == "recording":
        sender = RecordingNotificationSender(settings.subject_prefix)
    elif settings.api_key:
        sender = ResendEmailSender(
            api_key=settings.api_key,
            from_address=settings.from_address,
            api_url=settings.api_url,
            subject_prefix=settings.subject_prefix,
            timeout=timeout_seconds,
        )
    else:
        logger.warning("notifications_disabled", extra={"reason": "RESEND_API_KEY unset"})
        sender = RecordingNotificationSender(settings.subject_prefix)
        enabled = False
    return InspectionNotifier(
        sender,
        timeout_seconds=timeout_seconds,
        dashboard_url=settings.dashboard_url,
        enabled=enabled,
    )


def build_workflow(
    config: WorkflowConfig,
    session_factory: sessionmaker[Session],
    clock: Clock | None = None,
) -> InspectionWorkflow:
    workflow = InspectionWorkflow(
        session_factory=session_factory,
        media_store=build_media_store(config.media),
        notifier=build_notifier(config.notifications, config.timeouts.notify_seconds),
        pdf_renderer=ReportLabPdfRenderer(),
        config=config,
        clock=clock,
    )
    logger.info(
        "workflow_built",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "media_backend": config.media.backend,
            "notification_sender": config.notifications.sender,
        },
    )
    return workflow
