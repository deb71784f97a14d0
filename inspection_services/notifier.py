"""
inspection_services.notifier -- Best-effort workflow notifications.

Responsibility:
    Tell reviewers about a submission and tell the author about a
    decision.  Delivery is best-effort: it runs after the state change has
    committed, and a failed or timed-out send is logged and reported,
    never raised.

Invariants enforced:
    - A notification failure never rolls back or fails the transition.
    - Every attempt yields a NotificationReport the caller can inspect.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from inspection_kernel.domain.inspection import (
    ApprovalDecision,
    InspectionDetail,
    UserRef,
)
from inspection_kernel.domain.projections import (
    NotificationTemplate,
    build_notification_data,
)
from inspection_kernel.exceptions import UpstreamFailureError
from inspection_kernel.logging_config import get_logger
from inspection_services.notification_sender import NotificationSender
from inspection_services.upstream import bounded_call

logger = get_logger("services.notifier")


@dataclass(frozen=True)
class NotificationReport:
    template: NotificationTemplate
    recipients: tuple[str, ...]
    delivered: bool
    error: str | None = None

    @property
    def attempted(self) -> bool:
        return bool(self.recipients)


class InspectionNotifier:
    def __init__(
        self,
        sender: NotificationSender,
        timeout_seconds: float = 10.0,
        dashboard_url: str | None = None,
        enabled: bool = True,
    ):
        self.sender = sender
        self.timeout_seconds = timeout_seconds
        self.dashboard_url = dashboard_url
        self.enabled = enabled

    def notify_reviewers(
        self,
        detail: InspectionDetail,
        reviewers: Sequence[UserRef],
        template: NotificationTemplate = NotificationTemplate.INSPECTION_SUBMITTED,
    ) -> NotificationReport:
        """Reviewers never include the author."""
        recipients = tuple(
            r.email for r in reviewers if r.user_id != detail.author.user_id
        )
        return self._deliver(detail, recipients, template)

    def notify_author(
        self, detail: InspectionDetail, decision: ApprovalDecision,
    ) -> NotificationReport:
        return self._deliver(
            detail,
            (detail.author.email,),
            NotificationTemplate.for_decision(decision),
        )

    def _deliver(
        self,
        detail: InspectionDetail,
        recipients: tuple[str, ...],
        template: NotificationTemplate,
    ) -> NotificationReport:
        if not self.enabled or not recipients:
            logger.info(
                "notification_skipped",
                extra={
                    "template": template.value,
                    "reason": "disabled" if not self.enabled else "no_recipients",
                },
            )
            return NotificationReport(template, (), delivered=False)

        data = build_notification_data(detail, self.dashboard_url)
        try:
            delivered = bounded_call(
                lambda: self.sender.send(recipients, template, data),
                self.timeout_seconds,
                "notify",
            )
        except UpstreamFailureError as exc:
            logger.warning(
                "notification_failed",
                extra={
                    "template": template.value,
                    "recipient_count": len(recipients),
                    "error_code": exc.code,
                    "error": str(exc),
                },
            )
            return NotificationReport(template, recipients, False, str(exc))

        log = logger.info if delivered else logger.warning
        log(
            "notification_sent" if delivered else "notification_not_delivered",
            extra={"template": template.value, "recipient_count": len(recipients)},
        )
        return NotificationReport(
            template,
            recipients,
            bool(delivered),
            None if delivered else "sender reported failure",
        )
