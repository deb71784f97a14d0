"""
inspection_services.notification_sender -- Outbound inspection e-mail.

Contract:
    ``send(recipients, template, data) -> bool``.  True when the provider
    accepted the message for every recipient.  Senders lay out subject,
    text and HTML from the pure builders in
    ``inspection_kernel.domain.projections``; they query nothing.

Adapters:
    ResendEmailSender            httpx POST to the Resend e-mail API.
    RecordingNotificationSender  keeps sent messages in memory (tests).
"""

from __future__ import annotations

import html
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass

import httpx

from inspection_kernel.domain.projections import (
    NotificationData,
    NotificationTemplate,
    notification_subject,
    notification_text,
    notification_title,
)
from inspection_kernel.exceptions import UpstreamFailureError
from inspection_kernel.logging_config import get_logger

logger = get_logger("services.notification_sender")


class NotificationSender(ABC):
    @abstractmethod
    def send(
        self,
        recipients: Sequence[str],
        template: NotificationTemplate,
        data: NotificationData,
    ) -> bool:
        """Deliver one templated message to ``recipients``."""


def render_html(template: NotificationTemplate, data: NotificationData) -> str:
    title = html.escape(notification_title(template))
    rows = [
        ("Vehicle", data.vehicle_model),
        ("License Plate", data.vehicle_plate),
        ("Mileage", f"{data.mileage:,} km"),
        ("Inspector", data.inspector_name),
        ("Date", f"{data.created_at:%Y-%m-%d %H:%M}"),
        ("Status", data.status_label),
    ]
    parts = [
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"></head>",
        "<body style=\"font-family:Arial,sans-serif;\">",
        f"<h1 style=\"font-size:20px;\">{title}</h1>",
        "<table cellpadding=\"6\" style=\"border:1px solid #e0e0e0;\">",
    ]
    for label, value in rows:
        parts.append(
            f"<tr><td style=\"color:#757575;\">{html.escape(label)}</td>"
            f"<td>{html.escape(str(value))}</td></tr>"
        )
    parts.append("</table>")
    if data.observations:
        parts.append(
            f"<p><strong>Observations:</strong> {html.escape(data.observations)}</p>"
        )
    if data.photos:
        parts.append(f"<p><strong>Inspection Photos ({len(data.photos)})</strong></p><ul>")
        for photo in data.photos:
            url = html.escape(photo.url, quote=True)
            parts.append(f"<li><a href=\"{url}\">{html.escape(photo.label)}</a></li>")
        parts.append("</ul>")
    if data.reviewer_comment:
        parts.append(
            f"<p><strong>Reviewer Comments:</strong> "
            f"{html.escape(data.reviewer_comment)}<br>"
            f"<small>By {html.escape(data.reviewer_name or '')}</small></p>"
        )
    if data.dashboard_url:
        url = html.escape(data.dashboard_url, quote=True)
        parts.append(f"<p><a href=\"{url}\">View Inspections</a></p>")
    parts.append("</body></html>")
    return "".join(parts)


# Resend accepts at most 50 addresses in "to"
RESEND_MAX_RECIPIENTS = 50


class ResendEmailSender(NotificationSender):
    """
    One POST per batch of up to 50 recipients; up to 50 addresses go out
    as a single request.
    """

    def __init__(
        self,
        api_key: str,
        from_address: str,
        api_url: str = "https://api.resend.com/emails",
        subject_prefix: str = "[Inspection]",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        self.api_key = api_key
        self.from_address = from_address
        self.api_url = api_url
        self.subject_prefix = subject_prefix
        self._client = client or httpx.Client(timeout=timeout)

    def send(
        self,
        recipients: Sequence[str],
        template: NotificationTemplate,
        data: NotificationData,
    ) -> bool:
        subject = notification_subject(template, data, self.subject_prefix)
        text = notification_text(template, data)
        body = render_html(template, data)

        delivered = True
        recipients = list(recipients)
        for start in range(0, len(recipients), RESEND_MAX_RECIPIENTS):
            batch = recipients[start:start + RESEND_MAX_RECIPIENTS]
            try:
                response = self._client.post(
                    self.api_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "from": self.from_address,
                        "to": batch,
                        "subject": subject,
                        "html": body,
                        "text": text,
                    },
                )
                response.raise_for_status()
            except httpx.HTTPError as e:
                logger.warning(
                    "email_send_failed",
                    extra={
                        "recipients": batch,
                        "template": template.value,
                        "error": str(e),
                    },
                )
                delivered = False
                continue
            logger.info(
                "email_sent",
                extra={"recipients": batch, "template": template.value},
            )
        return delivered

    def close(self) -> None:
        self._client.close()


@dataclass(frozen=True)
class SentNotification:
    recipients: tuple[str, ...]
    template: NotificationTemplate
    data: NotificationData
    subject: str
    text: str


class RecordingNotificationSender(NotificationSender):
    """
    Keeps every message in ``sent``.

    ``fail`` makes every send raise; ``delay`` makes it sleep first.
    """

    def __init__(self, subject_prefix: str = "[Inspection]"):
        self.subject_prefix = subject_prefix
        self.sent: list[SentNotification] = []
        self.attempts = 0
        self.fail = False
        self.delay = 0.0
        self._lock = threading.Lock()

    def send(
        self,
        recipients: Sequence[str],
        template: NotificationTemplate,
        data: NotificationData,
    ) -> bool:
        with self._lock:
            self.attempts += 1
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise UpstreamFailureError("notify", "injected send failure")
        with self._lock:
            self.sent.append(SentNotification(
                recipients=tuple(recipients),
                template=template,
                data=data,
                subject=notification_subject(template, data, self.subject_prefix),
                text=notification_text(template, data),
            ))
        return True
