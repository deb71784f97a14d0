"""
External collaborators in isolation: bounded calls, notifier, senders,
media stores and the configuration-driven factory.
"""

import json
import threading
import time
from datetime import datetime, timezone
from uuid import uuid4

import httpx
import pytest
from botocore.exceptions import ClientError

from inspection_config.schema import MediaSettings, NotificationSettings
from inspection_kernel.domain.inspection import (
    ApprovalDecision,
    InspectionDetail,
    InspectionStatus,
    UserRef,
    VehicleStatus,
    VehicleSummary,
    normalize_checklist,
)
from inspection_kernel.domain.projections import (
    NotificationTemplate,
    build_notification_data,
)
from inspection_kernel.exceptions import (
    InvalidTransitionError,
    MediaUploadError,
    UpstreamFailureError,
    UpstreamTimeoutError,
)
from inspection_kernel.logging_config import LogContext
from inspection_services.factory import build_media_store, build_notifier
from inspection_services.media_store import InMemoryMediaStore, S3MediaStore
from inspection_services.notification_sender import (
    RESEND_MAX_RECIPIENTS,
    RecordingNotificationSender,
    ResendEmailSender,
    render_html,
)
from inspection_services.notifier import InspectionNotifier
from inspection_services.upstream import bounded_call

CREATED = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


def _detail(observations="Scratch <rear>") -> InspectionDetail:
    return InspectionDetail(
        inspection_id=uuid4(),
        vehicle=VehicleSummary(uuid4(), "Caterpillar 320", "ABC 123", VehicleStatus.INACTIVE),
        author=UserRef(uuid4(), "Ana Inspector", "ana@example.com"),
        status=InspectionStatus.SUBMITTED,
        mileage=12500,
        checklist=normalize_checklist(None),
        observations=observations,
        created_at=CREATED,
        updated_at=CREATED,
    )


# =========================================================================
# bounded_call
# =========================================================================


class TestBoundedCall:
    def test_returns_result(self):
        assert bounded_call(lambda: 42, 1.0, "op") == 42

    def test_wraps_foreign_errors(self):
        def _fail():
            raise KeyError("bucket")

        with pytest.raises(UpstreamFailureError) as exc_info:
            bounded_call(_fail, 1.0, "media_upload", error_cls=MediaUploadError)
        assert isinstance(exc_info.value, MediaUploadError)
        assert exc_info.value.operation == "media_upload"
        assert exc_info.value.reason.startswith("KeyError")

    def test_kernel_errors_pass_through(self):
        def _fail():
            raise InvalidTransitionError("x", "approved", "submitted")

        with pytest.raises(InvalidTransitionError):
            bounded_call(_fail, 1.0, "op")

    def test_timeout_hands_late_result_to_hook(self):
        seen = []
        done = threading.Event()

        def _late(result):
            seen.append(result)
            done.set()

        def _slow():
            time.sleep(0.3)
            return "asset-1"

        with pytest.raises(UpstreamTimeoutError) as exc_info:
            bounded_call(_slow, 0.05, "media_upload", on_late_result=_late)

        assert exc_info.value.timeout_seconds == 0.05
        assert done.wait(3.0)
        assert seen == ["asset-1"]

    def test_log_context_travels_to_worker(self):
        with LogContext.bind(inspection_id="insp-1"):
            fields = bounded_call(LogContext.get_all, 1.0, "op")
        assert fields["inspection_id"] == "insp-1"


# =========================================================================
# Notifier
# =========================================================================


class TestInspectionNotifier:
    def setup_method(self):
        self.sender = RecordingNotificationSender()
        self.notifier = InspectionNotifier(self.sender, timeout_seconds=0.3)
        self.detail = _detail()

    def test_reviewers_exclude_author(self):
        reviewers = [
            self.detail.author,
            UserRef(uuid4(), "Bea", "bea@example.com"),
        ]
        report = self.notifier.notify_reviewers(self.detail, reviewers)
        assert report.recipients == ("bea@example.com",)
        assert report.delivered
        assert self.sender.sent[0].recipients == ("bea@example.com",)

    def test_no_recipients_is_skipped(self):
        report = self.notifier.notify_reviewers(self.detail, [self.detail.author])
        assert not report.attempted
        assert not report.delivered
        assert self.sender.attempts == 0

    def test_author_gets_decision_template(self):
        report = self.notifier.notify_author(self.detail, ApprovalDecision.REJECTED)
        assert report.template is NotificationTemplate.INSPECTION_REJECTED
        assert report.recipients == ("ana@example.com",)

    def test_sender_failure_is_reported_not_raised(self, captured_logs):
        self.sender.fail = True
        report = self.notifier.notify_author(self.detail, ApprovalDecision.APPROVED)

        assert report.attempted
        assert not report.delivered
        assert "injected send failure" in report.error
        failed = [r for r in captured_logs() if r["message"] == "notification_failed"]
        assert failed[0]["error_code"] == "UPSTREAM_FAILURE"

    def test_sender_timeout_is_reported(self):
        self.sender.delay = 0.6
        report = self.notifier.notify_author(self.detail, ApprovalDecision.APPROVED)
        assert not report.delivered
        assert "timed out" in report.error

    def test_disabled(self):
        notifier = InspectionNotifier(self.sender, enabled=False)
        report = notifier.notify_author(self.detail, ApprovalDecision.APPROVED)
        assert not report.attempted
        assert self.sender.attempts == 0


class TestNotificationFailureKeepsTransition:
    def test_decision_survives_failed_notification(
        self, workflow, actors, submitted_inspection, sender,
    ):
        sender.fail = True
        result = workflow.approve(actors["reviewer_b"], submitted_inspection)

        assert result.inspection.status is InspectionStatus.APPROVED
        assert result.notification.delivered is False
        reread = workflow.get_inspection(actors["reviewer_b"], submitted_inspection)
        assert reread.status is InspectionStatus.APPROVED

    @pytest.mark.slow_locks
    def test_submission_survives_notification_timeout(
        self, workflow_factory, fast_config, actors, vehicle_id, photo_set, signature, sender,
    ):
        notifier = InspectionNotifier(sender, timeout_seconds=0.1)
        workflow = workflow_factory(notifier=notifier, config=fast_config)
        sender.delay = 0.5

        result = workflow.create_inspection(
            actors["inspector_a"], vehicle_id, 100, photos=photo_set, signature=signature,
        )

        assert result.inspection.status is InspectionStatus.SUBMITTED
        assert not result.notification.delivered
        listed = workflow.list_inspections(actors["inspector_a"])
        assert [s.inspection_id for s in listed] == [result.inspection.inspection_id]


# =========================================================================
# Senders
# =========================================================================


class TestResendEmailSender:
    def _sender(self, handler):
        client = httpx.Client(transport=httpx.MockTransport(handler))
        return ResendEmailSender(
            api_key="re_test",
            from_address="Inspections <noreply@example.com>",
            client=client,
        )

    def test_posts_one_message_to_all_recipients(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"id": "email-1"})

        sender = self._sender(handler)
        data = build_notification_data(_detail(), "https://app.example.com")
        ok = sender.send(
            ["bea@example.com", "ada@example.com"],
            NotificationTemplate.INSPECTION_SUBMITTED,
            data,
        )

        assert ok
        assert len(requests) == 1
        body = json.loads(requests[0].content)
        assert requests[0].headers["Authorization"] == "Bearer re_test"
        assert body["to"] == ["bea@example.com", "ada@example.com"]
        assert body["subject"] == "[Inspection] New inspection - Caterpillar 320 (ABC 123)"
        assert "Mileage: 12,500 km" in body["text"]
        assert "Scratch &lt;rear&gt;" in body["html"]

    def test_large_recipient_list_is_batched(self):
        batches = []

        def handler(request):
            batches.append(json.loads(request.content)["to"])
            return httpx.Response(200, json={"id": "x"})

        recipients = [f"reviewer{i}@example.com" for i in range(RESEND_MAX_RECIPIENTS + 3)]
        ok = self._sender(handler).send(
            recipients,
            NotificationTemplate.INSPECTION_SUBMITTED,
            build_notification_data(_detail()),
        )

        assert ok
        assert [len(b) for b in batches] == [RESEND_MAX_RECIPIENTS, 3]
        assert [r for b in batches for r in b] == recipients

    def test_rejected_batch_does_not_block_the_next(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(422, json={"message": "invalid"})
            return httpx.Response(200, json={"id": "x"})

        recipients = [f"r{i}@example.com" for i in range(RESEND_MAX_RECIPIENTS + 1)]
        ok = self._sender(handler).send(
            recipients,
            NotificationTemplate.INSPECTION_APPROVED,
            build_notification_data(_detail()),
        )

        assert ok is False
        assert len(calls) == 2


def test_render_html_escapes_observations():
    html = render_html(
        NotificationTemplate.INSPECTION_SUBMITTED,
        build_notification_data(_detail("<script>x</script>")),
    )
    assert "<script>" not in html
    assert "&lt;script&gt;" in html


# =========================================================================
# Media stores
# =========================================================================


class StubS3Client:
    def __init__(self, fail_put=False, fail_delete=False):
        self.objects = {}
        self.fail_put = fail_put
        self.fail_delete = fail_delete

    def _error(self, op):
        return ClientError({"Error": {"Code": "500", "Message": "boom"}}, op)

    def put_object(self, Bucket, Key, Body, ContentType):
        if self.fail_put:
            raise self._error("PutObject")
        self.objects[(Bucket, Key)] = (Body, ContentType)

    def delete_object(self, Bucket, Key):
        if self.fail_delete:
            raise self._error("DeleteObject")
        self.objects.pop((Bucket, Key), None)


class TestS3MediaStore:
    def test_upload_and_delete(self):
        client = StubS3Client()
        store = S3MediaStore("photos", "eu-west-1", client=client)

        asset = store.upload(b"jpeg", "image/jpeg", "inspections")

        assert asset.remote_id.startswith("inspections/")
        assert asset.url == f"https://photos.s3.eu-west-1.amazonaws.com/{asset.remote_id}"
        assert asset.size == 4
        assert ("photos", asset.remote_id) in client.objects
        assert store.delete(asset.remote_id) is True
        assert client.objects == {}

    def test_public_base_url(self):
        store = S3MediaStore(
            "photos", "eu-west-1", public_base_url="https://cdn.example.com/",
            client=StubS3Client(),
        )
        asset = store.upload(b"x", None, "")
        assert asset.url == f"https://cdn.example.com/{asset.remote_id}"

    def test_upload_error_raises(self):
        store = S3MediaStore("photos", "eu-west-1", client=StubS3Client(fail_put=True))
        with pytest.raises(MediaUploadError):
            store.upload(b"x", "image/png", "inspections")

    def test_delete_error_returns_false(self):
        store = S3MediaStore("photos", "eu-west-1", client=StubS3Client(fail_delete=True))
        assert store.delete("inspections/a.jpg") is False


class TestInMemoryMediaStore:
    def test_failing_delete_keeps_asset(self):
        store = InMemoryMediaStore(id_factory=lambda: "abc123")
        store.upload(b"x", "image/jpeg", "inspections")
        store.failing_deletes = {"abc123"}
        assert store.delete("abc123") is False
        assert "abc123" in store.assets
        assert store.delete_calls == ["abc123"]


# =========================================================================
# Factory
# =========================================================================


class TestFactory:
    def test_memory_media_backend(self):
        assert isinstance(build_media_store(MediaSettings(backend="memory")), InMemoryMediaStore)

    def test_resend_without_key_disables_notifications(self):
        notifier = build_notifier(NotificationSettings(sender="resend", api_key=None), 2.0)
        assert notifier.enabled is False

    def test_resend_with_key(self):
        notifier = build_notifier(NotificationSettings(sender="resend", api_key="re_x"), 2.0)
        assert notifier.enabled is True
        assert isinstance(notifier.sender, ResendEmailSender)

    def test_recording_sender(self):
        notifier = build_notifier(
            NotificationSettings(sender="recording", dashboard_url="https://d"), 2.0,
        )
        assert isinstance(notifier.sender, RecordingNotificationSender)
        assert notifier.dashboard_url == "https://d"
