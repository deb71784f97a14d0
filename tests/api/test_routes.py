"""
HTTP surface: authentication, status mapping and the multipart create.

The app is built around the same workflow fixture the service tests use,
so every request hits a real database.
"""

import json
from dataclasses import replace
from urllib.parse import quote
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from inspection_api import create_app
from inspection_api.app import status_for
from inspection_config.schema import ApiSettings
from inspection_kernel.db.engine import session_scope
from inspection_kernel.domain.inspection import PhotoType
from inspection_kernel.exceptions import (
    ImmutabilityViolationError,
    InspectionKernelError,
    PdfRenderError,
    SelfApprovalError,
    UpstreamTimeoutError,
)
from inspection_kernel.models.vehicle import VehicleModel

SECRET = "test-secret"
PHOTO_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 64
SIGNATURE_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture
def client(base_config, workflow):
    config = replace(base_config, api=ApiSettings(jwt_secret_key=SECRET))
    with TestClient(create_app(config=config, workflow=workflow)) as c:
        yield c


@pytest.fixture
def auth(users, actors):
    """``auth("reviewer_b")`` -> Authorization header for that seeded user."""

    def _headers(handle: str) -> dict[str, str]:
        token = jwt.encode(
            {"sub": str(users[handle].user_id), "roles": sorted(actors[handle].roles)},
            SECRET,
            algorithm="HS256",
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


def _photo_files(types=tuple(PhotoType), signed=True):
    files = [(t.value, (f"{t.value.lower()}.jpg", PHOTO_BYTES, "image/jpeg")) for t in types]
    if signed:
        files.append(("signature", ("signature.png", SIGNATURE_BYTES, "image/png")))
    return files


class TestAuthentication:
    def test_health_is_open(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_missing_token(self, client):
        assert client.get("/api/inspections").status_code == 401

    def test_bad_signature(self, client, users):
        token = jwt.encode({"sub": str(users["admin"].user_id)}, "other", algorithm="HS256")
        response = client.get(
            "/api/inspections", headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401

    def test_subject_must_be_uuid(self, client):
        token = jwt.encode({"sub": "admin", "roles": ["ADMIN"]}, SECRET, algorithm="HS256")
        response = client.get(
            "/api/inspections", headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"

    def test_app_requires_secret(self, base_config, workflow):
        with pytest.raises(RuntimeError):
            create_app(
                config=replace(base_config, api=ApiSettings(jwt_secret_key=None)),
                workflow=workflow,
            )


class TestCreate:
    def test_multipart_create(self, client, auth, vehicle_id, users):
        response = client.post(
            "/api/inspections",
            headers=auth("inspector_a"),
            data={"payload": json.dumps({
                "vehicle_id": str(vehicle_id),
                "mileage": 12500,
                "checklist": {"oil_level": True},
                "observations": "Fine",
            })},
            files=_photo_files(),
        )

        assert response.status_code == 201, response.text
        body = response.json()
        assert body["inspection"]["status"] == "submitted"
        assert len(body["inspection"]["photos"]) == 6
        assert body["inspection"]["signature"]["url"].startswith("https://media.local/")
        assert body["inspection"]["checklist"]["oil_level"] is True
        assert set(body["notification"]["recipients"]) == {
            users["reviewer_b"].email, users["admin"].email,
        }

    def test_missing_photos(self, client, auth, vehicle_id):
        response = client.post(
            "/api/inspections",
            headers=auth("inspector_a"),
            data={"payload": json.dumps({"vehicle_id": str(vehicle_id), "mileage": 1})},
            files=_photo_files([PhotoType.FRONT]),
        )
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "MISSING_PHOTOS"
        assert "REAR" in error["details"]["missing"]

    def test_missing_signature(self, client, auth, vehicle_id, media_store):
        response = client.post(
            "/api/inspections",
            headers=auth("inspector_a"),
            data={"payload": json.dumps({"vehicle_id": str(vehicle_id), "mileage": 1})},
            files=_photo_files(signed=False),
        )
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "MISSING_SIGNATURE"
        assert error["details"] == {"field": "signature"}
        assert media_store.uploaded == []

    def test_missing_payload(self, client, auth):
        response = client.post(
            "/api/inspections", headers=auth("inspector_a"), files=_photo_files(),
        )
        assert response.status_code == 422

    def test_malformed_payload(self, client, auth):
        response = client.post(
            "/api/inspections",
            headers=auth("inspector_a"),
            data={"payload": "{not json"},
            files=_photo_files(),
        )
        assert response.status_code == 422

    def test_reviewer_cannot_create(self, client, auth, vehicle_id):
        response = client.post(
            "/api/inspections",
            headers=auth("reviewer_b"),
            data={"payload": json.dumps({"vehicle_id": str(vehicle_id), "mileage": 1})},
            files=_photo_files(),
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    def test_unknown_vehicle(self, client, auth):
        response = client.post(
            "/api/inspections",
            headers=auth("inspector_a"),
            data={"payload": json.dumps({"vehicle_id": str(uuid4()), "mileage": 1})},
            files=_photo_files(),
        )
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "VEHICLE_NOT_FOUND"


class TestReadAndEdit:
    def test_list_and_filter(self, client, auth, submitted_inspection, draft_inspection):
        everything = client.get("/api/inspections", headers=auth("inspector_a")).json()
        assert {i["inspection_id"] for i in everything} == {
            str(submitted_inspection), str(draft_inspection),
        }

        drafts = client.get(
            "/api/inspections", params={"status": "draft"}, headers=auth("reviewer_b"),
        ).json()
        assert [i["inspection_id"] for i in drafts] == [str(draft_inspection)]

    def test_get(self, client, auth, submitted_inspection):
        response = client.get(
            f"/api/inspections/{submitted_inspection}", headers=auth("reviewer_b"),
        )
        assert response.status_code == 200
        assert response.json()["vehicle"]["plate"] == "ABC 123"

    def test_get_forbidden(self, client, auth, submitted_inspection):
        response = client.get(
            f"/api/inspections/{submitted_inspection}", headers=auth("inspector_c"),
        )
        assert response.status_code == 403

    def test_get_missing(self, client, auth):
        response = client.get(f"/api/inspections/{uuid4()}", headers=auth("admin"))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "INSPECTION_NOT_FOUND"

    def test_put_partial(self, client, auth, submitted_inspection):
        response = client.put(
            f"/api/inspections/{submitted_inspection}",
            headers=auth("inspector_a"),
            json={"mileage": 13000},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["mileage"] == 13000
        assert body["observations"] == "Minor scratch on rear bumper"

    def test_put_clears_observations(self, client, auth, submitted_inspection):
        response = client.put(
            f"/api/inspections/{submitted_inspection}",
            headers=auth("inspector_a"),
            json={"observations": None},
        )
        assert response.json()["observations"] is None


class TestDecisions:
    def test_approve(self, client, auth, submitted_inspection):
        response = client.post(
            f"/api/inspections/{submitted_inspection}/approve",
            headers=auth("reviewer_b"),
            json={"approved": True},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["inspection"]["status"] == "approved"
        assert body["inspection"]["vehicle"]["status"] == "active"
        assert body["notification"]["template"] == "inspection_approved"

    def test_self_approval_forbidden(self, client, auth, submitted_inspection):
        response = client.post(
            f"/api/inspections/{submitted_inspection}/approve",
            headers=auth("inspector_a"),
            json={"approved": True},
        )
        assert response.status_code == 403

    def test_second_decision_conflicts(self, client, auth, approved_inspection):
        response = client.post(
            f"/api/inspections/{approved_inspection}/approve",
            headers=auth("admin"),
            json={"approved": False, "comments": "late"},
        )
        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "INVALID_TRANSITION"
        assert error["details"]["current_status"] == "approved"

    def test_reject_needs_comments(self, client, auth, submitted_inspection):
        response = client.post(
            f"/api/inspections/{submitted_inspection}/approve",
            headers=auth("reviewer_b"),
            json={"approved": False, "comments": "  "},
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "REJECTION_REASON_REQUIRED"

    def test_reject_then_resubmit(self, client, auth, submitted_inspection):
        client.post(
            f"/api/inspections/{submitted_inspection}/approve",
            headers=auth("reviewer_b"),
            json={"approved": False, "comments": "Blurry"},
        )
        response = client.post(
            f"/api/inspections/{submitted_inspection}/resubmit",
            headers=auth("inspector_a"),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["inspection"]["status"] == "submitted"
        assert body["inspection"]["approval"] is None
        assert body["inspection"]["approval_history"][0]["is_current"] is False

    def test_submit_draft_without_photos(self, client, auth, draft_inspection):
        response = client.post(
            f"/api/inspections/{draft_inspection}/submit", headers=auth("inspector_a"),
        )
        assert response.status_code == 422


class TestPhotosAndDeletion:
    def test_add_photo(self, client, auth, draft_inspection):
        response = client.post(
            f"/api/inspections/{draft_inspection}/photos",
            headers=auth("inspector_a"),
            data={"photo_type": "FRONT"},
            files={"file": ("front.jpg", PHOTO_BYTES, "image/jpeg")},
        )
        assert response.status_code == 201
        assert response.json()["photo_type"] == "FRONT"

    def test_upload_failure_is_bad_gateway(self, client, auth, draft_inspection, media_store):
        media_store.fail_uploads = True
        response = client.post(
            f"/api/inspections/{draft_inspection}/photos",
            headers=auth("inspector_a"),
            data={"photo_type": "FRONT"},
            files={"file": ("front.jpg", PHOTO_BYTES, "image/jpeg")},
        )
        assert response.status_code == 502
        assert response.json()["error"]["code"] == "MEDIA_UPLOAD_FAILED"

    def test_delete_photo(self, client, auth, rejected_inspection, workflow, actors):
        photo = workflow.get_inspection(actors["inspector_a"], rejected_inspection).photos[0]
        response = client.delete(
            f"/api/inspections/{rejected_inspection}/photos/{photo.photo_id}",
            headers=auth("inspector_a"),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

    def test_required_photo_of_submitted_stays(
        self, client, auth, submitted_inspection, workflow, actors,
    ):
        photo = workflow.get_inspection(actors["inspector_a"], submitted_inspection).photos[0]
        response = client.delete(
            f"/api/inspections/{submitted_inspection}/photos/{photo.photo_id}",
            headers=auth("inspector_a"),
        )
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "MISSING_PHOTOS"
        assert error["details"]["missing"] == [photo.photo_type.value]

    def test_replace_signature(self, client, auth, submitted_inspection, media_store):
        previous = media_store.uploaded[-1]
        response = client.put(
            f"/api/inspections/{submitted_inspection}/signature",
            headers=auth("inspector_a"),
            files={"file": ("signature.png", SIGNATURE_BYTES, "image/png")},
        )
        assert response.status_code == 200, response.text
        signature = response.json()["signature"]
        assert signature["remote_id"] == media_store.uploaded[-1]
        assert signature["remote_id"] != previous
        assert media_store.delete_calls == [previous]

    def test_signature_closed_once_approved(self, client, auth, approved_inspection):
        response = client.put(
            f"/api/inspections/{approved_inspection}/signature",
            headers=auth("inspector_a"),
            files={"file": ("signature.png", SIGNATURE_BYTES, "image/png")},
        )
        assert response.status_code == 409

    def test_delete_inspection(self, client, auth, submitted_inspection):
        response = client.delete(
            f"/api/inspections/{submitted_inspection}", headers=auth("inspector_a"),
        )
        assert response.status_code == 200
        assert len(response.json()["deleted_remote_ids"]) == 7
        follow_up = client.get(
            f"/api/inspections/{submitted_inspection}", headers=auth("admin"),
        )
        assert follow_up.status_code == 404

    def test_partial_deletion_is_multi_status(
        self, client, auth, submitted_inspection, media_store,
    ):
        media_store.failing_deletes = {media_store.uploaded[0]}
        response = client.delete(
            f"/api/inspections/{submitted_inspection}", headers=auth("inspector_a"),
        )
        assert response.status_code == 207
        body = response.json()
        assert body["status"] == "partial_failure"
        assert body["orphaned_remote_ids"] == [media_store.uploaded[0]]


class TestPdf:
    def test_download(self, client, auth, submitted_inspection):
        response = client.get(
            f"/api/inspections/{submitted_inspection}/pdf", headers=auth("reviewer_b"),
        )
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert (
            'filename="inspection_ABC_123_20250301.pdf"'
            in response.headers["content-disposition"]
        )
        assert response.content.startswith(b"%PDF")

    @pytest.mark.parametrize("plate, fallback", [
        ("АВ 777", "inspection__777_20250301.pdf"),
        ('AB "7" 1', "inspection_AB__7__1_20250301.pdf"),
    ])
    def test_download_with_unsafe_plate(
        self, client, auth, submitted_inspection, session_factory, vehicle_id,
        plate, fallback,
    ):
        with session_scope(session_factory) as s:
            s.get(VehicleModel, vehicle_id).plate = plate

        response = client.get(
            f"/api/inspections/{submitted_inspection}/pdf", headers=auth("reviewer_b"),
        )

        assert response.status_code == 200
        disposition = response.headers["content-disposition"]
        assert f'filename="{fallback}"' in disposition
        slug = "_".join(plate.split())
        encoded = quote(f"inspection_{slug}_20250301.pdf", safe="")
        assert f"filename*=UTF-8''{encoded}" in disposition
        assert response.content.startswith(b"%PDF")

    def test_dealer_forbidden(self, client, auth, submitted_inspection):
        response = client.get(
            f"/api/inspections/{submitted_inspection}/pdf", headers=auth("dealer"),
        )
        assert response.status_code == 403


@pytest.mark.parametrize("error, expected", [
    (SelfApprovalError("a", "inspection.approve", "i"), 403),
    (ImmutabilityViolationError("InspectionApproval", "x", "nope"), 409),
    (UpstreamTimeoutError("notify", 1.0), 502),
    (PdfRenderError("pdf_render", "boom"), 502),
    (InspectionKernelError("unmapped"), 500),
])
def test_status_mapping(error, expected):
    assert status_for(error) == expected
