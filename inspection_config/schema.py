"""
Workflow configuration schema.

Frozen dataclasses the loader builds from YAML.  Secrets (database URL,
JWT key, S3 credentials, Resend key) are never stored in YAML; the
loader reads them from the environment into the same objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class WorkflowSettings:
    required_photo_types: tuple[str, ...]
    require_rejection_comment: bool = True
    approved_vehicle_status: str = "active"
    require_signature: bool = True


@dataclass(frozen=True)
class TimeoutSettings:
    """Per-collaborator call bounds, in seconds."""

    upload_seconds: float = 30.0
    delete_seconds: float = 15.0
    notify_seconds: float = 10.0
    render_seconds: float = 60.0


@dataclass(frozen=True)
class NotificationSettings:
    enabled: bool = True
    sender: str = "resend"  # resend | recording
    api_url: str = "https://api.resend.com/emails"
    api_key: str | None = None
    from_address: str = "Inspections <onboarding@resend.dev>"
    subject_prefix: str = "[Inspection]"
    dashboard_url: str | None = None


@dataclass(frozen=True)
class MediaSettings:
    backend: str = "s3"  # s3 | memory
    bucket: str = "inspection-photos"
    region: str = "us-east-1"
    folder: str = "inspections"
    endpoint_url: str | None = None
    public_base_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None


@dataclass(frozen=True)
class PdfSettings:
    title: str = "Vehicle Inspection Report"


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///./inspections.db"


@dataclass(frozen=True)
class ApiSettings:
    jwt_algorithm: str = "HS256"
    jwt_secret_key: str | None = None


@dataclass(frozen=True)
class WorkflowConfig:
    """The single runtime configuration artifact."""

    config_id: str
    version: int
    workflow: WorkflowSettings
    timeouts: TimeoutSettings
    capabilities: dict[str, tuple[str, ...]]
    notifications: NotificationSettings
    media: MediaSettings
    pdf: PdfSettings
    database: DatabaseSettings
    api: ApiSettings
    checksum: str = field(default="", compare=False)
