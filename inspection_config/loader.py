"""
Configuration loader (``inspection_config.loader``).

Responsibility
--------------
Loads the workflow YAML and parses it into the frozen dataclasses of
``inspection_config.schema``.  Runtime code never calls this directly;
it goes through ``inspection_config.get_active_config()``.

Invariants enforced
-------------------
* Photo types and capability operation tags are validated against the
  kernel enumerations; an unknown value is a ``ValueError`` at load time,
  never a silent no-op at request time.
* Secrets come only from the environment.
* ``compute_checksum`` identifies the exact configuration in log traces.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown photo type / operation / vehicle status -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from inspection_config.schema import (
    ApiSettings,
    DatabaseSettings,
    MediaSettings,
    NotificationSettings,
    PdfSettings,
    TimeoutSettings,
    WorkflowConfig,
    WorkflowSettings,
)
from inspection_kernel.domain.authorization import Operation
from inspection_kernel.domain.inspection import PhotoType, VehicleStatus


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_workflow(data: dict[str, Any]) -> WorkflowSettings:
    photo_types = tuple(
        str(p).strip().upper()
        for p in data.get("required_photo_types", [p.value for p in PhotoType])
    )
    known = {p.value for p in PhotoType}
    unknown = sorted(set(photo_types) - known)
    if unknown:
        raise ValueError(f"Unknown required photo types: {unknown}")

    vehicle_status = str(data.get("approved_vehicle_status", "active")).lower()
    if vehicle_status not in {s.value for s in VehicleStatus}:
        raise ValueError(f"Unknown approved_vehicle_status: {vehicle_status!r}")

    return WorkflowSettings(
        required_photo_types=photo_types,
        require_rejection_comment=bool(data.get("require_rejection_comment", True)),
        approved_vehicle_status=vehicle_status,
        require_signature=bool(data.get("require_signature", True)),
    )


def parse_timeouts(data: dict[str, Any]) -> TimeoutSettings:
    values = {}
    for name in ("upload_seconds", "delete_seconds", "notify_seconds", "render_seconds"):
        if name in data:
            value = float(data[name])
            if value <= 0:
                raise ValueError(f"Timeout {name} must be positive, got {value}")
            values[name] = value
    return TimeoutSettings(**values)


def parse_capabilities(data: Mapping[str, Any]) -> dict[str, tuple[str, ...]]:
    """Role -> operation tags.  ``"*"`` stands for every operation."""
    known = {op.value for op in Operation} | {"*"}
    table: dict[str, tuple[str, ...]] = {}
    for role, tags in data.items():
        tags = tuple(str(t) for t in (tags or ()))
        unknown = sorted(set(tags) - known)
        if unknown:
            raise ValueError(f"Unknown operations for role {role}: {unknown}")
        table[str(role).upper()] = tags
    return table


def parse_notifications(data: dict[str, Any], env: Mapping[str, str]) -> NotificationSettings:
    sender = str(data.get("sender", "resend"))
    if sender not in ("resend", "recording"):
        raise ValueError(f"Unknown notification sender: {sender!r}")
    return NotificationSettings(
        enabled=bool(data.get("enabled", True)),
        sender=sender,
        api_url=data.get("api_url", NotificationSettings.api_url),
        api_key=env.get("RESEND_API_KEY"),
        from_address=data.get("from_address", NotificationSettings.from_address),
        subject_prefix=data.get("subject_prefix", NotificationSettings.subject_prefix),
        dashboard_url=data.get("dashboard_url"),
    )


def parse_media(data: dict[str, Any], env: Mapping[str, str]) -> MediaSettings:
    backend = str(data.get("backend", "s3"))
    if backend not in ("s3", "memory"):
        raise ValueError(f"Unknown media backend: {backend!r}")
    return MediaSettings(
        backend=backend,
        bucket=env.get("S3_BUCKET", data.get("bucket", MediaSettings.bucket)),
        region=env.get("AWS_REGION", data.get("region", MediaSettings.region)),
        folder=data.get("folder", MediaSettings.folder),
        endpoint_url=env.get("S3_ENDPOINT_URL", data.get("endpoint_url")),
        public_base_url=data.get("public_base_url"),
        access_key_id=env.get("AWS_ACCESS_KEY_ID"),
        secret_access_key=env.get("AWS_SECRET_ACCESS_KEY"),
    )


def parse_config(
    data: dict[str, Any],
    env: Mapping[str, str] | None = None,
) -> WorkflowConfig:
    """Build a WorkflowConfig from parsed YAML plus environment secrets."""
    env = os.environ if env is None else env
    database = data.get("database", {}) or {}
    api = data.get("api", {}) or {}
    return WorkflowConfig(
        config_id=data.get("config_id", "inspection-workflow"),
        version=int(data.get("version", 1)),
        workflow=parse_workflow(data.get("workflow", {}) or {}),
        timeouts=parse_timeouts(data.get("timeouts", {}) or {}),
        capabilities=parse_capabilities(data.get("capabilities", {}) or {}),
        notifications=parse_notifications(data.get("notifications", {}) or {}, env),
        media=parse_media(data.get("media", {}) or {}, env),
        pdf=PdfSettings(**(data.get("pdf", {}) or {})),
        database=DatabaseSettings(
            url=env.get("DATABASE_URL", database.get("url", DatabaseSettings.url)),
        ),
        api=ApiSettings(
            jwt_algorithm=api.get("jwt_algorithm", "HS256"),
            jwt_secret_key=env.get("JWT_SECRET_KEY"),
        ),
        checksum=compute_checksum(data),
    )
