"""
inspection_services.media_store -- Remote photo storage.

Contract:
    ``upload(content, content_type, folder) -> StoredAsset`` and
    ``delete(remote_id) -> bool``.  ``remote_id`` is the only handle the
    inspection keeps; ``delete`` returns False (never raises) when the
    store reports the asset could not be removed.

Adapters:
    S3MediaStore        boto3 client with connect/read timeouts.
    InMemoryMediaStore  local runs and tests; supports failure injection.
"""

from __future__ import annotations

import mimetypes
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from uuid import uuid4

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from inspection_kernel.exceptions import MediaUploadError
from inspection_kernel.logging_config import get_logger

logger = get_logger("services.media_store")


@dataclass(frozen=True)
class StoredAsset:
    remote_id: str
    url: str
    content_type: str | None = None
    size: int | None = None


class MediaStore(ABC):
    """Remote binary storage for inspection photos."""

    @abstractmethod
    def upload(
        self, content: bytes, content_type: str | None, folder: str,
    ) -> StoredAsset:
        """Store ``content``; raise on failure."""

    @abstractmethod
    def delete(self, remote_id: str) -> bool:
        """Remove an asset. True if it is gone afterwards."""


def _object_key(folder: str, content_type: str | None) -> str:
    extension = mimetypes.guess_extension(content_type or "") or ""
    folder = folder.strip("/")
    name = f"{uuid4().hex}{extension}"
    return f"{folder}/{name}" if folder else name


class S3MediaStore(MediaStore):
    def __init__(
        self,
        bucket_name: str,
        region_name: str,
        aws_access_key_id: str | None = None,
        aws_secret_access_key: str | None = None,
        endpoint_url: str | None = None,
        public_base_url: str | None = None,
        connect_timeout: float = 5.0,
        read_timeout: float = 30.0,
        client=None,
    ):
        """
        Args:
            bucket_name: S3 bucket holding inspection photos.
            region_name: AWS region of the bucket.
            endpoint_url: Override for S3-compatible stores.
            public_base_url: Base of the public URL returned for each
                asset; defaults to the virtual-hosted bucket URL.
            client: Pre-built boto3 S3 client (tests).
        """
        self.bucket_name = bucket_name
        self.region_name = region_name
        self.public_base_url = (
            public_base_url or f"https://{bucket_name}.s3.{region_name}.amazonaws.com"
        ).rstrip("/")
        self.s3_client = client or boto3.client(
            "s3",
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
            region_name=region_name,
            endpoint_url=endpoint_url,
            config=BotoConfig(
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
                retries={"max_attempts": 1},
            ),
        )

    def upload(
        self, content: bytes, content_type: str | None, folder: str,
    ) -> StoredAsset:
        key = _object_key(folder, content_type)
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=content,
                ContentType=content_type or "application/octet-stream",
            )
        except (BotoCoreError, ClientError) as e:
            raise MediaUploadError("media_upload", f"S3 put_object {key}: {e}") from e

        logger.info("media_uploaded", extra={"remote_id": key, "size": len(content)})
        return StoredAsset(
            remote_id=key,
            url=f"{self.public_base_url}/{key}",
            content_type=content_type,
            size=len(content),
        )

    def delete(self, remote_id: str) -> bool:
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=remote_id)
        except (BotoCoreError, ClientError) as e:
            logger.warning(
                "media_delete_failed",
                extra={"remote_id": remote_id, "error": str(e)},
            )
            return False
        logger.info("media_deleted", extra={"remote_id": remote_id})
        return True


class InMemoryMediaStore(MediaStore):
    """
    Dict-backed store.

    Failure injection:
        fail_uploads      every upload raises MediaUploadError
        failing_deletes   remote ids whose delete returns False
        upload_delay      seconds each upload sleeps before storing
        id_factory        produces remote ids (default: uuid hex)
    """

    def __init__(
        self,
        base_url: str = "https://media.local",
        id_factory: Callable[[], str] | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.assets: dict[str, bytes] = {}
        self.uploaded: list[str] = []
        self.delete_calls: list[str] = []
        self.fail_uploads = False
        self.failing_deletes: set[str] = set()
        self.upload_delay = 0.0
        self._id_factory = id_factory or (lambda: uuid4().hex)
        self._lock = threading.Lock()

    def upload(
        self, content: bytes, content_type: str | None, folder: str,
    ) -> StoredAsset:
        if self.upload_delay:
            time.sleep(self.upload_delay)
        if self.fail_uploads:
            raise MediaUploadError("media_upload", "injected upload failure")
        remote_id = self._id_factory()
        with self._lock:
            self.assets[remote_id] = content
            self.uploaded.append(remote_id)
        return StoredAsset(
            remote_id=remote_id,
            url=f"{self.base_url}/{folder.strip('/')}/{remote_id}",
            content_type=content_type,
            size=len(content),
        )

    def delete(self, remote_id: str) -> bool:
        with self._lock:
            self.delete_calls.append(remote_id)
            if remote_id in self.failing_deletes:
                return False
            self.assets.pop(remote_id, None)
        return True
