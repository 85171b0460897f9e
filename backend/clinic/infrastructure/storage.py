from __future__ import annotations

import re
import uuid
from functools import lru_cache
from typing import Protocol

from botocore.exceptions import BotoCoreError, ClientError

from ..errors import UpstreamError
from ..observability.logging import get_logger
from ..settings import settings
from .aws_clients import aws_client


class StorageCollaborator(Protocol):
    def upload_file(
        self,
        data: bytes,
        folder: str,
        *,
        file_name: str = "",
        content_type: str | None = None,
    ) -> dict[str, str]:
        """Store media and return `{url, publicId}`."""
        ...

    def delete_file(self, public_id: str) -> None:
        ...


def _safe_folder(folder: str) -> str:
    safe = re.sub(r"[^a-zA-Z0-9/_-]", "_", (folder or "uploads").strip("/"))[:80]
    return safe or "uploads"


def make_key(*, folder: str, file_name: str = "") -> str:
    ext = ""
    m = re.search(r"\.([a-zA-Z0-9]{1,10})$", (file_name or "").strip())
    if m:
        ext = f".{m.group(1).lower()}"
    return f"{_safe_folder(folder)}/{uuid.uuid4()}{ext}"


class S3MediaStorage:
    """Media storage on the assets bucket; `publicId` is the object key."""

    def __init__(self, *, bucket: str | None = None, public_base_url: str | None = None):
        self._bucket = bucket
        self._public_base_url = public_base_url
        self._log = get_logger("s3_media")

    @property
    def bucket(self) -> str:
        name = (self._bucket or settings.assets_bucket_name or "").strip()
        if not name:
            raise UpstreamError(message="ASSETS_BUCKET_NAME is not set", status_code=500, service="s3")
        return name

    def public_url(self, key: str) -> str:
        base = (self._public_base_url or settings.assets_public_base_url or "").strip().rstrip("/")
        if base:
            return f"{base}/{key}"
        return f"https://{self.bucket}.s3.{settings.aws_region}.amazonaws.com/{key}"

    def upload_file(
        self,
        data: bytes,
        folder: str,
        *,
        file_name: str = "",
        content_type: str | None = None,
    ) -> dict[str, str]:
        key = make_key(folder=folder, file_name=file_name)
        params = {"Bucket": self.bucket, "Key": key, "Body": data}
        if content_type:
            params["ContentType"] = str(content_type)
        try:
            aws_client("s3").put_object(**params)
        except (BotoCoreError, ClientError) as e:
            self._log.error("s3_upload_failed", key=key, error=str(e))
            raise UpstreamError(message="Media upload failed", service="s3", cause=e)
        return {"url": self.public_url(key), "publicId": key}

    def delete_file(self, public_id: str) -> None:
        key = str(public_id or "").strip()
        if not key:
            return
        try:
            aws_client("s3").delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            self._log.error("s3_delete_failed", key=key, error=str(e))
            raise UpstreamError(message="Media delete failed", service="s3", cause=e)


@lru_cache(maxsize=1)
def get_storage() -> StorageCollaborator:
    return S3MediaStorage()
