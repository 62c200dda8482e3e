"""Organization document validation and S3 blob storage."""
import io
import logging
import os
import secrets
import time
from typing import Optional

import boto3
from botocore.client import Config
from botocore.exceptions import ClientError

from juno.config import settings
from juno.errors import DocumentRejectedError

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {
    "application/pdf": "pdf",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
}


def validate_upload(file_name: str, mime_type: Optional[str], size: int) -> None:
    """Reject an upload before anything is stored. Raises DocumentRejectedError."""
    if not file_name:
        raise DocumentRejectedError("No file provided")
    if mime_type not in ALLOWED_MIME_TYPES:
        raise DocumentRejectedError("Invalid file type. Only PDF, JPEG, JPG, and PNG files are allowed.")
    if size <= 0:
        raise DocumentRejectedError("File is empty")
    if size > settings.document_max_bytes:
        limit_mb = settings.document_max_bytes // (1024 * 1024)
        raise DocumentRejectedError(f"File size too large. Maximum size is {limit_mb}MB.")


def build_object_key(tenant_id: int, file_name: str, mime_type: str) -> str:
    """organizations/<tenant>/documents/<timestamp>-<random>.<ext>"""
    ext = os.path.splitext(file_name)[1].lstrip(".").lower() or ALLOWED_MIME_TYPES[mime_type]
    unique = f"{int(time.time() * 1000)}-{secrets.token_hex(6)}"
    return f"organizations/{tenant_id}/documents/{unique}.{ext}"


class DocumentStore:
    """S3 (or S3-compatible) bucket holding organization documents."""

    def __init__(self, bucket_name: Optional[str] = None):
        self.bucket_name = bucket_name or settings.s3_bucket_name
        self._client = boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url or None,
            aws_access_key_id=settings.s3_access_key_id,
            aws_secret_access_key=settings.s3_secret_access_key,
            region_name=settings.s3_region,
            config=Config(signature_version="s3v4"),
        )

    def upload(self, key: str, content: bytes, content_type: str) -> str:
        self._client.upload_fileobj(
            io.BytesIO(content), self.bucket_name, key, ExtraArgs={"ContentType": content_type}
        )
        logger.info("Stored document %s (%d bytes)", key, len(content))
        return key

    def delete(self, key: str) -> None:
        self._client.delete_object(Bucket=self.bucket_name, Key=key)

    def presigned_url(self, key: str, expiration: Optional[int] = None) -> str:
        return self._client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket_name, "Key": key},
            ExpiresIn=expiration or settings.document_url_ttl_seconds,
        )


def remove_quietly(store: DocumentStore, key: str) -> None:
    """Best-effort cleanup of an orphaned blob."""
    try:
        store.delete(key)
    except ClientError as e:
        logger.error("Failed to remove orphaned document %s: %s", key, e)
