"""Image host adapter: item photos stored in S3."""
import logging
import uuid
from typing import Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from expiry_tracker.core.config import settings
from expiry_tracker.core.exceptions import ImageHostError

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/heic": ".heic",
}
ALLOWED_CONTENT_TYPES = tuple(_EXTENSIONS)


def _get_s3_client():
    client_kwargs = {}
    if settings.AWS_REGION:
        client_kwargs["region_name"] = settings.AWS_REGION
    if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
        client_kwargs["aws_access_key_id"] = settings.AWS_ACCESS_KEY_ID
        client_kwargs["aws_secret_access_key"] = settings.AWS_SECRET_ACCESS_KEY
    return boto3.client("s3", **client_kwargs)


class S3ImageHost:
    def __init__(self, bucket: Optional[str] = None, client=None):
        self.bucket = bucket if bucket is not None else settings.AWS_S3_BUCKET
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = _get_s3_client()
        return self._client

    def public_url(self, key: str) -> str:
        if settings.AWS_S3_PUBLIC_BASE_URL:
            return f"{settings.AWS_S3_PUBLIC_BASE_URL.rstrip('/')}/{key}"
        region = settings.AWS_REGION or "us-east-1"
        return f"https://{self.bucket}.s3.{region}.amazonaws.com/{key}"

    def upload(self, data: bytes, folder: str, content_type: Optional[str] = None) -> Dict[str, str]:
        """Store the bytes under ``{prefix}/{folder}/`` and return ``{url, public_id}``."""
        if not self.bucket or not self.bucket.strip():
            raise ImageHostError("image host is not configured (AWS_S3_BUCKET is empty)")
        ext = _EXTENSIONS.get(content_type or "", "")
        key = f"{settings.UPLOADS_S3_PREFIX}/{folder}/{uuid.uuid4().hex}{ext}"
        extra_args = {"ContentType": content_type} if content_type else {}
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data, **extra_args)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"[S3] Upload failed for s3://{self.bucket}/{key}: {e}")
            raise ImageHostError(f"failed to upload image: {e}") from e
        logger.info(f"[S3] Uploaded s3://{self.bucket}/{key} ({len(data)} bytes)")
        return {"url": self.public_url(key), "public_id": key}

    def delete(self, public_id: str) -> None:
        if not public_id:
            return
        try:
            self.client.delete_object(Bucket=self.bucket, Key=public_id)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"[S3] Delete failed for s3://{self.bucket}/{public_id}: {e}")
            raise ImageHostError(f"failed to delete image: {e}") from e


_image_host: Optional[S3ImageHost] = None


def get_image_host() -> S3ImageHost:
    global _image_host
    if _image_host is None:
        _image_host = S3ImageHost()
    return _image_host
