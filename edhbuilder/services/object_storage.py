"""
S3-compatible object storage for card images (Cloudflare R2).

boto3 is synchronous; every network call runs in a worker thread so the
event loop is never blocked. An unconfigured storage is a valid deployment
mode: uploads return None and callers serve upstream URLs instead.
"""

import asyncio
import logging
from typing import Any

import boto3
import botocore.exceptions

from edhbuilder.config import Settings, settings
from edhbuilder.models.db import ImageFace, ImageSize

logger = logging.getLogger(__name__)

# Object keys are content-addressed by card ID, so the bytes never change
CACHE_CONTROL = "public, max-age=31536000, immutable"


def card_image_key(scryfall_id: str, size: ImageSize, face: ImageFace = "front") -> str:
    """Deterministic object key for one card image variant."""
    folder = "cards-back" if face == "back" else "cards"
    return f"{folder}/{size}/{scryfall_id}.jpg"


class ObjectStorage:
    """
    Thin async wrapper around an S3 bucket with a public base URL.

    Args:
        account_id: Cloudflare account ID (builds the R2 endpoint)
        access_key_id: R2 access key
        secret_access_key: R2 secret
        bucket_name: Target bucket
        public_url: Public base URL objects are served from
        s3_client: Pre-built boto3 S3 client; built lazily if omitted
    """

    def __init__(
        self,
        account_id: str = "",
        access_key_id: str = "",
        secret_access_key: str = "",
        bucket_name: str = "",
        public_url: str = "",
        s3_client: Any = None,
    ) -> None:
        self.account_id = account_id
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.bucket_name = bucket_name
        self.public_base_url = public_url.rstrip("/")
        self._s3_client = s3_client

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "ObjectStorage":
        return cls(
            account_id=config.r2_account_id,
            access_key_id=config.r2_access_key_id,
            secret_access_key=config.r2_secret_access_key,
            bucket_name=config.r2_bucket_name,
            public_url=config.r2_public_url,
        )

    @property
    def is_configured(self) -> bool:
        """True only when every credential and the public URL are present."""
        return all(
            (
                self.account_id,
                self.access_key_id,
                self.secret_access_key,
                self.bucket_name,
                self.public_base_url,
            )
        )

    @property
    def endpoint_url(self) -> str:
        return f"https://{self.account_id}.r2.cloudflarestorage.com"

    def _client(self) -> Any:
        if self._s3_client is None:
            self._s3_client = boto3.client(
                "s3",
                endpoint_url=self.endpoint_url,
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
                region_name="auto",
            )
        return self._s3_client

    def public_url(self, key: str) -> str | None:
        """Public URL for a key, or None without a public base URL."""
        if not self.public_base_url:
            return None
        return f"{self.public_base_url}/{key}"

    async def upload(self, key: str, body: bytes, content_type: str) -> str | None:
        """
        Upload bytes under a key.

        Returns:
            The public URL, or None if storage is not configured

        Raises:
            botocore.exceptions.ClientError: If the bucket rejects the upload
            botocore.exceptions.BotoCoreError: On connection or credential failure
        """
        if not self.is_configured:
            logger.warning("Object storage is not configured, skipping upload of %s", key)
            return None

        await asyncio.to_thread(
            self._client().put_object,
            Bucket=self.bucket_name,
            Key=key,
            Body=body,
            ContentType=content_type,
            CacheControl=CACHE_CONTROL,
        )
        logger.debug("Uploaded s3://%s/%s", self.bucket_name, key)
        return self.public_url(key)

    async def exists(self, key: str) -> bool:
        """True if the object exists; False when unconfigured or on a failed HEAD."""
        if not self.is_configured:
            return False

        try:
            await asyncio.to_thread(self._client().head_object, Bucket=self.bucket_name, Key=key)
        except botocore.exceptions.ClientError as error:
            logger.debug("HEAD s3://%s/%s failed: %s", self.bucket_name, key, error)
            return False
        return True

    async def delete(self, key: str) -> None:
        """Delete an object; a no-op when unconfigured."""
        if not self.is_configured:
            return

        await asyncio.to_thread(self._client().delete_object, Bucket=self.bucket_name, Key=key)
        logger.info("Deleted s3://%s/%s", self.bucket_name, key)
