"""S3 Storage Uploader: streams generated imagery to S3-compatible object storage.

Invariants:
    - upload() returns the public URL of the stored object, never the presigned one
    - Objects are written public-read with the caller's content type
    - boto3 calls run in a worker thread (asyncio.to_thread): the event loop never blocks

Design Decisions:
    - boto3 upload_fileobj over put_object: accepts a file-like stream, so provider
      downloads spooled to disk are never loaded whole into memory
    - Path-style addressing by default: MinIO / R2 endpoints expect bucket in the path
"""

import asyncio
import io
import logging
from typing import BinaryIO

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from jewelpreview.config import Settings
from jewelpreview.core.errors import ProviderError

logger = logging.getLogger(__name__)


class S3StorageUploader:
    """Implements StorageUploader over a boto3 S3 client."""

    def __init__(
        self,
        bucket_name: str,
        region: str = "us-east-1",
        service_url: str = "",
        access_key: str = "",
        secret_key: str = "",
        force_path_style: bool = True,
        public_base_url: str = "",
        client=None,
    ):
        self.bucket_name = bucket_name
        self.region = region
        self.service_url = service_url.rstrip("/")
        self.public_base_url = public_base_url.rstrip("/")
        self.force_path_style = force_path_style
        self._client = client or boto3.client(
            "s3",
            aws_access_key_id=access_key or None,
            aws_secret_access_key=secret_key or None,
            region_name=region,
            endpoint_url=self.service_url or None,
            config=Config(
                s3={"addressing_style": "path" if force_path_style else "auto"},
            ),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3StorageUploader":
        return cls(
            bucket_name=settings.s3_bucket_name,
            region=settings.s3_region,
            service_url=settings.s3_service_url,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
            force_path_style=settings.s3_force_path_style,
            public_base_url=settings.s3_public_base_url,
        )

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        if self.service_url:
            if self.force_path_style:
                return f"{self.service_url}/{self.bucket_name}/{key}"
            scheme, _, host = self.service_url.partition("://")
            return f"{scheme}://{self.bucket_name}.{host}/{key}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{key}"

    async def upload(
        self, data: bytes | BinaryIO, key: str, content_type: str,
    ) -> str:
        """Upload bytes or a readable stream; returns the public URL."""
        fileobj = io.BytesIO(data) if isinstance(data, (bytes, bytearray)) else data
        try:
            await asyncio.to_thread(
                self._client.upload_fileobj,
                fileobj,
                self.bucket_name,
                key,
                ExtraArgs={"ContentType": content_type, "ACL": "public-read"},
            )
        except (BotoCoreError, ClientError) as e:
            raise ProviderError(f"Upload of '{key}' failed: {e}", "storage")
        url = self.public_url(key)
        logger.info(f"Uploaded {key}", extra={"provider": "storage"})
        return url

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(
                self._client.delete_object, Bucket=self.bucket_name, Key=key,
            )
        except (BotoCoreError, ClientError) as e:
            raise ProviderError(f"Delete of '{key}' failed: {e}", "storage")
