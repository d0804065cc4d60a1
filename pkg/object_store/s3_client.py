"""
S3-compatible object storage (AWS S3, MinIO, LocalStack).

boto3 is synchronous; calls run in a worker thread so the event loop is never
blocked.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError


class ObjectStoreError(Exception):
    pass


class S3ObjectStore:
    def __init__(
        self,
        bucket_name: str,
        logger: logging.Logger,
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        public_base_url: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
    ):
        self.bucket_name = bucket_name
        self.logger = logger
        self.region = region
        self.endpoint_url = endpoint_url
        self.public_base_url = public_base_url
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._client = None

    @property
    def is_enabled(self) -> bool:
        return bool(self.bucket_name)

    def _get_client(self):
        if self._client is not None:
            return self._client
        if not self.is_enabled:
            raise ObjectStoreError("S3 storage is not configured. Set S3_BUCKET_NAME.")

        client_kwargs: Dict[str, Any] = {
            "service_name": "s3",
            "region_name": self.region,
            "config": Config(signature_version="s3v4", retries={"max_attempts": 3, "mode": "adaptive"}),
        }
        if self._access_key_id and self._secret_access_key:
            client_kwargs["aws_access_key_id"] = self._access_key_id
            client_kwargs["aws_secret_access_key"] = self._secret_access_key
        if self.endpoint_url:
            client_kwargs["endpoint_url"] = self.endpoint_url
            self.logger.info(f"Using custom S3 endpoint: {self.endpoint_url}")

        self._client = boto3.client(**client_kwargs)
        self.logger.info(f"S3 client initialized for bucket: {self.bucket_name}")
        return self._client

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}/{key}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{key}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store the blob under `key` and return its public URL."""
        client = self._get_client()
        try:
            await asyncio.to_thread(
                client.put_object,
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            self.logger.error(f"S3 upload failed for {key}: {e}")
            raise ObjectStoreError(f"Failed to upload {key}") from e
        self.logger.info(f"Uploaded {key} ({len(data)} bytes)")
        return self.public_url(key)
