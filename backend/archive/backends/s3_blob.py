"""Amazon S3 blob store.

Uploads go through boto3's managed transfer in a worker thread; its
transfer callback is marshalled back onto the event loop so progress
listeners always run on the loop thread.
"""
import asyncio
import io
import logging
import threading
from typing import Dict, Optional
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from archive.errors import BackendError

from .base import BlobStore, ProgressCallback

logger = logging.getLogger(__name__)


class S3BlobStore(BlobStore):
    """Blob store backed by a single S3 bucket."""

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        public_base_url: str = "",
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        client=None,
    ) -> None:
        if not bucket:
            raise ValueError("S3 bucket name is required")
        self.bucket = bucket
        self.region = region
        self._public_base_url = public_base_url.rstrip("/")
        self._client = client or boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
        )

    def url_for(self, path: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url}/{quote(path)}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{quote(path)}"

    async def put(
        self,
        data: bytes,
        path: str,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        loop = asyncio.get_running_loop()
        total = len(data)
        transferred = 0

        def _callback(bytes_amount: int) -> None:
            # Runs on boto3's transfer thread
            nonlocal transferred
            transferred += bytes_amount
            if on_progress:
                loop.call_soon_threadsafe(on_progress, min(transferred, total), total)

        abandoned = threading.Event()

        def _upload() -> None:
            self._client.upload_fileobj(
                io.BytesIO(data),
                self.bucket,
                path,
                ExtraArgs={"ContentType": content_type, "Metadata": metadata or {}},
                Callback=_callback,
            )
            if abandoned.is_set():
                # The awaiting task was cancelled; nothing will reference this object.
                try:
                    self._client.delete_object(Bucket=self.bucket, Key=path)
                except (ClientError, BotoCoreError) as e:
                    logger.warning("Could not remove abandoned upload %s: %s", path, e)

        try:
            await asyncio.to_thread(_upload)
        except asyncio.CancelledError:
            # The worker thread cannot be stopped, so it cleans up after itself.
            abandoned.set()
            raise
        except (ClientError, BotoCoreError) as e:
            logger.error("S3 upload of %s failed: %s", path, e)
            raise BackendError(f"Upload failed: {e}") from e

        if on_progress:
            on_progress(total, total)
        return self.url_for(path)

    async def delete(self, path: str) -> bool:
        try:
            await asyncio.to_thread(self._client.head_object, Bucket=self.bucket, Key=path)
        except ClientError as e:
            if e.response["Error"]["Code"] in ("404", "NoSuchKey", "NotFound"):
                return False
            raise BackendError(f"Delete failed: {e}") from e
        try:
            await asyncio.to_thread(self._client.delete_object, Bucket=self.bucket, Key=path)
        except (ClientError, BotoCoreError) as e:
            raise BackendError(f"Delete failed: {e}") from e
        return True
