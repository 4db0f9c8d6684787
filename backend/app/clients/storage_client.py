"""
clients/storage_client.py — Blob storage for avatars, photos and trip exports.

Objects are written under "<prefix>/<epoch-ms>-<slug><ext>" so uploads of the
same filename never collide. Any boto3/botocore failure is logged and raised
as IntegrationError; boto3's own retry loop is switched off.
"""

from __future__ import annotations

import io
import logging
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from pathlib import PurePosixPath
from typing import Sequence
from urllib.parse import urlparse

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from slugify import slugify

from backend.app.errors import IntegrationError

logger = logging.getLogger(__name__)

# (data, filename, content_type)
UploadItem = tuple[bytes, str, str]


def make_object_key(prefix: str, filename: str, now_ms: int | None = None) -> str:
    path = PurePosixPath(filename or "file")
    stem = slugify(path.stem) or "file"
    ext = path.suffix.lower()
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{prefix.strip('/')}/{stamp}-{stem}{ext}"


class S3Storage:

    def __init__(
            self,
            bucket: str,
            region: str = "us-east-1",
            public_base_url: str | None = None,
            signed_url_expires: int = 3600,
            timeout: float = 15.0,
            max_concurrency: int = 4,
            s3_client=None,
    ) -> None:
        self.bucket = bucket
        self.region = region
        self.public_base_url = (
            public_base_url or f"https://{bucket}.s3.{region}.amazonaws.com"
        ).rstrip("/")
        self.signed_url_expires = signed_url_expires
        self.max_concurrency = max(1, max_concurrency)
        self.s3 = s3_client or boto3.client(
            "s3",
            region_name=region,
            config=Config(
                s3={"addressing_style": "virtual"},
                connect_timeout=timeout,
                read_timeout=timeout,
                retries={"max_attempts": 1},
            ),
        )

    def url_for(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    def key_from_url(self, url: str) -> str:
        if url.startswith(self.public_base_url + "/"):
            return url[len(self.public_base_url) + 1:]
        return urlparse(url).path.lstrip("/")

    def upload_file(
            self,
            data: bytes,
            filename: str,
            content_type: str,
            prefix: str = "uploads",
    ) -> str:
        """Stores `data` and returns its public URL."""
        key = make_object_key(prefix, filename)
        try:
            self.s3.upload_fileobj(
                Fileobj=io.BytesIO(data),
                Bucket=self.bucket,
                Key=key,
                ExtraArgs={"ContentType": content_type},
            )
        except (BotoCoreError, ClientError) as exc:
            logger.warning("S3 upload of %s failed: %s", key, type(exc).__name__)
            raise IntegrationError("File upload failed.") from exc
        return self.url_for(key)

    def delete_file(self, url: str) -> None:
        key = self.key_from_url(url)
        try:
            self.s3.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            logger.warning("S3 delete of %s failed: %s", key, type(exc).__name__)
            raise IntegrationError("File deletion failed.") from exc

    def signed_url(self, key: str, expires_in: int | None = None) -> str:
        try:
            return self.s3.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in or self.signed_url_expires,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.warning("S3 presign of %s failed: %s", key, type(exc).__name__)
            raise IntegrationError("Could not create download link.") from exc

    def upload_many(self, files: Sequence[UploadItem], prefix: str = "uploads") -> list[str]:
        """
        Uploads every item concurrently and returns URLs in input order.

        All-or-nothing: the first failure cancels queued uploads and is
        raised. Objects already written by then are left in the bucket.
        """
        if not files:
            return []

        urls: list[str | None] = [None] * len(files)
        with ThreadPoolExecutor(max_workers=self.max_concurrency) as pool:
            futures = {
                pool.submit(self.upload_file, data, filename, content_type, prefix): index
                for index, (data, filename, content_type) in enumerate(files)
            }
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for future in pending:
                future.cancel()
            for future in done:
                exc = future.exception()
                if exc is not None:
                    raise exc
                urls[futures[future]] = future.result()

        return urls
