"""
Secondary mirror writer.

Copies freshly ingested payloads into the S3 bucket of their content
category. Mirroring is best effort: each copy is attempted once on a
bounded thread pool, nobody waits for it, and failures end up in the log
only. The primary store stays the single source of truth.
"""
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from blob_gateway.config.settings import Settings
from blob_gateway.content import ContentCategory, route_category
from blob_gateway.errors import MirrorError
from blob_gateway.s3.write_objects import put_public_object

try:
    from mypy_boto3_s3 import S3Client
except ImportError:
    ...

logger = logging.getLogger(__name__)


class MirrorSink(Protocol):
    """Destination of mirror copies."""

    def put(self, key: str, category: ContentCategory, payload: bytes, content_type: str) -> None:
        ...


class S3MirrorSink:
    """Writes mirror copies to one public-read S3 bucket per content category."""

    def __init__(self, buckets: Dict[ContentCategory, str], s3_client: Optional["S3Client"] = None):
        self._buckets = dict(buckets)
        self._s3_client = s3_client or boto3.client("s3")

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3MirrorSink":
        s3_client = boto3.client(
            "s3",
            region_name=settings.aws_region,
            endpoint_url=settings.aws_endpoint_url,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
        )
        buckets = {ContentCategory(name): bucket for name, bucket in settings.buckets.items()}
        logger.info(f"Mirroring to S3 buckets: {', '.join(buckets.values())}")
        return cls(buckets, s3_client=s3_client)

    def bucket_for(self, category: ContentCategory) -> str:
        try:
            return self._buckets[category]
        except KeyError:
            raise MirrorError(f"no bucket configured for category {category.value}")

    def put(self, key: str, category: ContentCategory, payload: bytes, content_type: str) -> None:
        bucket = self.bucket_for(category)
        try:
            etag = put_public_object(self._s3_client, bucket, key, payload, content_type)
        except (BotoCoreError, ClientError) as e:
            raise MirrorError(str(e), key=key, bucket=bucket) from e
        logger.debug(f"mirrored {key} to s3://{bucket} etag {etag}")


class MirrorWriter:
    """Fire-and-forget dispatcher of mirror copies."""

    def __init__(self, sink: MirrorSink, max_workers: int = 4, max_pending: int = 16):
        self._sink = sink
        # copies running or waiting for a worker, each holding its payload
        self._pending = threading.BoundedSemaphore(max(max_pending, 1))
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="mirror")

    def submit(self, key: str, mime_type: str, payload: bytes) -> Optional[Future]:
        """
        Schedule a mirror copy and return without waiting for it.

        The returned future resolves to True if the copy was written. Callers
        on the request path ignore it. When `max_pending` copies are already
        in flight the copy is dropped and None is returned; scheduling
        problems are logged and never raised.
        """
        if not self._pending.acquire(blocking=False):
            logger.warning(f"drop mirror of {key}: too many pending mirror copies")
            return None
        try:
            return self._executor.submit(self._mirror, key, mime_type, payload)
        except RuntimeError as e:
            self._pending.release()
            logger.error(f"error when schedule mirror of {key}: {e}")
            return None

    def _mirror(self, key: str, mime_type: str, payload: bytes) -> bool:
        try:
            return self._copy(key, mime_type, payload)
        finally:
            self._pending.release()

    def _copy(self, key: str, mime_type: str, payload: bytes) -> bool:
        begin = time.perf_counter()
        category = route_category(mime_type)
        if category is ContentCategory.UNSUPPORTED:
            logger.warning(f"ignore mirror of {key} due to invalid type {mime_type}")
            return False
        try:
            self._sink.put(key, category, payload, mime_type)
        except Exception as e:
            # a failed copy never leaves this thread
            logger.error(f"error when upload to s3 {key} {mime_type}: {e}")
            return False
        elapsed_ms = (time.perf_counter() - begin) * 1000
        logger.info(f"upload to s3 {key} {mime_type} {elapsed_ms:.0f}ms")
        return True

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
