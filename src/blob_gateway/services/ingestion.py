"""Ingestion pipeline: key assignment, mirror dispatch and the primary write."""
import logging
import time
from typing import Optional

from blob_gateway.content import sniff_content_type
from blob_gateway.dependencies import ServiceContext
from blob_gateway.errors import StoreError
from blob_gateway.identifiers import assign_storage_key, parse_owner_tag
from blob_gateway.schemas import UploadResult

logger = logging.getLogger(__name__)


def ingest(context: ServiceContext, payload: bytes, uid: Optional[str] = None) -> UploadResult:
    """
    Store an uploaded payload and return its storage key.

    The mirror copy is handed off before the primary write and is never
    waited for. Returning means the object is readable from the primary
    store; the mirror may still be in flight or may have failed.

    :param context: service context.
    :param payload: the whole uploaded file.
    :param uid: raw `uid` header, kept verbatim in the file metadata.
    """
    begin = time.perf_counter()
    owner_tag = parse_owner_tag(uid)
    length = len(payload)
    content_type = sniff_content_type(payload)
    key = assign_storage_key(int(context.clock()), owner_tag, length)

    context.mirror.submit(key, content_type, payload)

    with context.store.checkout() as handle:
        written = handle.create(key, content_type=content_type, owner_uid=uid or "", payload=payload)
    if written != length:
        logger.error(f"write to chunk incompletely for {key}: {written} of {length} bytes")
        raise StoreError(f"incomplete write of {key}", key=key)

    if context.settings.debug:
        elapsed_ms = (time.perf_counter() - begin) * 1000
        logger.info(f"upload {uid or '-'} {key} {content_type} {length} {elapsed_ms:.0f}ms")
    return UploadResult(fid=key, result="OK")
