"""Retrieval pipeline: streams stored objects back out of the primary store."""
import logging
import time
from contextlib import ExitStack
from typing import Dict, Iterator, Optional

from blob_gateway.adapters.primary_store import StoredObject
from blob_gateway.dependencies import ServiceContext

logger = logging.getLogger(__name__)

HEADER_CONTENT_MD5 = "Content-MD5"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_CONTENT_LENGTH = "Content-Length"


class ObjectStream:
    """
    Lazy, single-pass byte stream over a stored object.

    Holds the store session and the open object until the stream is
    exhausted, fails or is closed, whichever comes first. `close` is
    idempotent.
    """

    def __init__(self, stored: StoredObject, resources: ExitStack, uid: Optional[str] = None, debug: bool = False):
        self.stored = stored
        self._resources = resources
        self._uid = uid
        self._debug = debug
        self._begin = time.perf_counter()

    @property
    def headers(self) -> Dict[str, str]:
        headers = {HEADER_CONTENT_MD5: self.stored.checksum or ""}
        if self.stored.content_type:
            headers[HEADER_CONTENT_TYPE] = self.stored.content_type
        headers[HEADER_CONTENT_LENGTH] = str(self.stored.length)
        return headers

    def __iter__(self) -> Iterator[bytes]:
        try:
            yield from self.stored.iter_chunks()
        finally:
            self.close()
        if self._debug:
            elapsed_ms = (time.perf_counter() - self._begin) * 1000
            logger.info(f"download {self._uid or '-'} {self.stored.key} {elapsed_ms:.0f}ms")

    def close(self) -> None:
        self._resources.close()


def open_object_stream(context: ServiceContext, key: str, uid: Optional[str] = None) -> ObjectStream:
    """
    Open `key` for streaming.

    Raises NotFoundError or StoreError before any byte is produced, so the
    caller can still answer with an error status.
    """
    resources = ExitStack()
    try:
        handle = resources.enter_context(context.store.checkout())
        stored = handle.open(key)
        resources.callback(stored.close)
    except BaseException:
        resources.close()
        raise
    return ObjectStream(stored, resources, uid=uid, debug=context.settings.debug)
