"""Service context shared by every request handler."""
import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from fastapi import Request

from blob_gateway.adapters.mirror import MirrorWriter, S3MirrorSink
from blob_gateway.adapters.primary_store import GridFSStore, PrimaryStore
from blob_gateway.config.settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceContext:
    """
    Process-wide handles, built once at startup and never mutated.

    `clock` returns the current epoch time in seconds; tests replace it to
    freeze storage keys.
    """
    settings: Settings
    store: PrimaryStore
    mirror: MirrorWriter
    clock: Callable[[], float] = field(default=time.time)


def build_context(settings: Settings) -> ServiceContext:
    """Connect the primary store and the mirror; raises if the store is unreachable."""
    store = GridFSStore.from_settings(settings)
    sink = S3MirrorSink.from_settings(settings)
    mirror = MirrorWriter(
        sink,
        max_workers=settings.mirror_max_workers,
        max_pending=settings.mirror_max_pending,
    )
    return ServiceContext(settings=settings, store=store, mirror=mirror)


def get_context(request: Request) -> ServiceContext:
    """Service context dependency."""
    return request.app.state.context
