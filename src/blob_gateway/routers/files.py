import logging
from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    Header,
    Query,
    Request,
    Response,
    status
)
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from blob_gateway.dependencies import ServiceContext, get_context
from blob_gateway.errors import ClientError, PayloadTooLargeError
from blob_gateway.schemas import UploadResult
from blob_gateway.services.derivation import derive_thumbnail
from blob_gateway.services.ingestion import ingest
from blob_gateway.services.retrieval import HEADER_CONTENT_MD5, open_object_stream

logger = logging.getLogger(__name__)

PARAMETER_UPLOAD = "upload"

router = APIRouter()

_ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"description": "Missing or malformed `fid`."},
    status.HTTP_404_NOT_FOUND: {"description": "File not found for the given `fid`."},
    status.HTTP_405_METHOD_NOT_ALLOWED: {"description": "Unsupported method."},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"description": "Primary store failure."},
}


def _require_fid(fid: Optional[str]) -> str:
    if not fid:
        logger.warning("invalid query parameter: missing fid")
        raise ClientError("missing fid")
    return fid


@router.get(
    "/download",
    responses={
        **_ERROR_RESPONSES,
        status.HTTP_200_OK: {
            "description": "The raw object bytes.",
            "content": {
                "application/octet-stream": {
                    "schema": {"type": "string", "format": "binary"},
                },
            },
        },
    },
)
async def download(
    context: ServiceContext = Depends(get_context),
    fid: Optional[str] = Query(None, description="Storage key of the object"),
    uid: Optional[str] = Header(None, description="Opaque owner tag, logged only"),
) -> StreamingResponse:
    """
    Stream a stored object.

    The object is opened before the response starts, so unknown keys and
    store failures are reported with a proper status and no body bytes.
    """
    key = _require_fid(fid)
    stream = await run_in_threadpool(open_object_stream, context, key, uid)
    return StreamingResponse(
        content=stream,
        headers=stream.headers,
        background=BackgroundTask(stream.close),
    )


@router.get(
    "/thumbnail",
    responses={
        **_ERROR_RESPONSES,
        status.HTTP_200_OK: {
            "description": "A thumbnail of the stored image.",
            "content": {"image/*": {"schema": {"type": "string", "format": "binary"}}},
        },
    },
)
async def thumbnail(
    context: ServiceContext = Depends(get_context),
    fid: Optional[str] = Query(None, description="Storage key of the source image"),
    uid: Optional[str] = Header(None, description="Opaque owner tag, logged only"),
) -> Response:
    """Return a fixed-width thumbnail of a stored image, computed on every request."""
    key = _require_fid(fid)
    rendition = await run_in_threadpool(derive_thumbnail, context, key, uid)
    return Response(
        content=rendition.data,
        media_type=rendition.content_type,
        headers={HEADER_CONTENT_MD5: rendition.source_checksum},
    )


@router.post(
    "/upload",
    response_model=UploadResult,
    responses={
        status.HTTP_400_BAD_REQUEST: {"description": "Missing or malformed multipart form."},
        status.HTTP_405_METHOD_NOT_ALLOWED: {"description": "Unsupported method."},
        status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: {"description": "Upload exceeds the configured maximum size."},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"description": "Primary store create or write failed."},
    },
)
async def upload(
    request: Request,
    context: ServiceContext = Depends(get_context),
    uid: Optional[str] = Header(None, description="Numeric owner tag"),
) -> UploadResult:
    """
    Upload a file in the multipart field `upload`.

    The file is buffered in memory, written to the primary store under a
    freshly assigned key and mirrored to S3 in the background.
    """
    form = await request.form()
    upload_file = form.get(PARAMETER_UPLOAD)
    if not isinstance(upload_file, UploadFile):
        logger.warning(f"empty multipart form or missing '{PARAMETER_UPLOAD}' field")
        raise ClientError(f"missing form field '{PARAMETER_UPLOAD}'")

    max_size = context.settings.max_upload_size
    try:
        payload = await upload_file.read(max_size + 1)
    finally:
        await upload_file.close()
    if len(payload) > max_size:
        logger.warning(f"upload rejected: larger than {max_size} bytes")
        raise PayloadTooLargeError(f"upload larger than {max_size} bytes")

    return await run_in_threadpool(ingest, context, payload, uid)
