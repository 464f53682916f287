from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from blob_gateway.dependencies import ServiceContext, get_context
from blob_gateway.errors import StoreError
from blob_gateway.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(context: ServiceContext = Depends(get_context)) -> HealthResponse:
    """
    Health check endpoint for monitoring API status and component readiness.

    Returns status of the API and of the primary store. The mirror is best
    effort and does not take part in readiness.
    """
    components = {"api": "ready", "primary_store": "ready"}
    status = "ok"

    try:
        await run_in_threadpool(context.store.ping)
    except StoreError as e:
        components["primary_store"] = f"error: {e}"
        status = "degraded"

    ready = all(state == "ready" for state in components.values())
    return HealthResponse(status=status, components=components, ready=ready)
