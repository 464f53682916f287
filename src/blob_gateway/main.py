import logging
from contextlib import asynccontextmanager
from textwrap import dedent

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.routing import APIRoute

from blob_gateway.config.settings import Settings, get_settings
from blob_gateway.dependencies import ServiceContext, build_context
from blob_gateway.errors import (
    GatewayError,
    handle_broad_exceptions,
    handle_gateway_errors,
    handle_request_validation_errors,
)
from blob_gateway.routers.files import router as files_router
from blob_gateway.routers.health import router as health_router
from blob_gateway.utils.logging import configure_logging

# Set up logging
logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, context: ServiceContext | None = None) -> FastAPI:
    """
    Create a FastAPI application.

    When no `context` is given, the primary store and the mirror are
    connected on startup and released on shutdown. An unreachable primary
    store aborts startup.
    """
    if context is not None:
        settings = context.settings
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if app.state.context is None:
            configure_logging(settings)
            logger.info("connecting primary store and mirror")
            owned = build_context(settings)
            app.state.context = owned
        try:
            yield
        finally:
            if owned is not None:
                owned.mirror.shutdown(wait=True)
                owned.store.close()
                app.state.context = None

    app = FastAPI(
        title="Blob Gateway",
        summary="Store binary objects in GridFS and mirror them to S3",
        version="v1",
        description=dedent(
            """\
        | Endpoint | Notes |
        | --- | --- |
        | `POST {prefix}/upload` | multipart field `upload`, optional `uid` header |
        | `GET {prefix}/download?fid=` | raw object bytes |
        | `GET {prefix}/thumbnail?fid=` | fixed-width thumbnail |
        """
        ).format(prefix=settings.handle_path),
        docs_url="/docs",
        generate_unique_id_function=custom_generate_unique_id,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.context = context

    app.include_router(files_router, prefix=settings.handle_path, tags=["files"])
    app.include_router(health_router, tags=["health"])

    app.add_exception_handler(GatewayError, handle_gateway_errors)
    app.add_exception_handler(RequestValidationError, handle_request_validation_errors)
    app.middleware("http")(handle_broad_exceptions)

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    return f"{route.tags[0]}-{route.name}"


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.listen_host, port=settings.listen_port)
