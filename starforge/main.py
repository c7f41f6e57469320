from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError

from starforge.config.logging import setup_logging
from starforge.config.settings import settings
from starforge.v1.core.exceptions import (
    RequestContextMiddleware,
    StarForgeException,
    general_exception_handler,
    http_exception_handler,
    request_validation_exception_handler,
    starforge_exception_handler,
    storage_exception_handler,
)
from starforge.v1.healthz import router as health_router
from starforge.v1.infra.jobs.routes import router as jobs_router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    setup_logging(settings, service="api")

    app = FastAPI(
        title=settings.app_name,
        description="Job queue submission and inspection",
        version=settings.version,
        debug=settings.debug,
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
    )

    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(StarForgeException, starforge_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, storage_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Include routers with /v1 prefix
    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(jobs_router, prefix="/v1")

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "starforge.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
