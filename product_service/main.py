import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import ValidationError as PydanticValidationError

from product_service.api.api import api_router
from product_service.api.responses import error
from product_service.config.database import create_mongo_client, ensure_indexes, get_database, ping
from product_service.config.logging import setup_logging
from product_service.config.otel import instrument_fastapi_app, setup_tracing, shutdown_tracing
from product_service.container import ServiceContainer, build_container
from product_service.core.config import settings
from product_service.core.errors import ApiError

setup_logging()
logger = logging.getLogger(__name__)

if settings.OTEL_ENABLED:
    setup_tracing()

tracer = trace.get_tracer("product_service.main")


def _validation_details(errors) -> list:
    details = []
    for err in errors:
        location = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        details.append(
            {
                "field": ".".join(location) or None,
                "message": err.get("msg"),
                "value": err.get("input") if isinstance(err.get("input"), (str, int, float, bool)) else None,
            }
        )
    return details


@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    if getattr(app_instance.state, "container", None) is not None:
        # wired by the caller
        yield
        return

    with tracer.start_as_current_span("app.lifespan.startup") as startup_span:
        client = create_mongo_client()
        try:
            db = get_database(client)
            with tracer.start_as_current_span("app.lifespan.startup.db_setup") as db_setup_span:
                try:
                    await ensure_indexes(db)
                    db_setup_span.set_status(Status(StatusCode.OK))
                except Exception as e:
                    logger.error("Lifespan: index setup failed", extra={"error": str(e)}, exc_info=True)
                    db_setup_span.record_exception(e)
                    db_setup_span.set_status(Status(StatusCode.ERROR, "Index setup failed"))
            app_instance.state.container = build_container(db)
            startup_span.set_status(Status(StatusCode.OK))
            logger.info("Application startup sequence completed.", extra={"database": settings.MONGODB_DATABASE})
        except Exception as e:
            logger.error("Critical error during application startup", extra={"error": str(e)}, exc_info=True)
            startup_span.record_exception(e)
            startup_span.set_status(Status(StatusCode.ERROR, "Critical startup failure"))
            client.close()
            raise

    yield

    with tracer.start_as_current_span("app.lifespan.shutdown") as shutdown_span:
        logger.info("Starting application shutdown sequence...")
        client.close()
        app_instance.state.container = None
        shutdown_span.set_status(Status(StatusCode.OK))
        logger.info("Application shutdown sequence completed.")
    if settings.OTEL_ENABLED:
        shutdown_tracing()


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        error_id = None
        if exc.status_code >= 500:
            error_id = str(uuid.uuid4())
            logger.error(
                "Request failed.",
                extra={"error_id": error_id, "code": exc.code, "path": request.url.path, "details": exc.details},
            )
        return error(exc.code, exc.message, exc.status_code, details=exc.details, error_id=error_id)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return error("VALIDATION_ERROR", "Validation failed", 400, details=_validation_details(exc.errors()))

    @app.exception_handler(PydanticValidationError)
    async def payload_validation_handler(request: Request, exc: PydanticValidationError):
        return error("VALIDATION_ERROR", "Validation failed", 400, details=_validation_details(exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        error_id = str(uuid.uuid4())
        logger.error(
            "Unhandled error.",
            extra={"error_id": error_id, "path": request.url.path, "error": str(exc)},
            exc_info=exc,
        )
        return error("INTERNAL_ERROR", "Internal server error", 500, error_id=error_id)


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    app = FastAPI(
        title="Product Service API",
        description="Catalog service: products, variants, inventory, categories, reviews, storefront search, cart and orders",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.container = container
    app.include_router(api_router, prefix="/api")
    register_exception_handlers(app)

    if settings.OTEL_ENABLED:
        instrument_fastapi_app(app)

    @app.get("/health/live")
    async def liveness():
        logger.debug("Liveness check called")
        return {"status": "alive"}

    @app.get("/health/ready")
    async def readiness():
        with tracer.start_as_current_span("app.health.readiness_check") as readiness_span:
            current = getattr(app.state, "container", None)
            if current is None:
                readiness_span.set_status(Status(StatusCode.ERROR, "Container not initialized"))
                return JSONResponse(status_code=503, content={"status": "not ready", "details": {"mongodb": "not initialized"}})
            try:
                await ping(current.db)
            except Exception as e:
                logger.error("Readiness: MongoDB ping failed", extra={"error": str(e)}, exc_info=True)
                readiness_span.record_exception(e)
                readiness_span.set_status(Status(StatusCode.ERROR, "Readiness checks failed"))
                return JSONResponse(
                    status_code=503,
                    content={"status": "not ready", "details": {"mongodb": "failed"}, "errors": [str(e)]},
                )
            readiness_span.set_status(Status(StatusCode.OK))
            return {"status": "ready", "details": {"mongodb": "connected"}}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("product_service.main:app", host="0.0.0.0", port=8000, reload=False)
