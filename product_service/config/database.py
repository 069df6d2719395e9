import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from product_service.core.config import settings
from product_service.models import ALL_MODELS

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("product_service.config.database")


def create_mongo_client(url: Optional[str] = None) -> AsyncIOMotorClient:
    url = url or settings.MONGODB_URL
    client = AsyncIOMotorClient(url, serverSelectionTimeoutMS=5000, tz_aware=True)
    logger.info("MongoDB client created.", extra={"database": settings.MONGODB_DATABASE})
    return client


def get_database(client: AsyncIOMotorClient, name: Optional[str] = None) -> AsyncIOMotorDatabase:
    return client[name or settings.MONGODB_DATABASE]


async def ensure_indexes(db: AsyncIOMotorDatabase):
    """Create the declared indexes of every collection (no-op for ones that already exist)."""
    with tracer.start_as_current_span("db.ensure_indexes") as span:
        for model in ALL_MODELS:
            try:
                if model.INDEXES:
                    names = await db[model.COLLECTION].create_indexes(model.INDEXES)
                    logger.info("Indexes ensured.", extra={"collection": model.COLLECTION, "indexes": names})
            except Exception as e:
                logger.error(
                    "Failed to create indexes.",
                    extra={"collection": model.COLLECTION, "error": str(e)},
                    exc_info=True,
                )
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, f"Index creation failed for {model.COLLECTION}"))
                raise
        span.set_attribute("db.collections.count", len(ALL_MODELS))
        span.set_status(Status(StatusCode.OK))


async def ping(db: AsyncIOMotorDatabase) -> bool:
    await db.command("ping")
    return True
