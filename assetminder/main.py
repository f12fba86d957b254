from contextlib import asynccontextmanager
import logging
import sys

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import inspect

from assetminder.core.config import settings
from assetminder.db.base import Base
from assetminder.db.session import engine
from assetminder.reminders import models as _models  # noqa: F401  registers the tables
from assetminder.reminders.api import router as reminders_router
from assetminder.reminders.config import settings as reminder_settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info(f"Starting up {settings.PROJECT_NAME}...")

    existing_tables = inspect(engine).get_table_names()
    missing_tables = [t for t in Base.metadata.tables if t not in existing_tables]
    if missing_tables:
        logger.warning(f"Missing database tables: {missing_tables}")
        logger.warning("Run `alembic upgrade head` before starting the server")
    else:
        logger.info("All required database tables exist")

    yield

    logger.info(f"{settings.PROJECT_NAME} shutdown complete")


def create_app() -> FastAPI:
    app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION, lifespan=lifespan)
    app.include_router(reminders_router, prefix=f"{settings.API_V1_STR}/reminders", tags=["reminders"])
    if reminder_settings.METRICS_ENABLED:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("assetminder.main:app", host=settings.SERVER_HOST, port=settings.SERVER_PORT)
