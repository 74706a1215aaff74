from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from taskmanagement.core.config import settings
from taskmanagement.core.logging_setup import configure_logging
from taskmanagement.db.base import Base
from taskmanagement.db.session import engine
from taskmanagement.api.v1.api import api_router
from taskmanagement.api.v1.endpoints.notifications import hub_router
from taskmanagement.reminders.config import settings as reminder_settings
from taskmanagement.reminders.pipeline import ReminderPipeline
from taskmanagement.reminders.registry import ConnectionRegistry
from taskmanagement.websocket import NotificationHub
import taskmanagement.models  # noqa: F401  (register tables on Base.metadata)

logger = logging.getLogger(__name__)


def check_database_tables() -> None:
    try:
        from sqlalchemy import inspect

        existing_tables = inspect(engine).get_table_names()
        required_tables = list(Base.metadata.tables.keys())
        missing_tables = [table for table in required_tables if table not in existing_tables]
        if missing_tables:
            logger.warning(f"Missing database tables: {missing_tables}")
        else:
            logger.info("All required database tables exist")
    except Exception as e:
        logger.warning(f"Could not check database tables: {e}")


def create_app(start_pipeline: bool = True) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events"""
        configure_logging()
        logger.info("Starting up Task Management API...")
        check_database_tables()

        pipeline = None
        if start_pipeline and (reminder_settings.RUN_SCANNER or reminder_settings.RUN_DISPATCHER):
            pipeline = ReminderPipeline(
                registry=app.state.connection_registry,
                transport=app.state.notification_hub,
            )
            await pipeline.start()
        else:
            logger.info("⏸️ [Startup] Reminder pipeline disabled")
        app.state.reminder_pipeline = pipeline

        yield

        logger.info("Shutting down Task Management API...")
        if pipeline is not None:
            await pipeline.stop()
        logger.info("✅ Task Management API shutdown complete")

    app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION, lifespan=lifespan)

    # Process-wide shared state, lives as long as the app
    registry = ConnectionRegistry()
    app.state.connection_registry = registry
    app.state.notification_hub = NotificationHub(registry)
    app.state.reminder_pipeline = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix=settings.API_V1_STR)
    app.include_router(hub_router)

    if reminder_settings.METRICS_ENABLED:
        from prometheus_fastapi_instrumentator import Instrumentator

        Instrumentator().instrument(app).expose(app, endpoint="/metrics")

    return app


def main():
    uvicorn.run(
        "taskmanagement.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
    )


app = create_app()


if __name__ == "__main__":
    main()
