"""Habit Service API - FastAPI with DynamoDB and XP leveling"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import Settings, get_settings
from app.dependencies import build_gateway
from app.errors import register_exception_handlers
from app.middleware.request_context import RequestIDMiddleware, RequestLoggingMiddleware
from app.routers import habits, users

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Fail fast on missing table configuration
        if getattr(app.state, "gateway", None) is None:
            app.state.gateway = build_gateway(settings)
        tables = app.state.gateway.tables
        logger.info(
            f"{settings.APP_NAME} started: habits={tables.habits}, "
            f"completions={tables.completions}, users={tables.users}"
        )
        yield

    app = FastAPI(
        title="Habit Service API",
        description="Habit tracking with daily completions, XP and levels",
        version=settings.VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.gateway = None

    register_exception_handlers(app)

    app.include_router(habits.router)
    app.include_router(users.router)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    @app.get("/health")
    def health():
        return {
            "status": "healthy",
            "service": "habit-service",
            "version": settings.VERSION,
        }

    return app


logging.basicConfig(level=get_settings().LOG_LEVEL, format="%(asctime)s - %(levelname)s - %(message)s")
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
