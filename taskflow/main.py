"""
TaskFlow API application
"""
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taskflow import models  # noqa: F401  registers the tables on Base.metadata
from taskflow.api.v1 import api_router
from taskflow.api.v1 import realtime
from taskflow.config import settings
from taskflow.database import Base, engine
from taskflow.errors import register_exception_handlers
from taskflow.logger import logger
from taskflow.middleware import ExceptionLoggingMiddleware, RateLimitMiddleware, RequestLoggingMiddleware
from taskflow.realtime import ConnectionHub, RealtimeNotifier


def create_app() -> FastAPI:
    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, debug=settings.DEBUG)

    app.state.hub = ConnectionHub()
    app.state.notifier = RealtimeNotifier(app.state.hub)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if settings.RATE_LIMIT_ENABLED:
        app.add_middleware(
            RateLimitMiddleware,
            max_requests=settings.RATE_LIMIT_REQUESTS,
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(ExceptionLoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(api_router, prefix="/api")
    app.include_router(realtime.router, tags=["realtime"])

    @app.get("/api/health", tags=["health"])
    async def health():
        return {
            "status": "ok",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "connections": app.state.hub.connection_count(),
        }

    @app.on_event("startup")
    async def startup_event():
        Base.metadata.create_all(bind=engine)
        logger.info("TaskFlow API started")

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("taskflow.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
