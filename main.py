import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fellis.config import settings
from fellis.database import Base, engine
from fellis.dependencies import get_graph_client, get_import_runner, get_token_vault
from fellis.exception_handlers import register_exception_handlers
from fellis.middleware.logging import StructuredLoggingMiddleware, setup_structured_logging
from fellis.routes import auth, facebook, feed, messages, privacy, social
from fellis.scheduler import start_scheduler, stop_scheduler

setup_structured_logging(settings.log_level, json_format=settings.log_json)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Tasks to run at application startup and shutdown."""
    logger.info("Starting up the application...")
    if settings.debug:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created (if not existing).")

    get_token_vault().warn_if_unconfigured()
    start_scheduler()

    yield

    logger.info("Shutting down the application...")
    stop_scheduler()
    await get_import_runner().shutdown()
    await get_graph_client().aclose()


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="fellis.eu API: social feed, messages, consent, Facebook import and GDPR erasure",
        debug=settings.debug,
        version=settings.app_version,
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
    app.include_router(facebook.router, prefix="/api/auth", tags=["Facebook"])
    app.include_router(privacy.router, prefix="/api/privacy", tags=["Privacy & GDPR"])
    app.include_router(social.router, prefix="/api", tags=["Social"])
    app.include_router(feed.router, prefix="/api/feed", tags=["Feed"])
    app.include_router(messages.router, prefix="/api/messages", tags=["Messages"])

    @app.get("/health", tags=["Root"])
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=3001, reload=settings.debug)
