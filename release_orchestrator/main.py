import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from release_orchestrator import __version__
from release_orchestrator.api.v1 import alerts, health, pipeline
from release_orchestrator.config import settings
from release_orchestrator.dependencies import close_clients
from release_orchestrator.middleware import ErrorHandlingMiddleware, LoggingMiddleware

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_clients()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Release Orchestrator",
        description="Health-gated deployment pipeline with monitoring and rollback",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    # Added last so it wraps the others and renders whatever they raise
    app.add_middleware(ErrorHandlingMiddleware)

    # Mount routers
    app.include_router(health.router, prefix="/api/v1")
    app.include_router(pipeline.router, prefix="/api/v1")
    app.include_router(alerts.router, prefix="/api/v1")

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("release_orchestrator.main:app", host="0.0.0.0", port=8000)
