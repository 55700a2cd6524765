"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from sample_fetcher.interface.dependencies import shutdown, startup
from sample_fetcher.interface.error_handlers import register_error_handlers
from sample_fetcher.interface.routes import router


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup / shutdown of shared resources."""
    await startup()
    yield
    await shutdown()


def create_app() -> FastAPI:
    """Build and wire the FastAPI application."""
    app = FastAPI(
        title="Sample Fetcher",
        version="1.0.0",
        description=(
            "Fetches a single sample folder out of a large GitHub repository "
            "using git sparse-checkout or the tokenless tree API, and "
            "optionally renames the retrieved project."
        ),
        lifespan=_lifespan,
    )

    register_error_handlers(app)
    app.include_router(router)

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
