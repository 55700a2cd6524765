"""FastAPI dependency injection wiring."""

from __future__ import annotations

from functools import lru_cache

import httpx

from sample_fetcher.infrastructure.config import Settings, get_settings
from sample_fetcher.infrastructure.git_cli import GitCli
from sample_fetcher.infrastructure.github_tree_client import GitHubTreeClient
from sample_fetcher.services.retrieve_sample import RetrieveSampleUseCase

_http_client: httpx.AsyncClient | None = None


async def startup() -> None:
    """Initialise shared resources — called from the lifespan context manager."""
    global _http_client  # noqa: PLW0603

    settings = get_settings()
    _http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=True,
    )


async def shutdown() -> None:
    """Release shared resources."""
    global _http_client  # noqa: PLW0603

    if _http_client:
        await _http_client.aclose()
        _http_client = None


@lru_cache(maxsize=1)
def _settings() -> Settings:
    return get_settings()


def get_app_settings() -> Settings:
    return _settings()


def get_use_case() -> RetrieveSampleUseCase:
    """Build the use case with injected adapters."""
    settings = _settings()

    assert _http_client is not None, "startup() was not called"

    tree_client = GitHubTreeClient(
        client=_http_client,
        api_base=settings.github_api_base,
        raw_base=settings.raw_content_base,
        user_agent=settings.user_agent,
    )
    return RetrieveSampleUseCase(
        tree_source=tree_client,
        git=GitCli(settings.git_binary),
        concurrency=settings.download_concurrency,
        remote_base=settings.git_remote_base,
    )
