"""Strategy selection — pure functions, no I/O."""

from __future__ import annotations

from sample_fetcher.domain.entities import RetrievalMethod, RetrievalMode
from sample_fetcher.domain.exceptions import ConfigurationError


def parse_method(value: str | RetrievalMethod | None) -> RetrievalMethod:
    """Validate a ``--method`` value; ``None`` means ``auto``."""
    if value is None or value == "":
        return RetrievalMethod.AUTO
    try:
        return RetrievalMethod(value)
    except ValueError:
        raise ConfigurationError(
            f'Invalid method "{value}". Use "auto", "git", or "api".'
        ) from None


def parse_mode(value: str | RetrievalMode | None) -> RetrievalMode:
    """Validate a ``--mode`` value; ``None`` means ``extract``."""
    if value is None or value == "":
        return RetrievalMode.EXTRACT
    try:
        return RetrievalMode(value)
    except ValueError:
        raise ConfigurationError(
            f'Invalid mode "{value}". Use "extract" or "repo".'
        ) from None


def select_method(
    requested: RetrievalMethod,
    git_available: bool,
    mode: RetrievalMode,
) -> RetrievalMethod:
    """Resolve *requested* to GIT or API.

    ``auto`` prefers git when it is available.  The API method cannot
    produce a working copy, so ``repo`` mode with it is rejected.
    """
    if requested is RetrievalMethod.AUTO:
        chosen = RetrievalMethod.GIT if git_available else RetrievalMethod.API
    else:
        chosen = requested

    if chosen is RetrievalMethod.API and mode is RetrievalMode.REPO:
        raise ConfigurationError(
            "Mode repo requires the git method "
            "(the API method cannot create a git working copy).",
            "Install git or use --mode extract.",
        )
    return chosen
