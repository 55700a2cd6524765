"""Retrieve-sample use case — the top-level orchestration pipeline.

This is the single entry point for the business logic.  It depends only on
the two ports (:class:`TreeSource` and :class:`VersionControl`) and the pure
service modules.  The interface layer injects concrete adapters at runtime.
"""

from __future__ import annotations

import asyncio
import errno
import logging
import shutil
from pathlib import Path

from sample_fetcher.domain.context import RetrievalContext
from sample_fetcher.domain.entities import (
    IdentityChange,
    RetrievalMethod,
    RetrievalMode,
    RetrievalOutcome,
    RetrievalRequest,
)
from sample_fetcher.domain.exceptions import (
    ConfigurationError,
    DestinationBusyError,
    DestinationConflictError,
)
from sample_fetcher.domain.ports.tree_source import TreeSource
from sample_fetcher.domain.ports.version_control import VersionControl
from sample_fetcher.domain.value_objects import RepositoryCoordinate, SampleSelector
from sample_fetcher.services.identity_rewriter import (
    resolve_solution_id,
    rewrite_identity,
)
from sample_fetcher.services.next_steps import build_next_steps
from sample_fetcher.services.sparse_retriever import SparseRetriever
from sample_fetcher.services.strategy import parse_method, parse_mode, select_method

logger = logging.getLogger(__name__)

_BUSY_ERRNOS = frozenset({errno.EBUSY, errno.EPERM, errno.EACCES})
# ERROR_SHARING_VIOLATION, ERROR_LOCK_VIOLATION
_BUSY_WINERRORS = frozenset({32, 33})


class RetrieveSampleUseCase:
    """Orchestrates strategy selection → fetch → identity rewrite → hints.

    Parameters
    ----------
    tree_source:
        Adapter that lists and downloads trees over the GitHub API.
    git:
        Adapter that checks and runs the git binary.
    concurrency:
        Maximum parallel downloads for the API method.
    remote_base:
        Host used to build clone URLs for the git method.
    working_dir:
        Base for relative and default destinations (defaults to the CWD).
    """

    def __init__(
        self,
        tree_source: TreeSource,
        git: VersionControl,
        concurrency: int = 8,
        remote_base: str = "https://github.com",
        working_dir: Path | None = None,
    ) -> None:
        self._trees = tree_source
        self._git = git
        self._sparse = SparseRetriever(git, remote_base=remote_base)
        self._concurrency = concurrency
        self._working_dir = working_dir

    # ── Public entry points ─────────────────────────────────────────────

    async def execute(
        self, request: RetrievalRequest, context: RetrievalContext | None = None
    ) -> RetrievalOutcome:
        """Fetch one sample according to *request* and return what happened."""
        ctx = context or RetrievalContext()

        # 1. Validate every input before touching disk, network or git
        mode = parse_mode(request.mode)
        requested = parse_method(request.method)
        selector = SampleSelector.from_string(request.sample)
        coordinate = _coordinate(request)
        rename = (request.rename or "").strip() or None
        new_id = resolve_solution_id(request.new_id)
        dest = self._resolve_destination(request.destination, mode, coordinate, selector)

        # 2. Destination conflicts are reported before any subprocess or request
        _check_destination(dest, request.overwrite)
        ctx.raise_if_cancelled()

        # 3. Pick the strategy; an explicit api request never checks for git
        git_available = False
        if requested is not RetrievalMethod.API:
            git_available = await self._git.is_available()
        chosen = select_method(requested, git_available, mode)
        logger.info(
            "Retrieving %s from %s (method=%s → %s, mode=%s, git_available=%s)",
            selector.repo_path,
            coordinate,
            requested.value,
            chosen.value,
            mode.value,
            git_available,
        )
        if chosen is RetrievalMethod.GIT:
            await self._git.ensure_adequate()

        if request.overwrite:
            await asyncio.to_thread(_clear_destination, dest)

        # 4. Fetch
        ctx.phase(f"Preparing to fetch (method={chosen.value})…")
        files_downloaded: int | None = None
        repo_root: Path | None = None
        if chosen is RetrievalMethod.API:
            ctx.phase("Downloading files via GitHub API…")
            dest.mkdir(parents=True, exist_ok=True)
            files_downloaded = await self._trees.download_subtree(
                coordinate, selector, dest, self._concurrency, ctx
            )
            project_path = dest
        elif mode is RetrievalMode.EXTRACT:
            ctx.phase("Performing sparse git extract…")
            project_path = await self._sparse.extract(coordinate, selector, dest, ctx)
        else:
            ctx.phase("Performing sparse git clone (repo mode)…")
            dest.mkdir(parents=True, exist_ok=True)
            project_path = await self._sparse.clone_into(coordinate, selector, dest, ctx)
            repo_root = dest

        # 5. Identity rewrite
        identity: IdentityChange | None = None
        if rename or new_id:
            ctx.phase("Post-processing project files…")
            identity = await asyncio.to_thread(
                rewrite_identity, project_path, rename=rename, new_id=new_id
            )

        logger.info("Retrieved %s into %s", selector.repo_path, project_path)
        return RetrievalOutcome(
            method=chosen,
            mode=mode,
            destination=dest,
            project_path=project_path,
            sample_path=selector.repo_path,
            repo_root=repo_root,
            files_downloaded=files_downloaded,
            identity=identity,
            next_steps=build_next_steps(project_path, repo_root),
        )

    def rewrite(
        self,
        project_dir: str | Path,
        rename: str | None = None,
        new_id: str | bool | None = None,
    ) -> IdentityChange:
        """Rename and/or re-identify a previously downloaded project."""
        resolved_id = resolve_solution_id(new_id)
        path = self._base_dir() / Path(project_dir).expanduser()
        return rewrite_identity(path.resolve(), rename=rename, new_id=resolved_id)

    # ── Destination handling ────────────────────────────────────────────

    def _base_dir(self) -> Path:
        return self._working_dir or Path.cwd()

    def _resolve_destination(
        self,
        destination: str | None,
        mode: RetrievalMode,
        coordinate: RepositoryCoordinate,
        selector: SampleSelector,
    ) -> Path:
        """Explicit destination, else ``./<sample>`` or ``./<repo>-<sample>``."""
        if destination:
            raw = Path(destination).expanduser()
        elif mode is RetrievalMode.EXTRACT:
            raw = Path(selector.folder)
        else:
            raw = Path(f"{coordinate.repo}-{selector.folder}".replace("/", "-"))
        return (self._base_dir() / raw).resolve()


def _coordinate(request: RetrievalRequest) -> RepositoryCoordinate:
    for label, value in (("owner", request.owner), ("repo", request.repo), ("ref", request.ref)):
        if not value or not value.strip():
            raise ConfigurationError(f"Repository {label} must not be empty.")
    return RepositoryCoordinate(
        owner=request.owner.strip(), repo=request.repo.strip(), ref=request.ref.strip()
    )


def _check_destination(dest: Path, overwrite: bool) -> None:
    if overwrite or not dest.exists():
        return
    if not dest.is_dir():
        raise DestinationConflictError(
            f"Destination exists and is not a directory: {dest}",
            "Choose another destination.",
        )
    if any(dest.iterdir()):
        raise DestinationConflictError(
            f"Destination exists and is not empty: {dest}",
            "Use overwrite (--force) or choose another destination.",
        )


def _clear_destination(dest: Path) -> None:
    """Delete *dest* ahead of an overwrite."""
    if not dest.exists() and not dest.is_symlink():
        return
    logger.info("Removing existing destination %s", dest)
    try:
        if dest.is_dir() and not dest.is_symlink():
            shutil.rmtree(dest)
        else:
            dest.unlink()
    except OSError as exc:
        if exc.errno in _BUSY_ERRNOS or getattr(exc, "winerror", None) in _BUSY_WINERRORS:
            raise DestinationBusyError(
                f"Could not remove {dest}: it is in use or locked ({exc.strerror}).",
                "Close any editor, terminal or process using it and try again, "
                "or choose another destination.",
            ) from exc
        raise
