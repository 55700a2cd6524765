"""Sparse retriever — materialize one sample folder with git.

The clone carries no blobs and no checkout; cone-mode sparse checkout then
limits the working tree to ``samples/<folder>`` so only that folder's blobs
are ever fetched.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from pathlib import Path

from sample_fetcher.domain.context import RetrievalContext
from sample_fetcher.domain.exceptions import SampleNotFoundError
from sample_fetcher.domain.ports.version_control import VersionControl
from sample_fetcher.domain.value_objects import RepositoryCoordinate, SampleSelector

logger = logging.getLogger(__name__)

_TMP_PREFIX = "spfx-sample-"


class SparseRetriever:
    """Drives git through partial clone → sparse checkout → detached checkout.

    Parameters
    ----------
    git:
        Adapter that runs the git binary.
    remote_base:
        Host the clone URL is built from.
    """

    def __init__(self, git: VersionControl, remote_base: str = "https://github.com") -> None:
        self._git = git
        self._remote_base = remote_base

    async def clone_into(
        self,
        coordinate: RepositoryCoordinate,
        selector: SampleSelector,
        repo_dir: Path,
        context: RetrievalContext | None = None,
    ) -> Path:
        """Sparse-clone into *repo_dir* and return the sample directory.

        ``.git`` is kept so the result can be used for contributions.
        """
        ctx = context or RetrievalContext()
        cancel = ctx.cancel
        sparse_path = selector.repo_path
        repo = str(repo_dir)

        ctx.phase(f"Cloning (partial) {coordinate.full_name}…")
        await self._git.run(
            [
                "clone",
                "--depth=1",
                "--filter=blob:none",
                "--no-checkout",
                coordinate.clone_url(self._remote_base),
                repo,
            ],
            cancel=cancel,
        )

        ctx.phase("Enabling sparse checkout…")
        await self._git.run(["-C", repo, "sparse-checkout", "init", "--cone"], cancel=cancel)

        ctx.phase(f"Selecting {sparse_path}…")
        await self._git.run(["-C", repo, "sparse-checkout", "set", sparse_path], cancel=cancel)

        ctx.phase(f"Fetching {coordinate.ref}…")
        await self._git.run(
            ["-C", repo, "fetch", "--depth=1", "--filter=blob:none", "origin", coordinate.ref],
            cancel=cancel,
        )

        ctx.phase(f"Checking out sample from {coordinate.ref}…")
        await self._git.run(["-C", repo, "checkout", "--detach", "FETCH_HEAD"], cancel=cancel)

        sample_dir = repo_dir / "samples" / selector.folder
        if not _is_non_empty_dir(sample_dir):
            raise SampleNotFoundError(
                f"Sample not found or empty: {coordinate} → {sparse_path}."
            )
        logger.info("Sparse checkout of %s ready at %s", sparse_path, repo_dir)
        return sample_dir

    async def extract(
        self,
        coordinate: RepositoryCoordinate,
        selector: SampleSelector,
        dest_dir: Path,
        context: RetrievalContext | None = None,
    ) -> Path:
        """Sparse-clone into a temporary root and copy the sample to *dest_dir*.

        The temporary root is removed whether or not the clone succeeds.
        """
        ctx = context or RetrievalContext()
        tmp_root = Path(tempfile.mkdtemp(prefix=_TMP_PREFIX))
        try:
            sample_dir = await self.clone_into(coordinate, selector, tmp_root / "repo", ctx)
            ctx.raise_if_cancelled()
            ctx.phase(f"Copying sample to {dest_dir}…")
            await asyncio.to_thread(shutil.copytree, sample_dir, dest_dir, dirs_exist_ok=True)
        finally:
            await asyncio.to_thread(_remove_tree, tmp_root)
        return dest_dir


def _is_non_empty_dir(path: Path) -> bool:
    return path.is_dir() and any(path.iterdir())


def _remove_tree(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except OSError as exc:
        logger.warning("Could not remove temporary directory %s: %s", path, exc)
