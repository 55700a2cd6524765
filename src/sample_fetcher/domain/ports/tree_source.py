"""Port: remote tree source — defined by the domain, implemented by infrastructure."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from sample_fetcher.domain.context import RetrievalContext
from sample_fetcher.domain.entities import TreeListing
from sample_fetcher.domain.value_objects import RepositoryCoordinate, SampleSelector


class TreeSource(Protocol):
    """Abstract contract for listing and downloading part of a remote repository."""

    async def fetch_tree(
        self, coordinate: RepositoryCoordinate, tree_ish: str, recursive: bool = False
    ) -> TreeListing:
        """Return the entries of one tree, optionally with all descendants."""
        ...

    async def download_subtree(
        self,
        coordinate: RepositoryCoordinate,
        selector: SampleSelector,
        dest_dir: Path,
        concurrency: int = 8,
        context: RetrievalContext | None = None,
    ) -> int:
        """Write every file of ``samples/<folder>`` under *dest_dir*; return the count."""
        ...
