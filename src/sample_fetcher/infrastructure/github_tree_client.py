"""GitHub REST tree client — implements the TreeSource port.

Lists trees through the anonymous REST API and downloads file bytes from
raw.githubusercontent.com, so only the requested sample ever crosses the wire.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import quote

import httpx

from sample_fetcher.domain.context import RetrievalContext
from sample_fetcher.domain.entities import TreeEntry, TreeListing
from sample_fetcher.domain.exceptions import (
    ConfigurationError,
    DownloadError,
    EmptySampleError,
    RateLimitedError,
    RemoteApiError,
    SampleNotFoundError,
    TruncatedListingError,
)
from sample_fetcher.domain.value_objects import (
    SAMPLES_DIR,
    RepositoryCoordinate,
    SampleSelector,
)

logger = logging.getLogger(__name__)

_GITHUB_API = "https://api.github.com"
_RAW_BASE = "https://raw.githubusercontent.com"
DEFAULT_CONCURRENCY = 8


class GitHubTreeClient:
    """Concrete ``TreeSource`` backed by the GitHub v3 REST API (no token)."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_base: str = _GITHUB_API,
        raw_base: str = _RAW_BASE,
        user_agent: str = "sample-fetcher/1.0",
    ) -> None:
        self._client = client
        self._api_base = api_base.rstrip("/")
        self._raw_base = raw_base.rstrip("/")
        self._user_agent = user_agent
        self._api_headers: dict[str, str] = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": user_agent,
        }

    async def fetch_tree(
        self, coordinate: RepositoryCoordinate, tree_ish: str, recursive: bool = False
    ) -> TreeListing:
        """GET /repos/{owner}/{repo}/git/trees/{tree_ish}[?recursive=1] → TreeListing."""
        data = await self._api_get(
            f"/repos/{coordinate.owner}/{coordinate.repo}/git/trees/{quote(tree_ish, safe='')}",
            params={"recursive": "1"} if recursive else None,
        )
        if data.get("message"):
            raise RemoteApiError(f"GitHub API error: {data['message']}")

        return TreeListing(
            # submodules ("commit") are neither files nor walkable trees
            entries=[
                TreeEntry.from_api(item)
                for item in data.get("tree", [])
                if item.get("type") in ("blob", "tree")
            ],
            truncated=bool(data.get("truncated", False)),
        )

    async def download_subtree(
        self,
        coordinate: RepositoryCoordinate,
        selector: SampleSelector,
        dest_dir: Path,
        concurrency: int = DEFAULT_CONCURRENCY,
        context: RetrievalContext | None = None,
    ) -> int:
        """Download every file under ``samples/<folder>`` into *dest_dir*.

        Walks root → ``samples`` → sample folder (recursive), then fetches the
        file entries in parallel.  The first failed download cancels the
        others.  Returns the number of files written.
        """
        if concurrency < 1:
            raise ConfigurationError(f"Concurrency must be at least 1, got {concurrency}.")
        ctx = context or RetrievalContext()

        ctx.raise_if_cancelled()
        root = await self.fetch_tree(coordinate, coordinate.ref)
        samples = root.find_directory(SAMPLES_DIR)
        if samples is None:
            raise SampleNotFoundError(f"Could not find /{SAMPLES_DIR} at {coordinate}.")

        ctx.raise_if_cancelled()
        listing = await self.fetch_tree(coordinate, samples.sha)
        sample = listing.find_directory(selector.folder)
        if sample is None:
            raise SampleNotFoundError(
                f"Sample folder not found: {selector.repo_path} at {coordinate.ref}."
            )

        ctx.raise_if_cancelled()
        subtree = await self.fetch_tree(coordinate, sample.sha, recursive=True)
        if subtree.truncated:
            raise TruncatedListingError(
                f"Tree listing truncated for {selector.repo_path}.",
                "Use the git method instead.",
            )

        files = subtree.files
        if not files:
            raise EmptySampleError(f"No files found in {selector.repo_path}.")

        logger.info(
            "Downloading %d files from %s/%s", len(files), coordinate, selector.repo_path
        )
        dest_dir.mkdir(parents=True, exist_ok=True)
        await self._download_all(coordinate, selector, files, dest_dir, concurrency, ctx)
        return len(files)

    # ── Concurrent download ─────────────────────────────────────────────

    async def _download_all(
        self,
        coordinate: RepositoryCoordinate,
        selector: SampleSelector,
        files: list[TreeEntry],
        dest_dir: Path,
        concurrency: int,
        ctx: RetrievalContext,
    ) -> None:
        sem = asyncio.Semaphore(concurrency)
        total = len(files)
        done = 0
        root = dest_dir.resolve()

        async def _download_one(entry: TreeEntry) -> None:
            nonlocal done
            async with sem:
                ctx.raise_if_cancelled()
                repo_path = f"{selector.repo_path}/{entry.path}"
                out_path = (root / entry.path).resolve()
                if not out_path.is_relative_to(root):
                    raise DownloadError(
                        f"Refusing to write outside the destination: {entry.path}",
                        path=repo_path,
                    )

                content = await self._fetch_raw(coordinate, repo_path)
                await asyncio.to_thread(_write_file, out_path, content)

                done += 1
                logger.debug("Downloaded %s (%d/%d)", repo_path, done, total)
                ctx.progress(done, total, repo_path)

        tasks = [asyncio.ensure_future(_download_one(entry)) for entry in files]
        watcher = asyncio.ensure_future(ctx.cancel.wait())
        try:
            remaining = set(tasks)
            while remaining:
                finished, _ = await asyncio.wait(
                    remaining | {watcher}, return_when=asyncio.FIRST_COMPLETED
                )
                if watcher in finished:
                    ctx.raise_if_cancelled()
                for task in finished - {watcher}:
                    remaining.discard(task)
                    task.result()
        finally:
            watcher.cancel()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _fetch_raw(self, coordinate: RepositoryCoordinate, repo_path: str) -> bytes:
        """Fetch raw file bytes via raw.githubusercontent.com."""
        raw_url = (
            f"{self._raw_base}/{coordinate.owner}/{coordinate.repo}/"
            f"{quote(coordinate.ref, safe='')}/{quote(repo_path)}"
        )
        try:
            resp = await self._client.get(raw_url, headers={"User-Agent": self._user_agent})
        except httpx.HTTPError as exc:
            raise DownloadError(
                f"Network error fetching {repo_path}: {exc}", path=repo_path
            ) from exc

        if resp.status_code != 200:
            raise DownloadError(
                f"HTTP {resp.status_code} {resp.reason_phrase} for {repo_path}",
                status_code=resp.status_code,
                path=repo_path,
            )
        return resp.content

    # ── API plumbing ────────────────────────────────────────────────────

    async def _api_get(
        self,
        endpoint: str,
        params: dict[str, str] | None = None,
    ) -> dict:
        """Perform a GitHub API GET request with error translation."""
        url = f"{self._api_base}{endpoint}"
        try:
            resp = await self._client.get(url, headers=self._api_headers, params=params)
        except httpx.HTTPError as exc:
            raise RemoteApiError(f"Network error fetching {url}: {exc}") from exc

        if resp.status_code == 403 and resp.headers.get("x-ratelimit-remaining") == "0":
            raise RateLimitedError(
                "GitHub anonymous rate limit hit (60/hr per IP)"
                f"{_reset_suffix(resp.headers.get('x-ratelimit-reset', ''))}.",
                "Try again later, or install git and use the git method.",
                status_code=403,
            )

        try:
            data = resp.json()
        except ValueError:
            data = None

        if not resp.is_success:
            message = data.get("message") if isinstance(data, dict) else None
            raise RemoteApiError(
                f"GitHub API error: {message or f'{resp.status_code} {resp.reason_phrase}'}",
                status_code=resp.status_code,
            )

        if not isinstance(data, dict):
            raise RemoteApiError(f"GitHub API returned an unexpected body for {url}")
        return data


def _write_file(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


def _reset_suffix(reset_raw: str) -> str:
    if not reset_raw:
        return ""
    try:
        reset = datetime.fromtimestamp(int(reset_raw), tz=timezone.utc)
    except (ValueError, OSError):
        return ""
    return f"; resets at {reset.strftime('%Y-%m-%d %H:%M:%S UTC')}"
