"""Tests for the GitHub tree client, driven through ``httpx.MockTransport``."""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path

import httpx
import pytest

from sample_fetcher.domain.context import CancellationSignal, RetrievalContext
from sample_fetcher.domain.exceptions import (
    ConfigurationError,
    DownloadError,
    EmptySampleError,
    RateLimitedError,
    RemoteApiError,
    RetrievalCancelledError,
    SampleNotFoundError,
    TruncatedListingError,
)
from sample_fetcher.domain.value_objects import RepositoryCoordinate, SampleSelector
from sample_fetcher.infrastructure import github_tree_client
from sample_fetcher.infrastructure.github_tree_client import GitHubTreeClient

API = "https://api.github.test"
RAW = "https://raw.github.test"
COORD = RepositoryCoordinate("pnp", "sp-dev-fx-webparts", "main")
SELECTOR = SampleSelector.from_string("react-hello")
TREES = "/repos/pnp/sp-dev-fx-webparts/git/trees"


def _blob(path: str) -> dict:
    return {"path": path, "type": "blob", "sha": f"blob-{path}"}


class FakeGitHub:
    """In-memory GitHub: tree listings by sha plus raw file bodies."""

    def __init__(self, sample_files: dict[str, bytes] | None = None) -> None:
        if sample_files is None:
            sample_files = {
                "package.json": b'{"name": "react-hello"}',
                "src/index.ts": b"export {};\n",
                "README.md": b"# react-hello\n",
            }
        self.sample_files = sample_files
        self.trees: dict[str, dict] = {
            "main": {
                "tree": [
                    {"path": "README.md", "type": "blob", "sha": "root-readme"},
                    {"path": "samples", "type": "tree", "sha": "samples-sha"},
                ]
            },
            "samples-sha": {
                "tree": [
                    {"path": "react-other", "type": "tree", "sha": "other-sha"},
                    {"path": "react-hello", "type": "tree", "sha": "hello-sha"},
                ]
            },
            "hello-sha": {
                "tree": [{"path": "src", "type": "tree", "sha": "src-sha"}]
                + [_blob(p) for p in sample_files],
                "truncated": False,
            },
        }
        self.raw_overrides: dict[str, httpx.Response] = {}
        self.api_response: httpx.Response | None = None
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url.startswith(API):
            if self.api_response is not None:
                return self.api_response
            sha = request.url.path.rsplit("/", 1)[-1]
            if sha not in self.trees:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json=self.trees[sha])

        prefix = "/pnp/sp-dev-fx-webparts/main/samples/react-hello/"
        rel = request.url.path[len(prefix):]
        if rel in self.raw_overrides:
            return self.raw_overrides[rel]
        if request.url.path.startswith(prefix) and rel in self.sample_files:
            return httpx.Response(200, content=self.sample_files[rel])
        return httpx.Response(404, text="404: Not Found")

    @property
    def api_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url).startswith(API)]

    @property
    def raw_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url).startswith(RAW)]


@pytest.fixture()
def github() -> FakeGitHub:
    return FakeGitHub()


def _client(handler) -> GitHubTreeClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GitHubTreeClient(http, api_base=API, raw_base=RAW, user_agent="tests/1.0")


class TestFetchTree:
    async def test_lists_entries(self, github: FakeGitHub):
        listing = await _client(github.handler).fetch_tree(COORD, "main")
        assert [e.path for e in listing.entries] == ["README.md", "samples"]
        assert listing.truncated is False

    async def test_skips_submodules(self, github: FakeGitHub):
        github.trees["main"]["tree"].append({"path": "vendor", "type": "commit", "sha": "c"})
        listing = await _client(github.handler).fetch_tree(COORD, "main")
        assert "vendor" not in [e.path for e in listing.entries]

    async def test_sends_user_agent_and_accept(self, github: FakeGitHub):
        await _client(github.handler).fetch_tree(COORD, "main")
        request = github.requests[0]
        assert request.headers["User-Agent"] == "tests/1.0"
        assert "github" in request.headers["Accept"]

    async def test_rate_limited(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                403,
                headers={"x-ratelimit-remaining": "0", "x-ratelimit-reset": "1700000000"},
                json={"message": "API rate limit exceeded"},
            )

        with pytest.raises(RateLimitedError) as exc_info:
            await _client(handler).fetch_tree(COORD, "main")
        assert "rate limit" in exc_info.value.message
        assert "2023-11-14" in exc_info.value.message
        assert exc_info.value.status_code == 403

    async def test_forbidden_with_quota_left_is_not_rate_limited(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                403, headers={"x-ratelimit-remaining": "12"}, json={"message": "Forbidden"}
            )

        with pytest.raises(RemoteApiError) as exc_info:
            await _client(handler).fetch_tree(COORD, "main")
        assert not isinstance(exc_info.value, RateLimitedError)

    async def test_server_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="oops")

        with pytest.raises(RemoteApiError) as exc_info:
            await _client(handler).fetch_tree(COORD, "main")
        assert not isinstance(exc_info.value, RateLimitedError)
        assert exc_info.value.status_code == 500

    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RemoteApiError):
            await _client(handler).fetch_tree(COORD, "main")


class TestDownloadSubtree:
    async def test_downloads_every_file(self, github: FakeGitHub, tmp_path: Path):
        progress: list[tuple[int, int, str]] = []
        ctx = RetrievalContext(on_progress=lambda d, t, p: progress.append((d, t, p)))

        count = await _client(github.handler).download_subtree(
            COORD, SELECTOR, tmp_path / "out", context=ctx
        )

        assert count == 3
        assert (tmp_path / "out" / "src" / "index.ts").read_bytes() == b"export {};\n"
        assert (tmp_path / "out" / "package.json").exists()
        assert [d for d, _, _ in progress] == [1, 2, 3]
        assert {t for _, t, _ in progress} == {3}
        assert {p for _, _, p in progress} == {
            "samples/react-hello/package.json",
            "samples/react-hello/src/index.ts",
            "samples/react-hello/README.md",
        }

    async def test_walk_requests_recursive_only_for_sample(
        self, github: FakeGitHub, tmp_path: Path
    ):
        await _client(github.handler).download_subtree(COORD, SELECTOR, tmp_path)
        api = github.api_requests
        assert [r.url.path for r in api] == [
            f"{TREES}/main",
            f"{TREES}/samples-sha",
            f"{TREES}/hello-sha",
        ]
        assert [r.url.params.get("recursive") for r in api] == [None, None, "1"]

    async def test_missing_samples_dir(self, github: FakeGitHub, tmp_path: Path):
        github.trees["main"] = {"tree": [_blob("README.md")]}
        with pytest.raises(SampleNotFoundError):
            await _client(github.handler).download_subtree(COORD, SELECTOR, tmp_path)

    async def test_missing_sample_folder(self, github: FakeGitHub, tmp_path: Path):
        selector = SampleSelector.from_string("react-missing")
        with pytest.raises(SampleNotFoundError, match="react-missing"):
            await _client(github.handler).download_subtree(COORD, selector, tmp_path)
        assert github.raw_requests == []

    async def test_truncated_listing(self, github: FakeGitHub, tmp_path: Path):
        github.trees["hello-sha"]["truncated"] = True
        with pytest.raises(TruncatedListingError) as exc_info:
            await _client(github.handler).download_subtree(COORD, SELECTOR, tmp_path)
        assert "git" in exc_info.value.remedy
        assert github.raw_requests == []

    async def test_empty_sample(self, github: FakeGitHub, tmp_path: Path):
        github.trees["hello-sha"] = {
            "tree": [{"path": "src", "type": "tree", "sha": "src-sha"}],
            "truncated": False,
        }
        with pytest.raises(EmptySampleError):
            await _client(github.handler).download_subtree(COORD, SELECTOR, tmp_path)

    async def test_raw_404(self, github: FakeGitHub, tmp_path: Path):
        github.raw_overrides["README.md"] = httpx.Response(404, text="missing")
        with pytest.raises(DownloadError) as exc_info:
            await _client(github.handler).download_subtree(COORD, SELECTOR, tmp_path)
        assert exc_info.value.status_code == 404
        assert exc_info.value.path == "samples/react-hello/README.md"

    async def test_path_outside_destination_is_refused(
        self, github: FakeGitHub, tmp_path: Path
    ):
        github.trees["hello-sha"]["tree"].append(_blob("../escape.txt"))
        with pytest.raises(DownloadError, match="outside"):
            await _client(github.handler).download_subtree(
                COORD, SELECTOR, tmp_path / "out"
            )
        assert not (tmp_path / "escape.txt").exists()

    async def test_files_are_written_off_the_event_loop(
        self, github: FakeGitHub, tmp_path: Path, monkeypatch
    ):
        loop_thread = threading.get_ident()
        writer_threads: list[int] = []
        real_write = github_tree_client._write_file

        def _write(path, content):
            writer_threads.append(threading.get_ident())
            real_write(path, content)

        monkeypatch.setattr(github_tree_client, "_write_file", _write)

        await _client(github.handler).download_subtree(COORD, SELECTOR, tmp_path / "out")

        assert len(writer_threads) == 3
        assert loop_thread not in writer_threads
        assert (tmp_path / "out" / "src" / "index.ts").is_file()

    async def test_invalid_concurrency(self, github: FakeGitHub, tmp_path: Path):
        with pytest.raises(ConfigurationError):
            await _client(github.handler).download_subtree(
                COORD, SELECTOR, tmp_path, concurrency=0
            )
        assert github.requests == []

    async def test_concurrency_bound(self, tmp_path: Path):
        files = {f"f{i}.txt": b"x" for i in range(8)}
        github = FakeGitHub(files)
        in_flight = 0
        peak = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal in_flight, peak
            if str(request.url).startswith(RAW):
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
            return github.handler(request)

        count = await _client(handler).download_subtree(
            COORD, SELECTOR, tmp_path, concurrency=2
        )
        assert count == 8
        assert 1 <= peak <= 2


class TestCancellation:
    async def test_pre_cancelled_makes_no_requests(self, github: FakeGitHub, tmp_path: Path):
        ctx = RetrievalContext()
        ctx.cancel.cancel()
        with pytest.raises(RetrievalCancelledError):
            await _client(github.handler).download_subtree(
                COORD, SELECTOR, tmp_path, context=ctx
            )
        assert github.requests == []

    async def test_failure_cancels_siblings(self, github: FakeGitHub, tmp_path: Path):
        cancelled: list[str] = []
        never = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path.endswith("/README.md"):
                return httpx.Response(404, text="missing")
            if str(request.url).startswith(RAW):
                try:
                    await never.wait()
                except asyncio.CancelledError:
                    cancelled.append(path)
                    raise
            return github.handler(request)

        with pytest.raises(DownloadError):
            await asyncio.wait_for(
                _client(handler).download_subtree(COORD, SELECTOR, tmp_path),
                timeout=5,
            )
        assert cancelled
        assert not any(p.endswith("/README.md") for p in cancelled)

    async def test_cancel_mid_download(self, github: FakeGitHub, tmp_path: Path):
        signal = CancellationSignal()
        ctx = RetrievalContext(cancel=signal)
        never = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url).startswith(RAW):
                signal.cancel("stopped by user")
                await never.wait()
            return github.handler(request)

        with pytest.raises(RetrievalCancelledError, match="stopped by user"):
            await asyncio.wait_for(
                _client(handler).download_subtree(
                    COORD, SELECTOR, tmp_path, context=ctx
                ),
                timeout=5,
            )
