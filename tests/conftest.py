"""Shared pytest fixtures.

The fakes stand in for the two ports so that orchestration can be tested
without git or the network:

    def test_something(fake_git, fake_tree_source, tmp_path):
        use_case = RetrieveSampleUseCase(fake_tree_source, fake_git, working_dir=tmp_path)
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Sequence

import pytest

from sample_fetcher.domain.context import CancellationSignal, RetrievalContext
from sample_fetcher.domain.entities import ToolVersion, TreeListing
from sample_fetcher.domain.exceptions import ToolInvocationError, ToolNotFoundError
from sample_fetcher.domain.value_objects import RepositoryCoordinate, SampleSelector

SAMPLE_FILES: dict[str, str] = {
    "package.json": json.dumps({"name": "old-package-name"}, indent=2),
    "README.md": "# old-package-name\n",
    "src/index.ts": "export {};\n",
}


class FakeGit:
    """Records git invocations and fakes the on-disk effect of a sparse checkout."""

    def __init__(
        self,
        available: bool = True,
        version: ToolVersion | None = ToolVersion(2, 40, 0),
        files: dict[str, str] | None = None,
        fail_on: str | None = None,
        adequate_error: Exception | None = None,
    ) -> None:
        self.available = available
        self.version = version
        self.files = SAMPLE_FILES if files is None else files
        self.fail_on = fail_on
        self.adequate_error = adequate_error
        self.calls: list[list[str]] = []
        self.availability_checks = 0
        self.ensure_calls = 0
        self._sparse_path: str | None = None

    async def is_available(self) -> bool:
        self.availability_checks += 1
        return self.available

    async def ensure_adequate(self) -> ToolVersion | None:
        self.ensure_calls += 1
        if self.adequate_error is not None:
            raise self.adequate_error
        if not self.available:
            raise ToolNotFoundError("Git was not found on PATH.")
        return self.version

    async def run(
        self,
        args: Sequence[str],
        cwd: Path | None = None,
        cancel: CancellationSignal | None = None,
    ) -> str:
        if cancel is not None:
            cancel.raise_if_cancelled()
        args = list(args)
        self.calls.append(args)

        if self.fail_on and self.fail_on in args:
            raise ToolInvocationError(
                f"git {' '.join(args)} failed (exit 128).\nfatal: simulated",
                command=["git", *args],
                returncode=128,
                output="fatal: simulated",
            )

        if args[0] == "clone":
            Path(args[-1]).mkdir(parents=True, exist_ok=True)
            (Path(args[-1]) / ".git").mkdir(exist_ok=True)
        elif args[2:4] == ["sparse-checkout", "set"]:
            self._sparse_path = args[4]
        elif args[2:4] == ["checkout", "--detach"] and self._sparse_path:
            sample_dir = Path(args[1]) / self._sparse_path
            for rel, text in self.files.items():
                target = sample_dir / rel
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(text, encoding="utf-8")
        return ""

    @property
    def clone_dir(self) -> Path | None:
        for call in self.calls:
            if call[0] == "clone":
                return Path(call[-1])
        return None


class FakeTreeSource:
    """Writes canned files instead of talking to GitHub."""

    def __init__(
        self,
        files: dict[str, str] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.files = SAMPLE_FILES if files is None else files
        self.error = error
        self.calls: list[tuple[RepositoryCoordinate, SampleSelector, Path, int]] = []

    async def fetch_tree(
        self, coordinate: RepositoryCoordinate, tree_ish: str, recursive: bool = False
    ) -> TreeListing:
        raise AssertionError("fetch_tree should not be called by the orchestrator")

    async def download_subtree(
        self,
        coordinate: RepositoryCoordinate,
        selector: SampleSelector,
        dest_dir: Path,
        concurrency: int = 8,
        context: RetrievalContext | None = None,
    ) -> int:
        self.calls.append((coordinate, selector, dest_dir, concurrency))
        if self.error is not None:
            raise self.error
        total = len(self.files)
        for done, (rel, text) in enumerate(self.files.items(), start=1):
            target = dest_dir / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
            if context is not None:
                context.progress(done, total, f"{selector.repo_path}/{rel}")
        return total


@pytest.fixture()
def fake_git() -> FakeGit:
    return FakeGit()


@pytest.fixture()
def fake_tree_source() -> FakeTreeSource:
    return FakeTreeSource()


@pytest.fixture()
def fake_git_factory():
    """Build a FakeGit with custom behaviour."""
    return FakeGit


@pytest.fixture()
def fake_tree_source_factory():
    """Build a FakeTreeSource with custom files or an error."""
    return FakeTreeSource


OLD_ID = "11111111-1111-1111-1111-111111111111"


@pytest.fixture()
def spfx_project(tmp_path: Path) -> Path:
    """A minimal SPFx project named ``old-package-name``."""
    root = tmp_path / "project"
    (root / "config").mkdir(parents=True)
    (root / "package.json").write_text(
        json.dumps({"name": "old-package-name", "version": "0.0.1"}, indent=2),
        encoding="utf-8",
    )
    (root / ".yo-rc.json").write_text(
        json.dumps(
            {
                "@microsoft/generator-sharepoint": {
                    "libraryName": "old-package-name",
                    "solutionName": "old-package-name",
                    "libraryId": OLD_ID,
                }
            },
            indent=2,
        ),
        encoding="utf-8",
    )
    (root / "config" / "package-solution.json").write_text(
        json.dumps(
            {"solution": {"name": "old-package-name Solution", "id": OLD_ID}}, indent=2
        ),
        encoding="utf-8",
    )
    (root / "README.md").write_text(
        "This references old-package-name in docs", encoding="utf-8"
    )
    return root
