"""Domain entities — pure data structures with no external dependencies."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class RetrievalMode(str, Enum):
    """What the destination should look like once retrieval finishes."""

    EXTRACT = "extract"  # plain directory, no .git
    REPO = "repo"  # sparse working copy, .git kept


class RetrievalMethod(str, Enum):
    """How the sample is fetched.  ``AUTO`` resolves to GIT or API."""

    AUTO = "auto"
    GIT = "git"
    API = "api"


class EntryKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True, slots=True)
class TreeEntry:
    """A single node from the GitHub tree API."""

    path: str
    kind: EntryKind
    sha: str

    @classmethod
    def from_api(cls, item: dict) -> TreeEntry:
        kind = EntryKind.DIRECTORY if item.get("type") == "tree" else EntryKind.FILE
        return cls(path=item["path"], kind=kind, sha=item.get("sha", ""))

    @property
    def is_file(self) -> bool:
        return self.kind is EntryKind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


@dataclass(frozen=True, slots=True)
class TreeListing:
    """One tree lookup: its entries plus the server's truncation flag."""

    entries: list[TreeEntry]
    truncated: bool = False

    def find_directory(self, name: str) -> TreeEntry | None:
        """Return the directory entry whose path equals *name* exactly."""
        for entry in self.entries:
            if entry.is_directory and entry.path == name:
                return entry
        return None

    @property
    def files(self) -> list[TreeEntry]:
        return [e for e in self.entries if e.is_file]


@dataclass(frozen=True, slots=True, order=True)
class ToolVersion:
    """A ``major.minor.patch`` triple; ordering is lexicographic."""

    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def version_gte(version: ToolVersion, minimum: ToolVersion) -> bool:
    """Return *True* when *version* is at least *minimum*."""
    if version.major != minimum.major:
        return version.major > minimum.major
    if version.minor != minimum.minor:
        return version.minor > minimum.minor
    return version.patch >= minimum.patch


@dataclass(frozen=True, slots=True)
class RetrievalRequest:
    """Everything the orchestrator needs for one invocation.

    ``mode`` and ``method`` are raw flag values and are validated by the
    use case.  ``new_id`` is ``True`` when a fresh id should be generated.
    """

    owner: str
    repo: str
    ref: str
    sample: str
    destination: str | None = None
    mode: str | None = None
    method: str | None = None
    overwrite: bool = False
    rename: str | None = None
    new_id: str | bool | None = None


@dataclass(frozen=True, slots=True)
class IdentityChange:
    """What a project-identity rewrite actually did."""

    previous_name: str | None
    new_name: str | None
    new_id: str | None
    files_written: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ServeCommand:
    cmd: str
    args: tuple[str, ...] = ()

    def __str__(self) -> str:
        return " ".join((self.cmd, *self.args))


@dataclass(frozen=True, slots=True)
class NextSteps:
    """Hints handed to the front-end for display after a retrieval."""

    commands: list[str]
    node_version: str | None = None
    contribute: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class RetrievalOutcome:
    """The final structured output returned to the caller."""

    method: RetrievalMethod
    mode: RetrievalMode
    destination: Path
    project_path: Path
    sample_path: str
    repo_root: Path | None = None
    files_downloaded: int | None = None
    identity: IdentityChange | None = None
    next_steps: NextSteps | None = None
