"""Value objects — self-validating domain primitives."""

from __future__ import annotations

from dataclasses import dataclass

from sample_fetcher.domain.exceptions import ConfigurationError

SAMPLES_DIR = "samples"
_SAMPLES_PREFIX = f"{SAMPLES_DIR}/"
_TRIM = " \t\r\n/"


@dataclass(frozen=True, slots=True)
class RepositoryCoordinate:
    """Identifies the remote source: ``owner/repo`` at a branch, tag or SHA."""

    owner: str
    repo: str
    ref: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def clone_url(self, base: str = "https://github.com") -> str:
        return f"{base.rstrip('/')}/{self.owner}/{self.repo}.git"

    def __str__(self) -> str:
        return f"{self.full_name}@{self.ref}"


def normalize_sample(raw: str) -> str:
    """Convert backslashes, trim, and strip one leading ``samples/`` segment."""
    # At most one prefix is stripped, so "samples/samples/x" -> "samples/x" and a
    # second pass strips again. A sample folder may itself be named "samples".
    value = raw.replace("\\", "/").strip().lstrip("/")
    if value.startswith(_SAMPLES_PREFIX):
        value = value[len(_SAMPLES_PREFIX) :]
    return value.strip(_TRIM)


@dataclass(frozen=True, slots=True)
class SampleSelector:
    """Validated sample folder name, relative to the ``samples/`` directory.

    Accepts either ``react-hello-world`` or ``samples/react-hello-world``
    (with either slash style).
    """

    folder: str

    @classmethod
    def from_string(cls, raw: str) -> SampleSelector:
        """Parse and validate a raw sample argument."""
        folder = normalize_sample(raw)
        if not folder:
            raise ConfigurationError(
                f"Invalid sample: '{raw}'. "
                "Expected a folder name such as react-hello-world."
            )
        return cls(folder=folder)

    @property
    def repo_path(self) -> str:
        """Path of the sample relative to the repository root."""
        return f"{SAMPLES_DIR}/{self.folder}"

    def __str__(self) -> str:
        return self.folder
