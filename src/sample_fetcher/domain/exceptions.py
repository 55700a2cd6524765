"""Domain exception hierarchy.

Every failure is terminal for a single retrieval.  Each exception carries a
human-readable message and, where one exists, a suggested remedy.  The
interface layer maps these to HTTP status codes.
"""

from __future__ import annotations


class SampleFetcherError(Exception):
    """Base exception for the entire application."""

    def __init__(self, message: str, remedy: str | None = None) -> None:
        self.message = message
        self.remedy = remedy
        super().__init__(message)

    def __str__(self) -> str:
        if self.remedy:
            return f"{self.message} {self.remedy}"
        return self.message


# ── Input validation ────────────────────────────────────────────────────────


class ConfigurationError(SampleFetcherError):
    """Invalid flag value or an unsupported mode/method combination."""


class InvalidIdentifierError(SampleFetcherError):
    """A supplied solution id is not a GUID in canonical textual form."""


class DestinationConflictError(SampleFetcherError):
    """The destination exists, is not empty, and overwrite was not requested."""


# ── Version-control tool ────────────────────────────────────────────────────


class ToolNotFoundError(SampleFetcherError):
    """The git binary could not be invoked at all."""


class ToolTooOldError(SampleFetcherError):
    """git is installed but older than the cone-mode sparse-checkout minimum."""


class ToolInvocationError(SampleFetcherError):
    """A git subprocess exited with a nonzero status."""

    def __init__(
        self,
        message: str,
        remedy: str | None = None,
        *,
        command: list[str] | None = None,
        returncode: int | None = None,
        output: str = "",
    ) -> None:
        self.command = command or []
        self.returncode = returncode
        self.output = output
        super().__init__(message, remedy)


class DestinationBusyError(ToolInvocationError):
    """The destination could not be removed because it is in use or locked."""


# ── GitHub API errors ───────────────────────────────────────────────────────


class RemoteApiError(SampleFetcherError):
    """The tree-lookup API returned an unsuccessful response."""

    def __init__(
        self,
        message: str,
        remedy: str | None = None,
        *,
        status_code: int | None = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message, remedy)


class RateLimitedError(RemoteApiError):
    """Anonymous GitHub API rate limit exhausted (403 with remaining == 0)."""


class SampleNotFoundError(SampleFetcherError):
    """The samples directory or the requested sample folder does not exist."""


class TruncatedListingError(SampleFetcherError):
    """The recursive tree listing came back incomplete."""


class EmptySampleError(SampleFetcherError):
    """The sample folder exists but contains no files."""


class DownloadError(SampleFetcherError):
    """A raw-content download returned an unsuccessful response."""

    def __init__(
        self,
        message: str,
        remedy: str | None = None,
        *,
        status_code: int | None = None,
        path: str = "",
    ) -> None:
        self.status_code = status_code
        self.path = path
        super().__init__(message, remedy)


# ── Control flow ────────────────────────────────────────────────────────────


class RetrievalCancelledError(SampleFetcherError):
    """The caller cancelled the retrieval."""
