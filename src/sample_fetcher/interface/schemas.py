"""Pydantic request / response DTOs for the API boundary."""

from __future__ import annotations

from pydantic import BaseModel, field_validator

from sample_fetcher.domain.entities import IdentityChange, RetrievalOutcome


class RetrieveRequest(BaseModel):
    """Request body for ``POST /samples/retrieve``.

    ``owner``, ``repo`` and ``ref`` fall back to the configured defaults.
    ``new_id`` is a GUID, or ``true`` to generate one.
    """

    sample: str
    owner: str | None = None
    repo: str | None = None
    ref: str | None = None
    destination: str | None = None
    mode: str | None = None
    method: str | None = None
    overwrite: bool = False
    rename: str | None = None
    new_id: str | bool | None = None

    @field_validator("sample")
    @classmethod
    def _sample_not_blank(cls, v: str) -> str:
        if not v.strip():
            msg = "sample must not be empty."
            raise ValueError(msg)
        return v


class IdentityRequest(BaseModel):
    """Request body for ``POST /projects/identity``."""

    project_dir: str
    rename: str | None = None
    new_id: str | bool | None = None


class IdentityResponse(BaseModel):
    previous_name: str | None
    new_name: str | None
    new_id: str | None
    files_written: list[str]

    @classmethod
    def from_change(cls, change: IdentityChange) -> IdentityResponse:
        return cls(
            previous_name=change.previous_name,
            new_name=change.new_name,
            new_id=change.new_id,
            files_written=list(change.files_written),
        )


class NextStepsResponse(BaseModel):
    commands: list[str]
    node_version: str | None = None
    contribute: list[str] = []


class RetrieveResponse(BaseModel):
    """Successful response from ``POST /samples/retrieve``."""

    method: str
    mode: str
    destination: str
    project_path: str
    sample_path: str
    repo_root: str | None = None
    files_downloaded: int | None = None
    identity: IdentityResponse | None = None
    next_steps: NextStepsResponse | None = None

    @classmethod
    def from_outcome(cls, outcome: RetrievalOutcome) -> RetrieveResponse:
        steps = outcome.next_steps
        return cls(
            method=outcome.method.value,
            mode=outcome.mode.value,
            destination=str(outcome.destination),
            project_path=str(outcome.project_path),
            sample_path=outcome.sample_path,
            repo_root=str(outcome.repo_root) if outcome.repo_root else None,
            files_downloaded=outcome.files_downloaded,
            identity=IdentityResponse.from_change(outcome.identity) if outcome.identity else None,
            next_steps=(
                NextStepsResponse(
                    commands=steps.commands,
                    node_version=steps.node_version,
                    contribute=steps.contribute,
                )
                if steps
                else None
            ),
        )


class ErrorResponse(BaseModel):
    """Standard error envelope returned on all failure paths."""

    status: str = "error"
    message: str
