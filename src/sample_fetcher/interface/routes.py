"""API routes — thin controllers that delegate to the use case."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from sample_fetcher.domain.entities import RetrievalRequest
from sample_fetcher.infrastructure.config import Settings
from sample_fetcher.interface.dependencies import get_app_settings, get_use_case
from sample_fetcher.interface.schemas import (
    ErrorResponse,
    IdentityRequest,
    IdentityResponse,
    RetrieveRequest,
    RetrieveResponse,
)
from sample_fetcher.services.retrieve_sample import RetrieveSampleUseCase

router = APIRouter()


@router.post(
    "/samples/retrieve",
    response_model=RetrieveResponse,
    responses={
        404: {"description": "Sample or samples directory not found", "model": ErrorResponse},
        409: {"description": "Destination not empty or locked", "model": ErrorResponse},
        422: {"description": "Invalid flags, id, or an empty / truncated sample", "model": ErrorResponse},
        429: {"description": "GitHub API rate limit exceeded", "model": ErrorResponse},
        502: {"description": "GitHub or git failure", "model": ErrorResponse},
        503: {"description": "git missing or too old", "model": ErrorResponse},
    },
)
async def retrieve_sample(
    body: RetrieveRequest,
    use_case: RetrieveSampleUseCase = Depends(get_use_case),
    settings: Settings = Depends(get_app_settings),
) -> RetrieveResponse:
    """Fetch one sample folder into a local destination."""
    outcome = await use_case.execute(
        RetrievalRequest(
            owner=body.owner or settings.default_owner,
            repo=body.repo or settings.default_repo,
            ref=body.ref or settings.default_ref,
            sample=body.sample,
            destination=body.destination,
            mode=body.mode,
            method=body.method,
            overwrite=body.overwrite,
            rename=body.rename,
            new_id=body.new_id,
        )
    )
    return RetrieveResponse.from_outcome(outcome)


@router.post(
    "/projects/identity",
    response_model=IdentityResponse,
    responses={
        422: {"description": "Project directory missing or invalid id", "model": ErrorResponse},
    },
)
def rewrite_identity(
    body: IdentityRequest,
    use_case: RetrieveSampleUseCase = Depends(get_use_case),
) -> IdentityResponse:
    """Rename and/or re-identify a previously downloaded project."""
    change = use_case.rewrite(body.project_dir, rename=body.rename, new_id=body.new_id)
    return IdentityResponse.from_change(change)
