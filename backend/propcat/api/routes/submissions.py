"""Submission endpoints: create/cancel for members, review for staff.

Creating a submission also returns advisory duplicate candidates for the
proposed name (scoped to its primary category, excluding the edit target).
That lookup fails open and never blocks creation.
"""

from __future__ import annotations

from typing import Any, Literal

import structlog
from fastapi import APIRouter, Body, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from propcat.api.deps import CurrentActor, Reviewer, SessionDep
from propcat.catalog import duplicates, moderation
from propcat.errors import StoreError
from propcat.models.contracts import (
    BulkReviewRequest,
    BulkReviewResponse,
    DuplicateCandidate,
    EditSubmissionRequest,
    ErrorResponse,
    NewSubmissionRequest,
    PendingCountResponse,
    ReviewRequest,
    ReviewResponse,
    SubmissionCreateResponse,
    SubmissionListResponse,
    SubmissionOut,
    parse_submission_request,
)

logger = structlog.get_logger()

router = APIRouter(tags=["submissions"])

_REVIEW_ERRORS = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


async def _advisory_duplicates(
    session: AsyncSession,
    request: NewSubmissionRequest | EditSubmissionRequest,
) -> list[DuplicateCandidate]:
    try:
        return await duplicates.find_candidates(
            session,
            request.payload.name,
            category_id=request.payload.primary_category_id,
            exclude_id=request.furniture_id,
        )
    except StoreError:
        logger.warning("duplicate_check_failed", name=request.payload.name[:100])
        return []


@router.post(
    "/submissions",
    status_code=201,
    response_model=SubmissionCreateResponse,
    responses=_REVIEW_ERRORS,
)
async def create_submission(
    actor: CurrentActor,
    session: SessionDep,
    body: dict[str, Any] = Body(...),
):
    """Propose a new item (type=new) or a correction (type=edit + furniture_id)."""
    request = parse_submission_request(body)
    submission = await moderation.create_submission(session, actor, request)
    return SubmissionCreateResponse(
        submission=submission,
        duplicates=await _advisory_duplicates(session, request),
    )


@router.get("/submissions", response_model=SubmissionListResponse)
async def list_submissions(
    actor: CurrentActor,
    session: SessionDep,
    status: Literal["pending", "approved", "rejected"] | None = None,
    submission_type: Literal["new", "edit"] | None = Query(None, alias="type"),
    user_id: int | None = None,
    page: int = 1,
    per_page: int | None = None,
):
    """Own submissions, or everyone's for reviewers (optionally by user_id)."""
    return await moderation.list_submissions(
        session,
        actor,
        status=status,
        submission_type=submission_type,
        user_id=user_id,
        page=page,
        per_page=per_page,
    )


@router.get("/submissions/pending-count", response_model=PendingCountResponse)
async def pending_count(actor: Reviewer, session: SessionDep):
    return PendingCountResponse(pending=await moderation.pending_count(session, actor))


@router.post("/submissions/bulk", response_model=BulkReviewResponse, responses=_REVIEW_ERRORS)
async def bulk_review(body: BulkReviewRequest, actor: Reviewer, session: SessionDep):
    return await moderation.bulk_review(session, actor, body.ids, body.action, body.notes)


@router.get("/submissions/{submission_id}", response_model=SubmissionOut, responses=_REVIEW_ERRORS)
async def get_submission(submission_id: int, actor: CurrentActor, session: SessionDep):
    return await moderation.get_submission(session, actor, submission_id)


@router.post("/submissions/{submission_id}/cancel", status_code=204, responses=_REVIEW_ERRORS)
async def cancel_submission(submission_id: int, actor: CurrentActor, session: SessionDep):
    """Withdraw a pending submission (submitter only)."""
    await moderation.cancel_submission(session, actor, submission_id)
    return Response(status_code=204)


@router.post(
    "/submissions/{submission_id}/approve",
    response_model=ReviewResponse,
    responses=_REVIEW_ERRORS,
)
async def approve_submission(
    submission_id: int,
    actor: CurrentActor,
    session: SessionDep,
    body: ReviewRequest | None = None,
):
    """Approve and apply the payload to the catalog. 409 if already reviewed."""
    notes = body.notes if body else None
    return await moderation.approve_submission(session, actor, submission_id, notes)


@router.post(
    "/submissions/{submission_id}/reject",
    response_model=ReviewResponse,
    responses=_REVIEW_ERRORS,
)
async def reject_submission(
    submission_id: int,
    actor: CurrentActor,
    session: SessionDep,
    body: ReviewRequest | None = None,
):
    notes = body.notes if body else None
    return await moderation.reject_submission(session, actor, submission_id, notes)
