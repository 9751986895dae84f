"""Submission moderation pipeline.

State machine::

    pending --approve--> approved   (terminal; catalog written)
    pending --reject---> rejected   (terminal; no catalog write)
    pending --cancel---> (row deleted, submitter only)

A submission is inert data until approved. Approval claims the row with
``UPDATE ... WHERE status = 'pending'`` and applies the payload through
store.write_furniture in the same transaction: if the write fails, the claim
rolls back and the submission stays pending. Two concurrent approvals race on
that UPDATE; the loser sees rowcount 0 and gets a ConflictError, so a payload
is never applied twice.
"""

from __future__ import annotations

from datetime import UTC, datetime

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from propcat.catalog.store import clamp_page, paginate, write_furniture
from propcat.config import settings
from propcat.database import store_errors, transaction
from propcat.errors import (
    AuthorizationError,
    CatalogError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from propcat.models.contracts import (
    Actor,
    BulkFailure,
    BulkReviewResponse,
    EditSubmissionRequest,
    NewSubmissionRequest,
    ReviewResponse,
    SubmissionListResponse,
    SubmissionOut,
    parse_payload,
)
from propcat.models.db import Furniture, Submission

logger = structlog.get_logger()

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
DEFAULT_SUBMISSIONS_PER_PAGE = 20


def to_submission_out(submission: Submission) -> SubmissionOut:
    return SubmissionOut.model_validate(submission, from_attributes=True)


def _require_reviewer(actor: Actor) -> None:
    if not actor.is_reviewer:
        raise AuthorizationError("Reviewer role required")


async def _load(session: AsyncSession, submission_id: int) -> Submission:
    submission = await session.get(Submission, submission_id, populate_existing=True)
    if submission is None:
        raise NotFoundError(f"Submission {submission_id} not found")
    return submission


async def _claim(
    session: AsyncSession,
    submission_id: int,
    status: str,
    actor: Actor,
    notes: str | None,
) -> None:
    """Flip a pending submission to ``status``; the WHERE clause is the concurrency guard."""
    values = {"status": status, "reviewed_by": actor.user_id, "reviewed_at": datetime.now(UTC)}
    if notes is not None:
        values["admin_notes"] = notes
    result = await session.execute(
        update(Submission)
        .where(Submission.id == submission_id, Submission.status == PENDING)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return
    current = await session.scalar(select(Submission.status).where(Submission.id == submission_id))
    if current is None:
        raise NotFoundError(f"Submission {submission_id} not found")
    raise ConflictError(f"Submission {submission_id} is already {current}")


async def create_submission(
    session: AsyncSession,
    actor: Actor,
    request: NewSubmissionRequest | EditSubmissionRequest,
) -> SubmissionOut:
    """Store a pending submission. Never touches the catalog."""
    async with transaction(session, "create_submission"):
        if request.type == "edit":
            target = await session.scalar(select(Furniture.id).where(Furniture.id == request.furniture_id))
            if target is None:
                raise NotFoundError(f"Furniture {request.furniture_id} not found")
        submission = Submission(
            user_id=actor.user_id,
            type=request.type,
            furniture_id=request.furniture_id,
            payload=request.payload.model_dump(mode="json"),
            status=PENDING,
        )
        session.add(submission)
    logger.info(
        "submission_created",
        submission_id=submission.id,
        user_id=actor.user_id,
        type=request.type,
        furniture_id=request.furniture_id,
    )
    return to_submission_out(submission)


async def cancel_submission(session: AsyncSession, actor: Actor, submission_id: int) -> None:
    """Withdraw a pending submission. Only its submitter may do this."""
    async with transaction(session, "cancel_submission"):
        submission = await _load(session, submission_id)
        if submission.user_id != actor.user_id:
            raise AuthorizationError("Only the submitter can cancel this submission")
        if submission.status != PENDING:
            raise ConflictError(f"Submission {submission_id} is already {submission.status}")
        result = await session.execute(
            delete(Submission)
            .where(Submission.id == submission_id, Submission.status == PENDING)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(f"Submission {submission_id} was reviewed before it could be cancelled")
    session.expunge_all()
    logger.info("submission_cancelled", submission_id=submission_id, user_id=actor.user_id)


async def approve_submission(
    session: AsyncSession,
    actor: Actor,
    submission_id: int,
    notes: str | None = None,
) -> ReviewResponse:
    """Approve and apply: creates furniture for type=new, replaces the target for type=edit.

    Raises:
        AuthorizationError: actor is not a reviewer.
        NotFoundError: no such submission, or the edit target is gone.
        ConflictError: the submission is no longer pending.
        ValidationError: the stored payload no longer applies (e.g. a category
            was deleted since submission). The submission stays pending.
    """
    _require_reviewer(actor)
    async with transaction(session, "approve_submission"):
        await _claim(session, submission_id, APPROVED, actor, notes)
        submission = await _load(session, submission_id)
        payload = parse_payload(submission.payload)
        furniture_id = await write_furniture(session, submission.furniture_id, payload)
    session.expunge_all()
    logger.info(
        "submission_approved",
        submission_id=submission_id,
        reviewer_id=actor.user_id,
        type=submission.type,
        furniture_id=furniture_id,
    )
    return ReviewResponse(submission=to_submission_out(submission), furniture_id=furniture_id)


async def reject_submission(
    session: AsyncSession,
    actor: Actor,
    submission_id: int,
    notes: str | None = None,
) -> ReviewResponse:
    _require_reviewer(actor)
    async with transaction(session, "reject_submission"):
        await _claim(session, submission_id, REJECTED, actor, notes)
        submission = await _load(session, submission_id)
    logger.info("submission_rejected", submission_id=submission_id, reviewer_id=actor.user_id)
    return ReviewResponse(submission=to_submission_out(submission))


async def bulk_review(
    session: AsyncSession,
    actor: Actor,
    submission_ids: list[int],
    action: str,
    notes: str | None = None,
) -> BulkReviewResponse:
    """Approve or reject many submissions, one transaction each.

    A failure on one id is reported and doesn't stop the rest.
    """
    _require_reviewer(actor)
    ids = list(dict.fromkeys(submission_ids))
    if len(ids) > settings.bulk_review_limit:
        raise ValidationError(f"At most {settings.bulk_review_limit} submissions per bulk action")

    review = approve_submission if action == "approve" else reject_submission
    result = BulkReviewResponse()
    for submission_id in ids:
        try:
            await review(session, actor, submission_id, notes)
        except CatalogError as exc:
            result.failed.append(BulkFailure(id=submission_id, error=exc.code, message=exc.message))
        else:
            result.processed.append(submission_id)
    logger.info(
        "submissions_bulk_reviewed",
        action=action,
        processed=len(result.processed),
        failed=len(result.failed),
    )
    return result


async def get_submission(session: AsyncSession, actor: Actor, submission_id: int) -> SubmissionOut:
    async with store_errors("get_submission"):
        submission = await session.get(Submission, submission_id)
    if submission is None:
        raise NotFoundError(f"Submission {submission_id} not found")
    if not actor.is_reviewer and submission.user_id != actor.user_id:
        raise AuthorizationError("You can only view your own submissions")
    return to_submission_out(submission)


async def list_submissions(
    session: AsyncSession,
    actor: Actor,
    status: str | None = None,
    submission_type: str | None = None,
    user_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> SubmissionListResponse:
    """Newest first. Reviewers see everything; other users only their own."""
    page, per_page = clamp_page(page, per_page or DEFAULT_SUBMISSIONS_PER_PAGE)
    conditions = []
    if not actor.is_reviewer:
        conditions.append(Submission.user_id == actor.user_id)
    elif user_id is not None:
        conditions.append(Submission.user_id == user_id)
    if status:
        conditions.append(Submission.status == status)
    if submission_type:
        conditions.append(Submission.type == submission_type)

    async with store_errors("list_submissions"):
        total = await session.scalar(select(func.count(Submission.id)).where(*conditions)) or 0
        rows = (
            await session.scalars(
                select(Submission)
                .where(*conditions)
                .order_by(Submission.created_at.desc(), Submission.id.desc())
                .offset((page - 1) * per_page)
                .limit(per_page)
            )
        ).all()
    return SubmissionListResponse(
        items=[to_submission_out(s) for s in rows],
        pagination=paginate(total, page, per_page),
    )


async def pending_count(session: AsyncSession, actor: Actor) -> int:
    _require_reviewer(actor)
    async with store_errors("pending_count"):
        return await session.scalar(
            select(func.count(Submission.id)).where(Submission.status == PENDING)
        ) or 0
