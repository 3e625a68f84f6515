"""Review record endpoints: paginated listing, lookup and manual creation."""

import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_review_store
from api.models.schemas import CreateReviewRequest, PaginatedReviews, Pagination
from api.services.firebase_service import ReviewAlreadyExistsError, ReviewStoreService
from common.firebase_models import CodeReviewRecord, ReviewStatus

logger = logging.getLogger(__name__)

router = APIRouter()


def _serialize(record: CodeReviewRecord) -> dict:
    return {**record.to_document(), "id": record.id or record.key}


@router.get("", response_model=PaginatedReviews)
def list_reviews(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    repository: Optional[str] = None,
    status: Optional[ReviewStatus] = None,
    store: ReviewStoreService = Depends(get_review_store),
):
    """List review records, newest first."""
    try:
        records, total = store.list_reviews(
            page=page,
            limit=limit,
            repository=repository,
            status=status.value if status else None,
        )
    except Exception as exc:
        logger.exception("Failed to fetch reviews")
        raise HTTPException(status_code=500, detail="Failed to fetch reviews") from exc

    return PaginatedReviews(
        data=[_serialize(r) for r in records],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            totalPages=math.ceil(total / limit),
        ),
    )


@router.get("/{review_id}")
def get_review(review_id: str, store: ReviewStoreService = Depends(get_review_store)):
    record = store.get_review(review_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Review not found")
    return _serialize(record)


@router.post("", status_code=201)
def create_review(body: CreateReviewRequest, store: ReviewStoreService = Depends(get_review_store)):
    """Create a pending review record by hand (no pipeline run)."""
    if not body.pullRequestId or not body.repositoryId or not body.repositoryName:
        raise HTTPException(status_code=400, detail="Missing required fields")

    try:
        record = store.insert_review(
            CodeReviewRecord(
                repository_id=body.repositoryId,
                pull_request_id=body.pullRequestId,
                pull_request_number=body.pullRequestNumber,
                repository_name=body.repositoryName,
            )
        )
    except ReviewAlreadyExistsError as exc:
        raise HTTPException(
            status_code=409, detail="Review already exists for this pull request"
        ) from exc

    return {
        "success": True,
        "data": _serialize(record),
        "message": "Review created successfully",
    }
