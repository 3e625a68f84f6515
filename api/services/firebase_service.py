"""ReviewStoreService - Firestore persistence for review records and user settings lookups."""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from google.api_core.exceptions import AlreadyExists

from common.firebase_init import initialize_firestore
from common.firebase_models import CodeReviewRecord, ReviewStatus, UserSettings, review_doc_id
from reviewagent.models.review_schemas import ReviewMetadata, ReviewResult

logger = logging.getLogger(__name__)

REVIEWS_COLLECTION = "code_reviews"
USERS_COLLECTION = "users"


class ReviewAlreadyExistsError(Exception):
    """A record for this (repository, pull request) pair already exists."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ReviewStoreService:
    """Firestore operations on the ``code_reviews`` and ``users`` collections."""

    def __init__(self, db=None):
        self._db = db if db is not None else initialize_firestore()

    @property
    def db(self):
        return self._db

    def _reviews(self):
        return self._db.collection(REVIEWS_COLLECTION)

    # ── Review records ────────────────────────────────────────────────────

    def find_review(self, repository_id: int, pull_request_id: int) -> Optional[CodeReviewRecord]:
        """Look up a record by its unique (repository, pull request) key."""
        return self.get_review(review_doc_id(repository_id, pull_request_id))

    def get_review(self, review_id: str) -> Optional[CodeReviewRecord]:
        doc = self._reviews().document(review_id).get()
        if not doc.exists:
            return None
        return CodeReviewRecord.from_document(doc.id, doc.to_dict())

    def insert_review(self, record: CodeReviewRecord) -> CodeReviewRecord:
        """
        Create a new record.

        Uses Firestore ``create`` so a concurrent insert for the same key
        fails instead of overwriting.

        Raises:
            ReviewAlreadyExistsError: if a record with the same key exists.
        """
        now = _now()
        record = record.model_copy(update={"id": record.key, "created_at": now, "updated_at": now})
        try:
            self._reviews().document(record.key).create(record.to_document())
        except AlreadyExists as exc:
            raise ReviewAlreadyExistsError(record.key) from exc
        logger.info(f"Created review record {record.key} for {record.repository_name}")
        return record

    def update_review(
        self,
        review_id: str,
        status: ReviewStatus,
        review: Optional[ReviewResult] = None,
        metadata: Optional[ReviewMetadata] = None,
    ) -> None:
        """Update status (and optionally result/metadata) of an existing record in place."""
        payload: dict[str, Any] = {"status": status.value, "updatedAt": _now()}
        if review is not None:
            payload["review"] = review.model_dump(by_alias=True, exclude_none=True, mode="json")
        if metadata is not None:
            payload["metadata"] = metadata.model_dump(by_alias=True, mode="json")
        self._reviews().document(review_id).update(payload)
        logger.info(f"Review {review_id} -> {status.value}")

    def list_reviews(
        self,
        page: int = 1,
        limit: int = 10,
        repository: Optional[str] = None,
        status: Optional[str] = None,
    ) -> tuple[list[CodeReviewRecord], int]:
        """
        List records newest first.

        ``repository`` is a case-insensitive substring match on the full name,
        applied client-side since Firestore has no substring queries.

        Returns:
            (records on the requested page, total matching records)
        """
        query = self._reviews()
        if status:
            query = query.where("status", "==", status)
        docs = query.order_by("createdAt", direction="DESCENDING").stream()

        records = [CodeReviewRecord.from_document(doc.id, doc.to_dict()) for doc in docs]
        if repository:
            needle = repository.lower()
            records = [r for r in records if needle in r.repository_name.lower()]

        skip = (page - 1) * limit
        return records[skip:skip + limit], len(records)

    # ── User settings ─────────────────────────────────────────────────────

    def find_user_by_repository(self, full_name: str) -> Optional[dict]:
        """Return the first user document that enabled ``owner/repo`` for review."""
        docs = (
            self._db.collection(USERS_COLLECTION)
            .where("repositories", "array_contains", full_name)
            .limit(1)
            .stream()
        )
        for doc in docs:
            return {**doc.to_dict(), "uid": doc.id}
        return None

    def is_repository_enabled(self, full_name: str) -> bool:
        user = self.find_user_by_repository(full_name)
        if user is None:
            return False
        settings = UserSettings.model_validate(user.get("settings") or {})
        return settings.auto_review
