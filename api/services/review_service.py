"""
PR Review Service
=================
Orchestrates the review pipeline for one pull_request event:
  1. Resolve an installation token (event installation id, then resolver fallback)
  2. List changed files and keep source-code files only
  3. Fetch full file contents at the head commit
  4. Run the text-generation review and parse it
  5. Persist the result on the review record
  6. Post a summary comment on the pull request
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Callable, Dict, List, Optional

from api.models.schemas import PullRequestEvent
from api.services.firebase_service import ReviewAlreadyExistsError, ReviewStoreService
from api.utils.comment_formatter import format_review_comment
from common.firebase_models import CodeReviewRecord, ReviewStatus
from common.github_app import GitHubAppNotInstalledError, GitHubAppService
from common.github_client import GitHubClient
from reviewagent.agent.review_generator import TextGenerator, generate_code_review
from reviewagent.models.review_schemas import ReviewMetadata, ReviewResult
from reviewagent.prompts import ReviewFile

logger = logging.getLogger(__name__)

REVIEWABLE_ACTIONS = ("opened", "synchronize", "reopened")

# ==========================================================================
# Source-code extension allow-list
# ==========================================================================
CODE_EXTENSIONS = frozenset({
    "js", "ts", "jsx", "tsx", "py", "java", "cpp", "c", "cs", "php", "rb", "go",
    "rs", "swift", "kt", "scala", "clj", "hs", "ml", "f90", "r", "m", "pl",
    "sh", "bash", "zsh", "fish", "ps1", "bat", "cmd", "sql",
    "html", "css", "scss", "sass", "less", "vue", "svelte", "astro",
})

_EXT_TO_LANG = {
    "py": "python",
    "js": "javascript", "jsx": "javascript",
    "ts": "typescript", "tsx": "typescript",
    "go": "go", "rs": "rust", "java": "java", "rb": "ruby",
    "c": "c", "cpp": "cpp", "cs": "c_sharp", "kt": "kotlin", "scala": "scala",
    "swift": "swift", "php": "php", "hs": "haskell",
}

NO_CODE_FILES_SUMMARY = "No code files to review"
NO_CONTENT_SUMMARY = "Unable to fetch file contents for review"
FAILED_SUMMARY = "Review failed due to an error"


class ReviewStage(str, Enum):
    RECEIVED = "received"
    RESOLVING_CREDENTIALS = "resolving-credentials"
    FETCHING_FILES = "fetching-files"
    GENERATING_REVIEW = "generating-review"
    PERSISTING = "persisting"
    COMMENTING = "commenting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ReviewDecision:
    """Outcome of the event-receipt step."""

    message: str
    record: Optional[CodeReviewRecord] = None

    @property
    def should_review(self) -> bool:
        return self.record is not None


def _extension(filename: str) -> str:
    return PurePosixPath(filename).suffix.lower().lstrip(".")


def is_code_file(filename: str) -> bool:
    return _extension(filename) in CODE_EXTENSIONS


def _build_metadata(files: List[ReviewFile], model: str, started: float) -> ReviewMetadata:
    languages = sorted({_EXT_TO_LANG.get(_extension(f.filename), _extension(f.filename)) for f in files})
    return ReviewMetadata(
        total_files=len(files),
        total_lines=sum(len(f.content.splitlines()) for f in files),
        languages=languages,
        ai_model=model,
        processing_time=int((time.monotonic() - started) * 1000),
    )


class ReviewOrchestrator:
    """Runs reviews for pull_request events; all collaborators are injected."""

    def __init__(
        self,
        store: ReviewStoreService,
        github_app: GitHubAppService,
        generator: TextGenerator,
        client_factory: Callable[[str], GitHubClient] = GitHubClient,
        max_file_chars: int = 1000,
    ):
        self.store = store
        self.github_app = github_app
        self.generator = generator
        self.client_factory = client_factory
        self.max_file_chars = max_file_chars

    # ======================================================================
    # Event receipt
    # ======================================================================

    def prepare_review(self, event: PullRequestEvent) -> ReviewDecision:
        """
        Create or reset the pending record for an event.

        Re-delivered ``opened`` events for an existing record are no-ops;
        ``synchronize``/``reopened`` reset the existing record to pending.
        """
        if event.action not in REVIEWABLE_ACTIONS:
            return ReviewDecision("Action ignored")

        if not self.store.is_repository_enabled(event.repository_full_name):
            logger.info(f"Repository {event.repository_full_name} not enabled for AI reviews")
            return ReviewDecision("Repository not enabled")

        existing = self.store.find_review(event.repository_id, event.pull_request_id)
        if existing and event.action == "opened":
            logger.info(
                f"Review already exists for PR #{event.number} in {event.repository_full_name}"
            )
            return ReviewDecision("Review already exists")

        if existing:
            self.store.update_review(existing.key, ReviewStatus.PENDING)
            record = existing.model_copy(update={"status": ReviewStatus.PENDING})
        else:
            try:
                record = self.store.insert_review(
                    CodeReviewRecord(
                        repository_id=event.repository_id,
                        pull_request_id=event.pull_request_id,
                        pull_request_number=event.number,
                        repository_name=event.repository_full_name,
                        status=ReviewStatus.PENDING,
                    )
                )
            except ReviewAlreadyExistsError:
                # Lost a race with a concurrent delivery of the same event
                return ReviewDecision("Review already exists")

        logger.info(
            f"[{ReviewStage.RECEIVED.value}] PR #{event.number} in "
            f"{event.repository_full_name} (action={event.action}, review={record.key})"
        )
        return ReviewDecision("Review triggered", record)

    # ======================================================================
    # Credential resolution
    # ======================================================================

    async def _token_from_event_installation(self, installation_id: int) -> str:
        return await self.github_app.exchanger.exchange(installation_id)

    async def _token_from_resolver(self, event: PullRequestEvent) -> str:
        return await self.github_app.token_for_repository(event.owner, event.repo)

    async def acquire_installation_token(self, event: PullRequestEvent) -> str:
        """
        Installation token for the event's repository.

        Tries the installation id carried by the event first; if that exchange
        fails (stale or replayed id) or the event has none, resolves the
        installation by owner/repo.
        """
        if event.installation_id is None:
            return await self._token_from_resolver(event)

        try:
            return await self._token_from_event_installation(event.installation_id)
        except Exception as exc:
            logger.warning(
                f"Webhook installation ID {event.installation_id} failed for "
                f"{event.repository_full_name} ({exc}); falling back to installation lookup"
            )
        return await self._token_from_resolver(event)

    # ======================================================================
    # File collection
    # ======================================================================

    async def _fetch_contents(
        self,
        gh: GitHubClient,
        event: PullRequestEvent,
        code_files: List[Dict],
    ) -> List[ReviewFile]:
        """Fetch head-commit contents concurrently; failures drop that file only."""
        async def _fetch(file: Dict) -> str:
            if file.get("status") == "removed":
                raise FileNotFoundError(f"{file['filename']} was removed in this PR")
            return await gh.get_file_content(event.owner, event.repo, file["filename"], ref=event.head_sha)

        contents = await asyncio.gather(*(_fetch(f) for f in code_files), return_exceptions=True)

        files: List[ReviewFile] = []
        for file, content in zip(code_files, contents):
            if isinstance(content, BaseException):
                logger.warning(f"Failed to fetch content for {file['filename']}: {content}")
                continue
            files.append(
                ReviewFile(
                    filename=file["filename"],
                    content=content,
                    patch=file.get("patch"),
                    additions=file.get("additions") or 0,
                    deletions=file.get("deletions") or 0,
                )
            )
        logger.info(f"Fetched {len(files)}/{len(code_files)} file contents")
        return files

    # ======================================================================
    # Main pipeline
    # ======================================================================

    def _complete(self, review_id: str, review: ReviewResult, metadata: Optional[ReviewMetadata] = None) -> None:
        logger.info(f"[{ReviewStage.PERSISTING.value}] review {review_id}")
        self.store.update_review(review_id, ReviewStatus.COMPLETED, review=review, metadata=metadata)

    def _fail(self, review_id: str, summary: str) -> None:
        try:
            self.store.update_review(
                review_id, ReviewStatus.FAILED, review=ReviewResult.placeholder(summary)
            )
        except Exception:
            logger.exception(f"Failed to mark review {review_id} as failed")

    async def _post_comment(
        self, gh: GitHubClient, event: PullRequestEvent, review: ReviewResult
    ) -> None:
        logger.info(f"[{ReviewStage.COMMENTING.value}] PR #{event.number}")
        try:
            body = format_review_comment(review, event.number, self.generator.model_name)
            await gh.post_comment(event.owner, event.repo, event.number, body)
            logger.info(f"Bot comment posted to PR #{event.number} in {event.repository_full_name}")
        except Exception:
            logger.exception(
                f"Failed to post review comment on {event.repository_full_name}#{event.number}"
            )

    async def run_review(self, review_id: str, event: PullRequestEvent) -> None:
        """
        Background review pipeline for one pending record.

        Failures before persisting mark the record failed with a zero-score
        result. Comment failures are logged and leave the record completed.
        """
        repo_id = event.repository_full_name
        started = time.monotonic()
        logger.info(f"Starting AI review for PR #{event.number} in {repo_id}")

        try:
            # ── Credentials ─────────────────────────────────────────────
            logger.info(f"[{ReviewStage.RESOLVING_CREDENTIALS.value}] {repo_id}#{event.number}")
            token = await self.acquire_installation_token(event)
            gh = self.client_factory(token)

            # ── Changed files ───────────────────────────────────────────
            logger.info(f"[{ReviewStage.FETCHING_FILES.value}] {repo_id}#{event.number}")
            pr_files = await gh.get_pr_files(event.owner, event.repo, event.number)
            code_files = [f for f in pr_files if is_code_file(f["filename"])]

            if not code_files:
                logger.info(f"No code files found in PR #{event.number}")
                self._complete(review_id, ReviewResult.placeholder(NO_CODE_FILES_SUMMARY, score=100))
                logger.info(f"[{ReviewStage.DONE.value}] {repo_id}#{event.number}")
                return

            files = await self._fetch_contents(gh, event, code_files)
            if not files:
                logger.info(f"No valid file contents found in PR #{event.number}")
                self._complete(review_id, ReviewResult.placeholder(NO_CONTENT_SUMMARY, score=0))
                logger.info(f"[{ReviewStage.DONE.value}] {repo_id}#{event.number}")
                return

            # ── Generation ──────────────────────────────────────────────
            logger.info(f"[{ReviewStage.GENERATING_REVIEW.value}] {repo_id}#{event.number}")
            review = await generate_code_review(
                self.generator,
                repository=repo_id,
                pr_number=event.number,
                title=event.title,
                description=event.body,
                files=files,
                max_file_chars=self.max_file_chars,
            )
        except GitHubAppNotInstalledError as exc:
            logger.error(f"[{ReviewStage.FAILED.value}] {exc}")
            self._fail(review_id, f"{FAILED_SUMMARY}: GitHub App is not installed for {event.owner}")
            return
        except Exception:
            logger.exception(f"[{ReviewStage.FAILED.value}] AI review failed for PR #{event.number}")
            self._fail(review_id, FAILED_SUMMARY)
            return

        # ── Persist ─────────────────────────────────────────────────────
        try:
            self._complete(review_id, review, _build_metadata(files, self.generator.model_name, started))
        except Exception:
            logger.exception(f"Failed to persist review {review_id}")
            return

        # ── Comment ─────────────────────────────────────────────────────
        await self._post_comment(gh, event, review)
        logger.info(f"[{ReviewStage.DONE.value}] AI review completed for PR #{event.number} in {repo_id}")
