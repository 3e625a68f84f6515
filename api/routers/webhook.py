import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request

from api.dependencies import (
    get_github_app_service,
    get_review_orchestrator,
    verify_github_signature,
)
from api.models.schemas import InstallationEvent, PullRequestEvent
from api.services.review_service import ReviewOrchestrator
from common.github_app import GitHubAppService

logger = logging.getLogger(__name__)

router = APIRouter()


def _handle_installation(payload: dict, github_app: GitHubAppService) -> dict:
    """Drop cached installation ids for every account touched by an uninstall."""
    event = InstallationEvent.from_payload(payload)
    if event.action == "deleted":
        for owner in event.accounts:
            github_app.resolver.invalidate(owner)
        logger.info(
            f"Cleared installation cache for installation {event.installation_id} "
            f"({', '.join(event.accounts) or 'no accounts'})"
        )
    return {"message": "Installation event processed"}


@router.post("/github")
async def github_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    body: bytes = Depends(verify_github_signature),
    github_app: GitHubAppService = Depends(get_github_app_service),
    orchestrator: ReviewOrchestrator = Depends(get_review_orchestrator),
):
    """
    Receive GitHub App webhooks.

    Handles:
    - installation (deleted): invalidate cached installation ids
    - pull_request (opened / synchronize / reopened): trigger an AI review

    The review runs in the background; the response only reflects the
    pending record that was created or reset.
    """
    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    event_type = request.headers.get("X-GitHub-Event", "")
    logger.info(
        f"Received GitHub webhook: {event_type} for "
        f"{(payload.get('repository') or {}).get('full_name')}"
    )

    if event_type == "installation":
        return _handle_installation(payload, github_app)

    if event_type != "pull_request":
        return {"message": "Event ignored"}

    try:
        event = PullRequestEvent.from_payload(payload)
    except ValueError as exc:
        logger.warning(f"Malformed pull_request payload: {exc}")
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    try:
        decision = orchestrator.prepare_review(event)
    except Exception as exc:
        logger.exception(f"Webhook processing error for {event.repository_full_name}#{event.number}")
        raise HTTPException(status_code=500, detail="Internal server error") from exc

    if not decision.should_review:
        return {"message": decision.message}

    background_tasks.add_task(orchestrator.run_review, decision.record.key, event)

    return {"message": decision.message, "reviewId": decision.record.key}
