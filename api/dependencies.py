import hashlib
import hmac
import logging
from functools import lru_cache, partial

from fastapi import Depends, HTTPException, Request

from api.services.firebase_service import ReviewStoreService
from api.services.review_service import ReviewOrchestrator
from common.config import AppSettings, get_settings
from common.github_app import AppCredentialSigner, GitHubAppClient, GitHubAppService
from common.github_client import GitHubClient
from reviewagent.agent.review_generator import PydanticAIGenerator, TextGenerator
from reviewagent.config import get_agent_config

logger = logging.getLogger(__name__)


async def verify_github_signature(
    request: Request, settings: AppSettings = Depends(get_settings)
) -> bytes:
    """
    Check ``X-Hub-Signature-256`` against the raw body and return the body.

    Verification is skipped only when no webhook secret is configured.
    """
    body = await request.body()
    secret = settings.github_webhook_secret
    if not secret:
        return body

    signature = request.headers.get("X-Hub-Signature-256", "")
    expected = "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(signature, expected):
        logger.error("Invalid webhook signature")
        raise HTTPException(status_code=401, detail="Invalid signature")
    return body


@lru_cache
def get_github_app_service() -> GitHubAppService:
    """Process-wide GitHub App service; owns the installation cache."""
    settings = get_settings()
    signer = AppCredentialSigner(settings.github_app_id, settings.load_private_key())
    app_client = GitHubAppClient(
        signer,
        base_url=settings.github_api_url,
        timeout=settings.github_http_timeout,
    )
    return GitHubAppService(
        signer,
        app_client=app_client,
        ttl_seconds=settings.installation_cache_ttl_seconds,
    )


@lru_cache
def get_review_store() -> ReviewStoreService:
    return ReviewStoreService()


@lru_cache
def get_text_generator() -> TextGenerator:
    return PydanticAIGenerator(get_agent_config())


def get_review_orchestrator(
    store: ReviewStoreService = Depends(get_review_store),
    github_app: GitHubAppService = Depends(get_github_app_service),
    generator: TextGenerator = Depends(get_text_generator),
    settings: AppSettings = Depends(get_settings),
) -> ReviewOrchestrator:
    return ReviewOrchestrator(
        store=store,
        github_app=github_app,
        generator=generator,
        client_factory=partial(GitHubClient, base_url=settings.github_api_url),
        max_file_chars=settings.max_file_chars,
    )
