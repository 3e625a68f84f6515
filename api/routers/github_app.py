"""GitHub App operational endpoints: installation cache introspection and install checks."""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_github_app_service
from api.models.schemas import InstallationStatusRequest, InstallationStatusResponse
from common.config import AppSettings, get_settings
from common.github_app import GitHubAppNotInstalledError, GitHubAppService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/cache-stats")
def get_cache_stats(github_app: GitHubAppService = Depends(get_github_app_service)):
    """Return installation cache size and entries."""
    if not github_app.is_configured:
        return {"error": "GitHub App not configured", "cacheStats": None}
    return {
        "cacheStats": asdict(github_app.resolver.stats()),
        "message": "Cache statistics retrieved successfully",
    }


@router.delete("/cache-stats")
def clear_cache(github_app: GitHubAppService = Depends(get_github_app_service)):
    """Clear every cached installation id."""
    if not github_app.is_configured:
        return {"error": "GitHub App not configured"}
    github_app.resolver.invalidate_all()
    return {"message": "All installation cache cleared successfully"}


@router.post("/installation-status", response_model=InstallationStatusResponse)
async def installation_status(
    body: InstallationStatusRequest,
    github_app: GitHubAppService = Depends(get_github_app_service),
    settings: AppSettings = Depends(get_settings),
):
    """
    Report whether the app is installed for each ``owner/repo``.

    Only a not-installed lookup result counts as ``false``; other failures are
    listed under ``errors`` so transient problems are not reported as uninstalls.
    """
    if not github_app.is_configured:
        return InstallationStatusResponse(
            appName=settings.github_app_name,
            message="GitHub App not configured",
        )

    installations: dict[str, bool] = {}
    errors: dict[str, str] = {}
    for repository in body.repositories:
        owner, _, repo = repository.partition("/")
        if not owner or not repo:
            raise HTTPException(status_code=400, detail=f"Invalid repository name: {repository}")
        try:
            await github_app.resolver.resolve(owner, repo)
            installations[repository] = True
        except GitHubAppNotInstalledError:
            installations[repository] = False
        except Exception as exc:
            logger.warning(f"Installation lookup failed for {repository}: {exc}")
            errors[repository] = str(exc)

    return InstallationStatusResponse(
        installations=installations,
        errors=errors,
        appName=settings.github_app_name,
        message="Installation status checked successfully",
    )
