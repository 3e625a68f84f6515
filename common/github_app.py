"""
GitHub App authentication

Signs short-lived app assertions (JWT), resolves the installation that covers
a repository owner (cached per account for 24 hours) and exchanges an
installation id for an installation access token.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

import httpx
import jwt

logger = logging.getLogger(__name__)

ASSERTION_TTL_SECONDS = 600
INSTALLATION_CACHE_TTL_SECONDS = 24 * 60 * 60
GITHUB_API_URL = "https://api.github.com"


class GitHubAppError(Exception):
    """Base exception for GitHub App authentication errors."""


class GitHubAppConfigError(GitHubAppError):
    """App id or private key is not configured."""


class GitHubAppNotInstalledError(GitHubAppError):
    """The GitHub App is not installed for the repository's account."""

    def __init__(self, owner: str, repo: str):
        self.owner = owner
        self.repo = repo
        super().__init__(f"GitHub App is not installed for {owner}/{repo}")


class GitHubAPIError(GitHubAppError):
    """Non-2xx response from a GitHub App endpoint."""

    def __init__(self, action: str, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"{action}: {status_code} - {body}")


# ==========================================================================
# Credential signing
# ==========================================================================

@dataclass(frozen=True)
class SignedAssertion:
    token: str
    issuer: str
    issued_at: int
    expires_at: int


class AppCredentialSigner:
    """Builds RS256-signed JWTs identifying the app to GitHub."""

    def __init__(
        self,
        app_id: Optional[str],
        private_key: Optional[str],
        clock: Callable[[], float] = time.time,
    ):
        self.app_id = app_id or ""
        self._private_key = private_key or ""
        self._clock = clock

    @property
    def is_configured(self) -> bool:
        return bool(self.app_id and self._private_key)

    def redacted_config(self) -> Dict[str, str]:
        return {
            "app_id": "configured" if self.app_id else "missing",
            "private_key": "configured" if self._private_key else "missing",
        }

    def sign(self) -> SignedAssertion:
        """
        Sign a new assertion valid for exactly 600 seconds from now.

        Raises:
            GitHubAppConfigError: if the app id or private key is missing.
        """
        if not self.is_configured:
            raise GitHubAppConfigError("GitHub App ID or Private Key not configured")

        now = int(self._clock())
        payload = {
            "iat": now,
            "exp": now + ASSERTION_TTL_SECONDS,
            "iss": self.app_id,
        }
        token = jwt.encode(payload, self._private_key, algorithm="RS256")
        return SignedAssertion(
            token=token,
            issuer=self.app_id,
            issued_at=now,
            expires_at=now + ASSERTION_TTL_SECONDS,
        )


# ==========================================================================
# App-level REST calls (authenticated with a fresh assertion each time)
# ==========================================================================

class GitHubAppClient:
    """Thin httpx wrapper for the two endpoints that take an app assertion."""

    def __init__(
        self,
        signer: AppCredentialSigner,
        base_url: str = GITHUB_API_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.signer = signer
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def _request(self, method: str, path: str) -> httpx.Response:
        assertion = self.signer.sign()
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            return await client.request(
                method,
                path,
                headers={
                    "Authorization": f"Bearer {assertion.token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": "2022-11-28",
                },
            )

    async def get_repo_installation_id(self, owner: str, repo: str) -> int:
        response = await self._request("GET", f"/repos/{owner}/{repo}/installation")
        if response.status_code == 404:
            raise GitHubAppNotInstalledError(owner, repo)
        if not response.is_success:
            raise GitHubAPIError(
                "Failed to get installation ID", response.status_code, response.text
            )
        return int(response.json()["id"])

    async def create_installation_token(self, installation_id: int) -> str:
        response = await self._request(
            "POST", f"/app/installations/{installation_id}/access_tokens"
        )
        if not response.is_success:
            raise GitHubAPIError(
                "Failed to get installation token", response.status_code, response.text
            )
        return response.json()["token"]


# ==========================================================================
# Installation resolution with a per-account cache
# ==========================================================================

@dataclass
class _CacheEntry:
    installation_id: int
    expires_at: float


@dataclass
class CacheEntryStats:
    key: str
    expires_at: str


@dataclass
class CacheStats:
    size: int
    entries: List[CacheEntryStats] = field(default_factory=list)


class InstallationResolver:
    """
    Maps a repository owner to its installation id.

    GitHub assigns one installation per account/organization, so entries are
    keyed by owner login, not by repository. Misses and expired entries go to
    ``GET /repos/{owner}/{repo}/installation``; not-installed results are
    raised, never cached.
    """

    def __init__(
        self,
        app_client: GitHubAppClient,
        ttl_seconds: int = INSTALLATION_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._app_client = app_client
        self._ttl = ttl_seconds
        self._clock = clock
        self._cache: Dict[str, _CacheEntry] = {}

    @staticmethod
    def _key(owner: str) -> str:
        return owner.lower()

    async def resolve(self, owner: str, repo: str) -> int:
        key = self._key(owner)
        cached = self._cache.get(key)
        if cached and cached.expires_at > self._clock():
            logger.info(f"Using cached installation ID for {owner} ({repo})")
            return cached.installation_id

        logger.info(f"Fetching installation ID for {owner} ({repo})")
        installation_id = await self._app_client.get_repo_installation_id(owner, repo)

        self._cache[key] = _CacheEntry(
            installation_id=installation_id,
            expires_at=self._clock() + self._ttl,
        )
        logger.info(f"Cached installation ID {installation_id} for {owner}")
        return installation_id

    def invalidate(self, owner: str) -> None:
        self._cache.pop(self._key(owner), None)
        logger.info(f"Cleared installation cache for {owner}")

    def invalidate_all(self) -> None:
        self._cache.clear()
        logger.info("Cleared all installation cache")

    def stats(self) -> CacheStats:
        entries = [
            CacheEntryStats(
                key=key,
                expires_at=datetime.fromtimestamp(entry.expires_at, tz=timezone.utc).isoformat(),
            )
            for key, entry in list(self._cache.items())
        ]
        return CacheStats(size=len(entries), entries=entries)


class InstallationTokenExchanger:
    """Exchanges an installation id for an installation access token (uncached)."""

    def __init__(self, app_client: GitHubAppClient):
        self._app_client = app_client

    async def exchange(self, installation_id: int) -> str:
        return await self._app_client.create_installation_token(installation_id)


class GitHubAppService:
    """Bundles signer, resolver and exchanger for one configured GitHub App."""

    def __init__(
        self,
        signer: AppCredentialSigner,
        app_client: Optional[GitHubAppClient] = None,
        ttl_seconds: int = INSTALLATION_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.signer = signer
        self.app_client = app_client or GitHubAppClient(signer)
        self.resolver = InstallationResolver(self.app_client, ttl_seconds=ttl_seconds, clock=clock)
        self.exchanger = InstallationTokenExchanger(self.app_client)

    @property
    def is_configured(self) -> bool:
        return self.signer.is_configured

    async def token_for_repository(self, owner: str, repo: str) -> str:
        installation_id = await self.resolver.resolve(owner, repo)
        return await self.exchanger.exchange(installation_id)
