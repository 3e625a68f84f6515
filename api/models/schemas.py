from typing import Any, Optional, List

from pydantic import BaseModel, Field


class PullRequestEvent(BaseModel):
    """The parts of a ``pull_request`` webhook payload the reviewer needs."""

    action: str
    repository_id: int
    repository_full_name: str
    pull_request_id: int
    number: int
    title: str = ""
    body: Optional[str] = None
    head_sha: str
    installation_id: Optional[int] = None

    @property
    def owner(self) -> str:
        return self.repository_full_name.split("/", 1)[0]

    @property
    def repo(self) -> str:
        return self.repository_full_name.split("/", 1)[1]

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "PullRequestEvent":
        """
        Build from a raw webhook payload.

        Raises:
            ValueError: if required fields are missing or malformed.
        """
        repository = payload.get("repository") or {}
        pr = payload.get("pull_request") or {}
        full_name = repository.get("full_name") or ""
        owner, _, repo = full_name.partition("/")
        if not owner or not repo:
            raise ValueError(f"Invalid repository full_name: {full_name!r}")
        try:
            return cls(
                action=payload.get("action", ""),
                repository_id=repository["id"],
                repository_full_name=full_name,
                pull_request_id=pr["id"],
                number=pr["number"],
                title=pr.get("title") or "",
                body=pr.get("body"),
                head_sha=(pr.get("head") or {})["sha"],
                installation_id=(payload.get("installation") or {}).get("id"),
            )
        except KeyError as exc:
            raise ValueError(f"Missing field in pull_request payload: {exc}") from exc


class InstallationEvent(BaseModel):
    """``installation`` webhook payload (install / uninstall of the app)."""

    action: str
    installation_id: Optional[int] = None
    account: Optional[str] = None
    repositories: List[str] = Field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "InstallationEvent":
        installation = payload.get("installation") or {}
        return cls(
            action=payload.get("action", ""),
            installation_id=installation.get("id"),
            account=(installation.get("account") or {}).get("login"),
            repositories=[
                r["full_name"] for r in payload.get("repositories") or [] if r.get("full_name")
            ],
        )

    @property
    def accounts(self) -> list[str]:
        """Distinct owners named by the event, in first-seen order."""
        owners: list[str] = []
        for full_name in self.repositories:
            owner = full_name.split("/", 1)[0]
            if owner not in owners:
                owners.append(owner)
        if self.account and self.account not in owners:
            owners.append(self.account)
        return owners


class InstallationStatusRequest(BaseModel):
    repositories: List[str]


class InstallationStatusResponse(BaseModel):
    installations: dict[str, bool] = Field(default_factory=dict)
    errors: dict[str, str] = Field(default_factory=dict)
    appName: str
    message: str


class CreateReviewRequest(BaseModel):
    pullRequestId: Optional[int] = None
    repositoryId: Optional[int] = None
    repositoryName: Optional[str] = None
    pullRequestNumber: Optional[int] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


class PaginatedReviews(BaseModel):
    data: List[dict]
    pagination: Pagination
