"""
GitHub Client for pull request review

Wraps PyGithub calls made with an installation access token.
"""
import asyncio
from typing import Any, Dict, List, Optional

from github import Auth, Github


class GitHubClient:
    """
    GitHub API client authenticated with an installation access token.

    Provides async interface wrapping PyGithub's synchronous methods.
    """

    def __init__(self, token: str, base_url: Optional[str] = None):
        """
        Args:
            token: Installation access token
            base_url: API root for GitHub Enterprise (defaults to api.github.com)
        """
        if base_url:
            self._github = Github(auth=Auth.Token(token), base_url=base_url)
        else:
            self._github = Github(auth=Auth.Token(token))

    def _get_repo(self, owner: str, repo: str):
        return self._github.get_repo(f"{owner}/{repo}", lazy=True)

    async def get_pr_files(self, owner: str, repo: str, pr_number: int) -> List[Dict[str, Any]]:
        """
        Get list of changed files in a pull request.

        Args:
            owner: Repository owner
            repo: Repository name
            pr_number: Pull request number

        Returns:
            List of dicts with filename, status, patch info
        """
        def _get_files():
            pr = self._get_repo(owner, repo).get_pull(pr_number)
            return [
                {
                    "filename": f.filename,
                    "status": f.status,
                    "additions": f.additions,
                    "deletions": f.deletions,
                    "changes": f.changes,
                    "patch": f.patch,
                }
                for f in pr.get_files()
            ]

        return await asyncio.to_thread(_get_files)

    async def get_file_content(self, owner: str, repo: str, path: str, ref: str) -> str:
        """
        Get the decoded content of a file at a given commit.

        Raises:
            GithubException: if the file cannot be fetched
            ValueError: if ``path`` is a directory
        """
        def _get_content():
            contents = self._get_repo(owner, repo).get_contents(path, ref=ref)
            if isinstance(contents, list):
                raise ValueError(f"{path} is a directory")
            return contents.decoded_content.decode("utf-8")

        return await asyncio.to_thread(_get_content)

    async def post_comment(self, owner: str, repo: str, pr_number: int, body: str) -> None:
        """
        Post a comment on a pull request (via issue comments API).

        Args:
            owner: Repository owner
            repo: Repository name
            pr_number: Pull request number
            body: Comment body (markdown)
        """
        def _post():
            issue = self._get_repo(owner, repo).get_issue(pr_number)
            issue.create_comment(body)

        await asyncio.to_thread(_post)
