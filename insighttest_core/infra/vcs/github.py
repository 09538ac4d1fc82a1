from typing import Optional, Type
from urllib.parse import quote

import httpx

from ...env import DEFAULT_CORE_CONFIG, LOG as logger
from ...errors import (
    UpstreamAuthError,
    UpstreamError,
    UpstreamForbiddenError,
    UpstreamNotFoundError,
    UpstreamTimeoutError,
    ValidationError,
)
from ...schema.config import CoreConfig
from ...schema.diff import CommitInfo

ACCEPT_JSON = "application/vnd.github.v3+json"
ACCEPT_DIFF = "application/vnd.github.v3.diff"


def _commit_path(repo: str, commit_id: str) -> str:
    """URL path of a commit, each segment percent-encoded."""
    segments = repo.split("/")
    if len(segments) != 2 or any(s in ("", ".", "..") for s in segments):
        raise ValidationError([f"repo: invalid repository {repo!r}"])
    if commit_id in ("", ".", ".."):
        raise ValidationError([f"commitId: invalid commit {commit_id!r}"])
    owner, name = (quote(s, safe="") for s in segments)
    return f"repos/{owner}/{name}/commits/{quote(commit_id, safe='')}"


def _upstream_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return "Unknown error"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return "Unknown error"


class GitHubClient:
    """Read-only client for the GitHub commits API.

    A commit is fetched twice from the same endpoint: once as JSON for its
    metadata and once as raw diff text. HTTP failures are mapped onto the
    ``Upstream*`` errors so callers never see httpx exceptions.
    """

    def __init__(
        self,
        base_url: str,
        user_agent: str,
        metadata_timeout: float = 10,
        diff_timeout: float = 15,
        min_token_length: int = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.__base_url = base_url.rstrip("/")
        self.__user_agent = user_agent
        self.__metadata_timeout = metadata_timeout
        self.__diff_timeout = diff_timeout
        self.__min_token_length = min_token_length
        self.__client = httpx.AsyncClient(transport=transport, follow_redirects=True)

    @classmethod
    def from_default(
        cls: Type["GitHubClient"],
        config: Optional[CoreConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "GitHubClient":
        config = config or DEFAULT_CORE_CONFIG
        return cls(
            base_url=config.github_api_base_url,
            user_agent=config.github_user_agent,
            metadata_timeout=config.github_metadata_timeout_seconds,
            diff_timeout=config.github_diff_timeout_seconds,
            min_token_length=config.github_min_token_length,
            transport=transport,
        )

    def _get_headers(self, token: str, accept: str) -> dict[str, str]:
        return {
            "Authorization": f"token {token}",
            "Accept": accept,
            "User-Agent": self.__user_agent,
        }

    def _check_token(self, token: Optional[str]) -> str:
        if not token or len(token) < self.__min_token_length:
            raise UpstreamAuthError("GitHub token is missing or malformed")
        return token

    async def _get(
        self,
        repo: str,
        commit_id: str,
        token: Optional[str],
        accept: str,
        timeout: float,
    ) -> httpx.Response:
        token = self._check_token(token)
        url = f"{self.__base_url}/{_commit_path(repo, commit_id)}"
        try:
            response = await self.__client.get(
                url,
                headers=self._get_headers(token, accept),
                timeout=httpx.Timeout(timeout),
            )
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"GitHub API {url} returned {status}")
            if status == 404:
                raise UpstreamNotFoundError(
                    f"Repository or commit not found: {repo}@{commit_id}",
                    upstream_status=status,
                )
            if status == 401:
                raise UpstreamAuthError(
                    "GitHub token is invalid or expired", upstream_status=status
                )
            if status == 403:
                raise UpstreamForbiddenError(
                    f"No permission to access repository: {repo}",
                    upstream_status=status,
                )
            raise UpstreamError(
                f"GitHub API error: {status} - {_upstream_message(e.response)}",
                upstream_status=status,
            )
        except httpx.TimeoutException as e:
            logger.error(f"GitHub API {url} timed out after {timeout}s")
            raise UpstreamTimeoutError(
                f"Request to GitHub API timed out after {timeout}s"
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"GitHub API {url} failed: {e}")
            raise UpstreamError(f"Failed to reach GitHub API: {e}") from e

    async def get_commit(
        self, repo: str, commit_id: str, token: Optional[str]
    ) -> CommitInfo:
        """Fetch commit message, author and timestamp."""
        response = await self._get(
            repo, commit_id, token, ACCEPT_JSON, self.__metadata_timeout
        )
        try:
            data = response.json()
            commit = data["commit"]
            author = commit.get("author") or {}
            return CommitInfo(
                sha=data.get("sha") or commit_id,
                message=commit.get("message") or "",
                author=author.get("name") or "",
                timestamp=author.get("date"),
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise UpstreamError(f"Unexpected commit payload from GitHub: {e}") from e

    async def get_commit_diff(
        self, repo: str, commit_id: str, token: Optional[str]
    ) -> str:
        """Fetch the raw unified diff of a commit."""
        response = await self._get(
            repo, commit_id, token, ACCEPT_DIFF, self.__diff_timeout
        )
        return response.text

    async def aclose(self) -> None:
        await self.__client.aclose()
