"""
Tests for the GitHub commits client, with HTTP served by ``httpx.MockTransport``.
"""

import httpx
import pytest

from insighttest_core.errors import (
    UpstreamAuthError,
    UpstreamError,
    UpstreamForbiddenError,
    UpstreamNotFoundError,
    UpstreamTimeoutError,
    ValidationError,
)
from insighttest_core.infra.vcs.github import ACCEPT_DIFF, GitHubClient
from insighttest_core.schema.config import CoreConfig

TOKEN = "ghp_0123456789abcdef"
COMMIT_JSON = {
    "sha": "abc1234def",
    "commit": {
        "message": "Fix flaky test",
        "author": {"name": "Dev Eloper", "date": "2024-05-01T10:00:00Z"},
    },
}
DIFF_TEXT = "diff --git a/src/a.py b/src/a.py\n@@ -1 +1 @@\n-a\n+b\n"


def _client(handler) -> GitHubClient:
    return GitHubClient.from_default(
        config=CoreConfig(github_api_base_url="https://github.test/api/"),
        transport=httpx.MockTransport(handler),
    )


def _serve_commit(requests: list):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.headers["Accept"] == ACCEPT_DIFF:
            return httpx.Response(200, text=DIFF_TEXT)
        return httpx.Response(200, json=COMMIT_JSON)

    return handler


class TestSuccess:
    @pytest.mark.asyncio
    async def test_get_commit(self):
        requests = []
        client = _client(_serve_commit(requests))

        commit = await client.get_commit("octo/repo", "abc1234", TOKEN)

        assert commit.sha == "abc1234def"
        assert commit.message == "Fix flaky test"
        assert commit.author == "Dev Eloper"
        assert commit.timestamp == "2024-05-01T10:00:00Z"

        (request,) = requests
        assert str(request.url) == "https://github.test/api/repos/octo/repo/commits/abc1234"
        assert request.headers["Authorization"] == f"token {TOKEN}"
        assert request.headers["Accept"] == "application/vnd.github.v3+json"
        assert request.headers["User-Agent"] == "InsightTestAI-MCP-Server"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_get_commit_diff(self):
        requests = []
        client = _client(_serve_commit(requests))

        diff = await client.get_commit_diff("octo/repo", "abc1234", TOKEN)

        assert diff == DIFF_TEXT
        assert requests[0].headers["Accept"] == "application/vnd.github.v3.diff"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_path_segments_are_escaped(self):
        requests = []
        client = _client(_serve_commit(requests))

        await client.get_commit_diff("octo/re po", "../../../user", TOKEN)

        (request,) = requests
        assert request.url.raw_path == (
            b"/api/repos/octo/re%20po/commits/..%2F..%2F..%2Fuser"
        )
        await client.aclose()


class TestErrors:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,error_cls",
        [
            (404, UpstreamNotFoundError),
            (401, UpstreamAuthError),
            (403, UpstreamForbiddenError),
        ],
    )
    async def test_status_mapping(self, status, error_cls):
        client = _client(lambda request: httpx.Response(status, json={}))

        with pytest.raises(error_cls) as exc_info:
            await client.get_commit("octo/repo", "abc1234", TOKEN)

        assert exc_info.value.upstream_status == status

    @pytest.mark.asyncio
    async def test_other_status_carries_upstream_message(self):
        client = _client(
            lambda request: httpx.Response(422, json={"message": "No commit found"})
        )

        with pytest.raises(UpstreamError) as exc_info:
            await client.get_commit_diff("octo/repo", "abc1234", TOKEN)

        assert type(exc_info.value) is UpstreamError
        assert exc_info.value.upstream_status == 422
        assert "422 - No commit found" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        client = _client(lambda request: httpx.Response(502, text="<html>bad</html>"))

        with pytest.raises(UpstreamError) as exc_info:
            await client.get_commit("octo/repo", "abc1234", TOKEN)

        assert "Unknown error" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = _client(handler)

        with pytest.raises(UpstreamTimeoutError):
            await client.get_commit("octo/repo", "abc1234", TOKEN)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)

        with pytest.raises(UpstreamError):
            await client.get_commit_diff("octo/repo", "abc1234", TOKEN)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", [None, "", "short"])
    async def test_bad_token_is_rejected_before_any_request(self, token):
        requests = []
        client = _client(_serve_commit(requests))

        with pytest.raises(UpstreamAuthError):
            await client.get_commit("octo/repo", "abc1234", token)

        assert requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("repo", ["../x", "octo/..", "octo", "a/b/c"])
    async def test_path_like_repo_is_rejected_before_any_request(self, repo):
        requests = []
        client = _client(_serve_commit(requests))

        with pytest.raises(ValidationError):
            await client.get_commit_diff(repo, "abc1234", TOKEN)

        assert requests == []

    @pytest.mark.asyncio
    async def test_unexpected_payload(self):
        client = _client(lambda request: httpx.Response(200, json={"sha": "x"}))

        with pytest.raises(UpstreamError):
            await client.get_commit("octo/repo", "abc1234", TOKEN)
