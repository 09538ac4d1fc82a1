"""
Tests for request validation and routing in the tool dispatcher.
"""

import httpx
import pytest

from insighttest_core.errors import SandboxCreateError
from insighttest_core.infra.vcs.github import GitHubClient
from insighttest_core.schema.config import CoreConfig
from insighttest_core.schema.error_code import Code
from insighttest_core.schema.result import Result
from insighttest_core.schema.tool import GetDiffRequest, RunCiRequest, ToolSecrets
from insighttest_core.tool.base import Tool, ToolContext
from insighttest_core.tool.dispatcher import (
    dispatch_tool,
    list_tools,
    sanitize_input,
    validate_tool_request,
)
from insighttest_core.tool.insight_tools import INSIGHT_TOOLS

RUN_CI_BODY = {
    "projectId": "web",
    "testPlan": "Run the unit test suite with coverage",
    "runner": {"image": "node:20-alpine", "cmd": ["npm", "test"]},
    "artifacts": ["coverage/", "junit.xml"],
    "timeoutSec": 60,
}


class TestSanitize:
    def test_strings_are_trimmed_and_stripped(self):
        assert sanitize_input({"repo": "  octo/<repo>  "}) == {"repo": "octo/repo"}

    def test_nested_objects_and_lists(self):
        body = {"runner": {"image": " node ", "cmd": [" npm ", "test", 3]}}
        assert sanitize_input(body) == {
            "runner": {"image": "node", "cmd": ["npm", "test", 3]}
        }

    def test_objects_inside_lists_are_kept_as_is(self):
        body = {"items": [{"name": " <a> "}, " <b> "]}
        assert sanitize_input(body) == {"items": [{"name": " <a> "}, "<b>"]}

    def test_non_dict_passes_through(self):
        assert sanitize_input(42) == 42


class TestValidate:
    def test_valid_get_diff_drops_unknown_fields(self):
        r = validate_tool_request(
            "get_diff",
            {"repo": "octo/repo", "commitId": "abc1234", "evil": "$(rm -rf /)"},
        )
        request, eil = r.unpack()
        assert eil is None
        assert isinstance(request, GetDiffRequest)
        assert request.commit_id == "abc1234"
        assert "evil" not in request.model_dump()

    def test_all_errors_are_reported_at_once(self):
        r = validate_tool_request(
            "get_diff", {"repo": "not-a-repo", "commitId": "abc", "maxPatchBytes": 10}
        )
        assert r.error.status == Code.BAD_REQUEST
        fields = [e.split(":")[0] for e in r.error.errors]
        assert fields == ["repo", "commitId", "maxPatchBytes"]

    def test_run_ci_constraints(self):
        body = dict(RUN_CI_BODY)
        body.update(
            {
                "timeoutSec": 5,
                "artifacts": [],
                "runner": {"image": "node", "cmd": []},
            }
        )
        r = validate_tool_request("run_ci", body)
        fields = {e.split(":")[0] for e in r.error.errors}
        assert fields == {"timeoutSec", "artifacts", "runner.cmd"}

    def test_missing_required_fields(self):
        r = validate_tool_request("get_coverage", {})
        assert {e.split(":")[0] for e in r.error.errors} == {"reportId", "format"}

    def test_unsupported_coverage_format(self):
        r = validate_tool_request("get_coverage", {"reportId": "x", "format": "jacoco"})
        assert r.error.errors[0].startswith("format:")

    def test_project_id_cannot_escape_artifacts_root(self):
        body = dict(RUN_CI_BODY, projectId="../etc")
        r = validate_tool_request("run_ci", body)
        assert r.error.errors == ["projectId: projectId must be a single path segment"]

    @pytest.mark.parametrize(
        "body, field",
        [
            ({"repo": "octo/repo", "commitId": "../../../user"}, "commitId"),
            ({"repo": "octo/repo", "commitId": "abc1234?x=1"}, "commitId"),
            ({"repo": "../x", "commitId": "abc1234"}, "repo"),
            ({"repo": "octo/..", "commitId": "abc1234"}, "repo"),
        ],
    )
    def test_get_diff_rejects_path_like_values(self, body, field):
        r = validate_tool_request("get_diff", body)
        assert r.error.status == Code.BAD_REQUEST
        assert [e.split(":")[0] for e in r.error.errors] == [field]

    def test_valid_run_ci(self):
        r = validate_tool_request("run_ci", RUN_CI_BODY)
        assert isinstance(r.data, RunCiRequest)
        assert r.data.runner.cmd == ["npm", "test"]
        assert r.data.timeout_sec == 60

    def test_unknown_tool(self):
        r = validate_tool_request("delete_repo", {})
        assert r.error.status == Code.NOT_FOUND


class TestDispatch:
    @pytest.mark.asyncio
    async def test_run_ci_end_to_end(self, sandbox_manager, fake_runtime, core_config):
        ctx = ToolContext(
            trace_id="trace-1", sandbox_manager=sandbox_manager, config=core_config
        )

        response = await dispatch_tool("run_ci", RUN_CI_BODY, ctx)

        assert response.success is True
        assert response.tool == "run_ci"
        assert response.trace_id == "trace-1"
        assert response.data.status == "completed"
        assert fake_runtime.created[0].labels["insighttest.trace"] == "trace-1"
        assert fake_runtime.removed == ["fake-1"]

        dumped = response.model_dump(mode="json", by_alias=True)
        assert dumped["data"]["exitCode"] == 0

    @pytest.mark.asyncio
    async def test_invalid_request_never_reaches_runtime(
        self, sandbox_manager, fake_runtime
    ):
        ctx = ToolContext(trace_id="trace-2", sandbox_manager=sandbox_manager)

        response = await dispatch_tool("run_ci", {"projectId": "web"}, ctx)

        assert response.success is False
        assert response.error.status == Code.BAD_REQUEST
        assert response.error.trace_id == "trace-2"
        assert len(response.error.errors) >= 3
        assert fake_runtime.created == []

    @pytest.mark.asyncio
    async def test_sandbox_failure_is_reported(
        self, core_config, runtime_factory
    ):
        from insighttest_core.infra.sandbox.manager import SandboxManager

        runtime = runtime_factory(fail_create=SandboxCreateError("image not found"))
        ctx = ToolContext(
            trace_id="trace-3",
            sandbox_manager=SandboxManager(runtime, config=core_config),
            config=core_config,
        )

        response = await dispatch_tool("run_ci", RUN_CI_BODY, ctx)

        assert response.success is False
        assert response.error.status == Code.SERVICE_UNAVAILABLE
        assert response.error.errmsg == "image not found"
        assert response.error.trace_id == "trace-3"

    @pytest.mark.asyncio
    async def test_get_diff_without_token(self):
        client = GitHubClient.from_default(
            config=CoreConfig(),
            transport=httpx.MockTransport(lambda request: httpx.Response(200)),
        )
        ctx = ToolContext(trace_id="trace-4", github_client=client)

        response = await dispatch_tool(
            "get_diff", {"repo": "octo/repo", "commitId": "abc1234"}, ctx
        )

        assert response.success is False
        assert response.error.status == Code.UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_get_diff_with_token(self):
        def handler(request):
            if request.headers["Accept"].endswith("diff"):
                return httpx.Response(200, text="diff --git a/x.py b/x.py\n+a\n")
            return httpx.Response(
                200, json={"sha": "abc1234", "commit": {"message": "m", "author": {}}}
            )

        client = GitHubClient.from_default(
            config=CoreConfig(), transport=httpx.MockTransport(handler)
        )
        ctx = ToolContext(
            trace_id="trace-5",
            github_client=client,
            secrets=ToolSecrets(github_token="ghp_0123456789abcdef"),
        )

        response = await dispatch_tool(
            "get_diff", {"repo": "octo/repo", "commitId": "abc1234"}, ctx
        )

        assert response.success is True
        assert response.data.files[0].additions == 1

    @pytest.mark.asyncio
    async def test_missing_collaborator(self):
        response = await dispatch_tool(
            "run_ci", RUN_CI_BODY, ToolContext(trace_id="trace-6")
        )
        assert response.success is False
        assert response.error.status == Code.SERVICE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        response = await dispatch_tool("nope", {}, ToolContext(trace_id="trace-7"))
        assert response.success is False
        assert response.error.status == Code.NOT_FOUND
        assert response.error.trace_id == "trace-7"

    @pytest.mark.asyncio
    async def test_unexpected_handler_error(self):
        async def broken_handler(ctx, request):
            raise RuntimeError("boom")

        async def fine_handler(ctx, request):
            return Result.resolve("ok")

        tools = {
            "get_coverage": Tool(
                schema=INSIGHT_TOOLS["get_coverage"].schema,
                request_model=INSIGHT_TOOLS["get_coverage"].request_model,
                handler=broken_handler,
            )
        }
        ctx = ToolContext(trace_id="trace-8")
        body = {"reportId": "x", "format": "lcov"}

        response = await dispatch_tool("get_coverage", body, ctx, tools=tools)
        assert response.success is False
        assert response.error.status == Code.INTERNAL_ERROR
        assert response.error.trace_id == "trace-8"

        tools["get_coverage"].use_handler(fine_handler)
        response = await dispatch_tool("get_coverage", body, ctx, tools=tools)
        assert response.success is True
        assert response.data == "ok"


class TestListTools:
    def test_catalogue(self):
        schemas = list_tools()
        assert [s.function.name for s in schemas] == [
            "get_diff",
            "run_ci",
            "get_coverage",
        ]

    def test_parameters_are_flat_and_camel_cased(self):
        run_ci = {s.function.name: s for s in list_tools()}["run_ci"]
        params = run_ci.function.parameters
        assert "$defs" not in params
        assert {"projectId", "testPlan", "runner", "artifacts", "timeoutSec"} <= set(
            params["properties"]
        )
        assert "image" in params["properties"]["runner"]["properties"]
        assert set(params["required"]) == {"projectId", "testPlan", "runner", "artifacts"}
