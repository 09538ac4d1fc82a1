from .base import Tool, ToolContext, ToolPool
from ..errors import SandboxError, UpstreamError
from ..schema.result import Result
from ..schema.tool import (
    GetCoverageRequest,
    GetDiffRequest,
    RunCiRequest,
    ToolSchema,
)
from ..service.get_coverage import get_coverage
from ..service.get_diff import get_diff
from ..service.run_ci import run_ci
from ..service.utils import reject_from_error

INSIGHT_TOOLS: ToolPool = {}


def _tool_schema(name: str, description: str, model) -> ToolSchema:
    return ToolSchema(
        function={
            "name": name,
            "description": description,
            "parameters": model.model_json_schema(by_alias=True),
        }
    )


async def get_diff_handler(ctx: ToolContext, request: GetDiffRequest) -> Result:
    if ctx.github_client is None:
        return reject_from_error(
            UpstreamError("GitHub client is not configured"), ctx.trace_id
        )
    return await get_diff(
        request,
        ctx.github_client,
        ctx.secrets.github_token,
        ctx.trace_id,
        config=ctx.config,
    )


async def run_ci_handler(ctx: ToolContext, request: RunCiRequest) -> Result:
    if ctx.sandbox_manager is None:
        return reject_from_error(
            SandboxError("Sandbox manager is not configured"), ctx.trace_id
        )
    return await run_ci(request, ctx.sandbox_manager, ctx.trace_id, config=ctx.config)


async def get_coverage_handler(
    ctx: ToolContext, request: GetCoverageRequest
) -> Result:
    return await get_coverage(request, ctx.trace_id, config=ctx.config)


_get_diff_tool = (
    Tool()
    .use_schema(
        _tool_schema(
            "get_diff",
            "Fetch a commit diff from GitHub, optionally filtered by path prefixes, "
            "with per-file change counts and a short summary of the commit.",
            GetDiffRequest,
        )
    )
    .use_request_model(GetDiffRequest)
    .use_handler(get_diff_handler)
)

_run_ci_tool = (
    Tool()
    .use_schema(
        _tool_schema(
            "run_ci",
            "Run a test command in an isolated container and collect the "
            "artifacts it writes to /artifacts.",
            RunCiRequest,
        )
    )
    .use_request_model(RunCiRequest)
    .use_handler(run_ci_handler)
)

_get_coverage_tool = (
    Tool()
    .use_schema(
        _tool_schema(
            "get_coverage",
            "Find a stored LCOV or Cobertura coverage report and return its "
            "normalized summary and per-file coverage.",
            GetCoverageRequest,
        )
    )
    .use_request_model(GetCoverageRequest)
    .use_handler(get_coverage_handler)
)

INSIGHT_TOOLS[_get_diff_tool.name] = _get_diff_tool
INSIGHT_TOOLS[_run_ci_tool.name] = _run_ci_tool
INSIGHT_TOOLS[_get_coverage_tool.name] = _get_coverage_tool
