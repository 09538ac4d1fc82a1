from typing import Optional

from ..env import LOG, DEFAULT_CORE_CONFIG
from ..infra.sandbox.manager import SandboxManager
from ..schema.config import CoreConfig
from ..schema.result import Result
from ..schema.sandbox import SandboxResult, SandboxSpec
from ..schema.tool import RunCiRequest
from ..util.generate_ids import track_process
from .utils import reject_from_error


def build_sandbox_spec(
    request: RunCiRequest, trace_id: str, config: CoreConfig
) -> SandboxSpec:
    return SandboxSpec(
        project_id=request.project_id,
        trace_id=trace_id,
        tool_name="run_ci",
        image=request.runner.image,
        command=tuple(request.runner.cmd),
        workdir=request.runner.workdir or config.sandbox_default_workdir,
        memory_limit=config.sandbox_memory_limit,
        cpu_limit=config.sandbox_cpu_limit,
        timeout_seconds=request.timeout_sec or config.sandbox_default_timeout_seconds,
        artifact_patterns=tuple(request.artifacts),
    )


@track_process
async def run_ci(
    request: RunCiRequest,
    manager: SandboxManager,
    trace_id: str,
    config: Optional[CoreConfig] = None,
) -> Result[SandboxResult]:
    """
    Run the requested CI command in a sandbox.

    A timed out run resolves with status ``timed_out``; only create and start
    failures reject.
    """
    config = config or DEFAULT_CORE_CONFIG
    spec = build_sandbox_spec(request, trace_id, config)
    LOG.info(
        f"run_ci for project {spec.project_id}: image={spec.image}, "
        f"timeout={spec.timeout_seconds}s, plan={request.test_plan[:100]}"
    )
    try:
        result = await manager.run(spec)
    except Exception as e:
        LOG.error(f"run_ci failed for project {spec.project_id}: {e}")
        return reject_from_error(e, trace_id)
    return Result.resolve(result)
