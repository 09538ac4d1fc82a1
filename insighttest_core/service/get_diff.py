import time
from typing import Optional

from ..env import LOG, DEFAULT_CORE_CONFIG
from ..infra.vcs.github import GitHubClient
from ..schema.config import CoreConfig
from ..schema.diff import DiffMetadata, DiffResult
from ..schema.result import Result
from ..schema.tool import GetDiffRequest
from ..util.generate_ids import track_process
from .diff_parser import build_scoped_context, parse_diff
from .utils import reject_from_error


@track_process
async def get_diff(
    request: GetDiffRequest,
    client: GitHubClient,
    token: Optional[str],
    trace_id: str,
    config: Optional[CoreConfig] = None,
) -> Result[DiffResult]:
    """
    Fetch one commit and return its parsed, optionally path-filtered diff.

    Args:
        request: Validated ``get_diff`` request.
        client: GitHub API client.
        token: Upstream token resolved by the gateway.
        trace_id: Trace id of the call.
        config: Overrides ``DEFAULT_CORE_CONFIG``.

    Returns:
        Result containing the diff envelope, or an upstream error.
    """
    config = config or DEFAULT_CORE_CONFIG
    started = time.monotonic()
    max_patch_bytes = request.max_patch_bytes or config.diff_default_max_patch_bytes
    try:
        commit = await client.get_commit(request.repo, request.commit_id, token)
        diff_text = await client.get_commit_diff(
            request.repo, request.commit_id, token
        )
    except Exception as e:
        LOG.error(f"get_diff failed for {request.repo}@{request.commit_id}: {e}")
        return reject_from_error(e, trace_id)

    files = parse_diff(diff_text, paths=request.paths, max_patch_bytes=max_patch_bytes)
    duration_ms = int((time.monotonic() - started) * 1000)
    LOG.info(
        f"get_diff {request.repo}@{request.commit_id}: {len(files)} files in {duration_ms}ms"
    )
    return Result.resolve(
        DiffResult(
            commit_id=request.commit_id,
            repo=request.repo,
            commit_message=commit.message,
            author=commit.author,
            timestamp=commit.timestamp,
            files=files,
            scoped_context=build_scoped_context(files, commit),
            metadata=DiffMetadata(
                total_files=len(files),
                total_additions=sum(f.additions for f in files),
                total_deletions=sum(f.deletions for f in files),
                duration_ms=duration_ms,
            ),
        )
    )
