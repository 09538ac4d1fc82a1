import asyncio
import time
from datetime import datetime, timezone
from typing import Optional

from ..env import LOG, DEFAULT_CORE_CONFIG
from ..errors import ReportNotFoundError, ReportParseError
from ..schema.config import CoreConfig
from ..schema.coverage import CoverageMetadata, CoverageResult
from ..schema.result import Result
from ..schema.tool import GetCoverageRequest
from ..util.generate_ids import track_process
from .coverage_parser import find_coverage_report, parse_report
from .utils import reject_from_error


@track_process
async def get_coverage(
    request: GetCoverageRequest,
    trace_id: str,
    config: Optional[CoreConfig] = None,
) -> Result[CoverageResult]:
    """
    Locate the coverage report for ``request.report_id`` and normalize it.

    Returns:
        Result containing the normalized report. Rejects with
        ``NOT_FOUND`` when no report of the format exists and with
        ``UNPROCESSABLE`` when the report cannot be parsed; no partial
        result is returned in either case.
    """
    config = config or DEFAULT_CORE_CONFIG
    started = time.monotonic()
    try:
        report_path = await asyncio.to_thread(
            find_coverage_report,
            config.artifacts_root,
            request.report_id,
            request.format,
        )
        if report_path is None:
            raise ReportNotFoundError(request.report_id, request.format)
        try:
            content = await asyncio.to_thread(
                report_path.read_text, encoding="utf-8", errors="replace"
            )
        except OSError as e:
            raise ReportParseError(f"Cannot read report {report_path}: {e}") from e
        report = parse_report(content, request.format)
    except Exception as e:
        LOG.error(
            f"get_coverage failed for {request.report_id} ({request.format}): {e}"
        )
        return reject_from_error(e, trace_id)

    duration_ms = int((time.monotonic() - started) * 1000)
    LOG.info(
        f"get_coverage {request.report_id}: {len(report.files)} files from {report_path}"
    )
    return Result.resolve(
        CoverageResult(
            report_id=request.report_id,
            format=request.format,
            timestamp=datetime.now(timezone.utc),
            summary=report.summary,
            files=report.files,
            metadata=CoverageMetadata(
                total_files=len(report.files),
                duration_ms=duration_ms,
                report_path=str(report_path),
            ),
        )
    )
