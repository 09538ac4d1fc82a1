"""Exceptions raised by the tool engine.

Components raise these; the service layer turns them into a rejected
:class:`~insighttest_core.schema.result.Result` carrying ``status`` and the
trace id.
"""

from __future__ import annotations

from typing import Optional

from .schema.error_code import Code


class ToolError(Exception):
    """Base exception for every tool failure.

    Attributes:
        status: The error code reported to the gateway.
        trace_id: Trace id of the call that failed, when known.
    """

    status: Code = Code.INTERNAL_ERROR

    def __init__(self, message: str, trace_id: Optional[str] = None) -> None:
        self.message = message
        self.trace_id = trace_id
        super().__init__(message)


class ValidationError(ToolError):
    """Raised when a request body fails its tool schema."""

    status = Code.BAD_REQUEST

    def __init__(
        self,
        errors: list[str],
        trace_id: Optional[str] = None,
    ) -> None:
        self.errors = list(errors)
        super().__init__(", ".join(self.errors), trace_id=trace_id)


class UnknownToolError(ToolError):
    status = Code.NOT_FOUND

    def __init__(self, tool_name: str, trace_id: Optional[str] = None) -> None:
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' is not supported", trace_id=trace_id)


# -------------------------- upstream (VCS API) -------------------------- #


class UpstreamError(ToolError):
    """Raised for upstream API failures without a dedicated mapping.

    Attributes:
        upstream_status: HTTP status returned by the upstream, if any.
    """

    status = Code.BAD_GATEWAY

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        trace_id: Optional[str] = None,
    ) -> None:
        self.upstream_status = upstream_status
        super().__init__(message, trace_id=trace_id)


class UpstreamAuthError(UpstreamError):
    status = Code.UNAUTHORIZED


class UpstreamNotFoundError(UpstreamError):
    status = Code.NOT_FOUND


class UpstreamForbiddenError(UpstreamError):
    status = Code.FORBIDDEN


class UpstreamTimeoutError(UpstreamError):
    status = Code.GATEWAY_TIMEOUT


# -------------------------- sandbox -------------------------- #


class SandboxError(ToolError):
    status = Code.SERVICE_UNAVAILABLE


class SandboxCreateError(SandboxError):
    """Raised when the container (or its output directory) cannot be created."""


class SandboxStartError(SandboxError):
    """Raised when a created container fails to start.

    Attributes:
        container_id: Id of the container that was created but not started.
    """

    def __init__(
        self,
        message: str,
        container_id: Optional[str] = None,
        trace_id: Optional[str] = None,
    ) -> None:
        self.container_id = container_id
        super().__init__(message, trace_id=trace_id)


# -------------------------- coverage -------------------------- #


class ReportNotFoundError(ToolError):
    status = Code.NOT_FOUND

    def __init__(
        self, report_id: str, format: str, trace_id: Optional[str] = None
    ) -> None:
        self.report_id = report_id
        self.format = format
        super().__init__(
            f"No {format} coverage report found for id: {report_id}",
            trace_id=trace_id,
        )


class ReportParseError(ToolError):
    """Raised when a report does not have the shape of the requested format."""

    status = Code.UNPROCESSABLE
