"""
Entry point of the tool engine.

The gateway calls :func:`dispatch_tool` with a tool name, the raw request body
and a :class:`ToolContext`. The body is sanitized, validated against the
tool's request model, and only then routed to its handler. Every outcome,
success or failure, comes back as a :class:`ToolResponse`.
"""

from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from ..env import LOG
from ..errors import UnknownToolError, ValidationError
from ..schema.result import Result
from ..schema.tool import ToolRequestBase, ToolResponse, ToolSchema
from ..service.utils import reject_from_error
from ..telemetry.log import bound_logging_vars
from .base import ToolContext, ToolPool
from .insight_tools import INSIGHT_TOOLS

_VALUE_ERROR_PREFIX = "Value error, "


def sanitize_input(value: Any) -> Any:
    """Trim strings and drop ``<``/``>`` from them, recursing into objects.

    String items of lists are only trimmed; any other list item is kept as is.
    """
    if isinstance(value, str):
        return value.replace("<", "").replace(">", "").strip()
    if isinstance(value, dict):
        return {k: sanitize_input(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_sanitize_item(item) for item in value]
    return value


def _sanitize_item(item: Any) -> Any:
    if isinstance(item, str):
        return item.strip()
    return item


def format_validation_errors(e: PydanticValidationError) -> list[str]:
    messages = []
    for err in e.errors():
        msg = err["msg"]
        if msg.startswith(_VALUE_ERROR_PREFIX):
            msg = msg[len(_VALUE_ERROR_PREFIX) :]
        loc = ".".join(str(part) for part in err["loc"])
        messages.append(f"{loc}: {msg}" if loc else msg)
    return messages


def validate_tool_request(
    tool_name: str,
    body: Any,
    tools: Optional[ToolPool] = None,
) -> Result[ToolRequestBase]:
    """
    Validate ``body`` against the request model of ``tool_name``.

    Returns:
        Result containing the normalized request, or a rejection listing every
        validation error at once. Unknown fields are dropped.
    """
    tools = INSIGHT_TOOLS if tools is None else tools
    tool = tools.get(tool_name)
    if tool is None:
        return reject_from_error(UnknownToolError(tool_name))
    try:
        request = tool.request_model.model_validate(sanitize_input(body))
    except PydanticValidationError as e:
        return reject_from_error(ValidationError(format_validation_errors(e)))
    return Result.resolve(request)


async def dispatch_tool(
    tool_name: str,
    body: Any,
    ctx: ToolContext,
    tools: Optional[ToolPool] = None,
) -> ToolResponse:
    tools = INSIGHT_TOOLS if tools is None else tools
    with bound_logging_vars(trace_id=ctx.trace_id, tool=tool_name):
        r = validate_tool_request(tool_name, body, tools=tools)
        request, eil = r.unpack()
        if eil:
            eil.trace_id = ctx.trace_id
            LOG.warning(f"Rejected {tool_name} request: {eil.errmsg}")
            return ToolResponse(
                success=False, tool=tool_name, trace_id=ctx.trace_id, error=eil
            )

        LOG.info(f"Dispatching {tool_name}")
        try:
            r = await tools[tool_name].handler(ctx, request)
        except Exception as e:
            r = reject_from_error(e, ctx.trace_id)

        data, eil = r.unpack()
        if eil:
            eil.trace_id = eil.trace_id or ctx.trace_id
            LOG.warning(f"{tool_name} failed: {eil.errmsg}")
            return ToolResponse(
                success=False, tool=tool_name, trace_id=ctx.trace_id, error=eil
            )
        LOG.info(f"{tool_name} succeeded")
        return ToolResponse(
            success=True, tool=tool_name, trace_id=ctx.trace_id, data=data
        )


def list_tools(tools: Optional[ToolPool] = None) -> list[ToolSchema]:
    tools = INSIGHT_TOOLS if tools is None else tools
    return [tool.schema for tool in tools.values()]
