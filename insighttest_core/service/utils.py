from typing import Optional

from ..env import LOG
from ..errors import ToolError, ValidationError
from ..schema.error_code import Code
from ..schema.result import Result


def reject_from_error(e: Exception, trace_id: Optional[str] = None) -> Result:
    """Turn an exception raised below the service layer into a rejected Result."""
    if isinstance(e, ToolError):
        return Result.reject(
            e.message,
            status=e.status,
            errors=e.errors if isinstance(e, ValidationError) else None,
            trace_id=e.trace_id or trace_id,
        )
    LOG.error(f"Unexpected error: {e}", exc_info=e)
    return Result.reject(
        f"Internal error: {e}", status=Code.INTERNAL_ERROR, trace_id=trace_id
    )
