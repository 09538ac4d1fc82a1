import time
import uuid
from functools import wraps
from ..env import LOG
from ..telemetry.log import bound_logging_vars


def generate_temp_id() -> str:
    return uuid.uuid4().hex


def generate_run_token() -> str:
    """Millisecond start time plus a random suffix; unique across concurrent runs."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def track_process(func):
    """Log entry and exit (with elapsed time) of a service coroutine."""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        step = func.__name__
        started = time.monotonic()
        with bound_logging_vars(step_id=generate_temp_id()[:12], step=step):
            LOG.debug(f"Enter {step}")
            try:
                return await func(*args, **kwargs)
            finally:
                elapsed_ms = int((time.monotonic() - started) * 1000)
                LOG.info(f"Exit {step} after {elapsed_ms}ms")

    return wrapper
