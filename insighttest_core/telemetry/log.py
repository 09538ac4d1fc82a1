import sys
import logging
import structlog
from ..util.terminal_color import TerminalColorMarks

LOGGER_NAME = "insighttest-core"

# Binds trace_id/tool (or any other key) for every log line inside the block.
bound_logging_vars = structlog.contextvars.bound_contextvars


def get_logging_contextvars() -> dict:
    return structlog.contextvars.get_contextvars()


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.CallsiteParameterAdder(
            [
                structlog.processors.CallsiteParameter.MODULE,
                structlog.processors.CallsiteParameter.LINENO,
            ]
        ),
    ]


def _json_formatter() -> logging.Formatter:
    shared = _shared_processors()
    structlog.configure(
        processors=shared
        + [
            structlog.processors.dict_tracebacks,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
    )


class ColoredFormatter(logging.Formatter):
    """Level-coloured text lines with the bound trace context as a suffix.

    ``LOG.info("started")`` inside ``bound_logging_vars(trace_id="t-1")``
    renders as ``INFO - <time> - started [trace_id=t-1]``.
    """

    LEVEL_COLORS = {
        logging.DEBUG: TerminalColorMarks.CYAN,
        logging.INFO: TerminalColorMarks.BLUE,
        logging.WARNING: TerminalColorMarks.YELLOW,
        logging.ERROR: TerminalColorMarks.RED,
        logging.CRITICAL: TerminalColorMarks.RED + TerminalColorMarks.BOLD,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, TerminalColorMarks.BLUE)
        plain_levelname = record.levelname
        record.levelname = f"{color}{plain_levelname}{TerminalColorMarks.END}"
        try:
            line = super().format(record)
        finally:
            record.levelname = plain_levelname

        context = get_logging_contextvars()
        if not context:
            return line
        pairs = " ".join(f"{k}={v}" for k, v in context.items())
        return f"{line} [{pairs}]"


def get_logger(format: str = "text", level: str = "INFO") -> logging.Logger:
    """Configure and return the package logger.

    Safe to call more than once: the previous handler is replaced, not stacked.
    """
    if format == "json":
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(_json_formatter())
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(
            ColoredFormatter("%(levelname)s - %(asctime)s - %(message)s")
        )

    logger = logging.getLogger(LOGGER_NAME)
    for old in list(logger.handlers):
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger
