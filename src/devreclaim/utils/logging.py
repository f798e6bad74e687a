"""Structured logging infrastructure with syslog integration and run ID tracking.

Every scan or clean invocation gets a run ID stored in a ContextVar. Worker
pools copy the caller's context into their threads, so records emitted by
traversal and sizing workers carry the same run ID as the command that
started them.
"""

import contextvars
import logging
import logging.handlers
import sys
import uuid
from typing import Final, TextIO, override

# Run ID context variable for tracing one invocation through worker threads
run_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id",
    default=None,
)

# Log format constants
DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - [%(run_id)s] - %(message)s"

SYSLOG_LOG_FORMAT: Final[str] = "devreclaim[%(process)d]: %(levelname)s - [%(run_id)s] - %(name)s - %(message)s"

DEFAULT_SYSLOG_ADDRESS: Final[str] = "/dev/log"

# Attributes every LogRecord has; anything else arrived through ``extra``
_STANDARD_ATTRS: Final[frozenset[str]] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "message",
        "asctime",
        "run_id",
    }
)


class RunIDFilter(logging.Filter):
    """Logging filter that adds the run ID to log records."""

    @override
    def filter(self, record: logging.LogRecord) -> bool:
        """Add run ID to log record from ContextVar.

        Args:
            record: Log record to enhance with run ID

        Returns:
            True to allow the record to be logged
        """
        run_id = get_run_id()
        record.run_id = run_id if run_id is not None else "N/A"
        return True


class ContextFormatter(logging.Formatter):
    """Formatter that appends ``extra`` context fields as ``key=value`` pairs."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = {
            key: value
            for key, value in record.__dict__.items()  # pyright: ignore[reportAny]
            if key not in _STANDARD_ATTRS and not key.startswith("_")
        }
        if not context:
            return message
        fields = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        return f"{message} | {fields}"


def configure_logging(
    *,
    log_level: str = "WARNING",
    enable_syslog: bool = False,
    syslog_address: str = DEFAULT_SYSLOG_ADDRESS,
    enable_console: bool = True,
    stream: TextIO | None = None,
) -> None:
    """Configure application logging.

    Sets up logging infrastructure with:
    - Run ID tracking via ContextVar
    - Optional syslog integration
    - Console output on stderr, keeping stdout for command results

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_syslog: Enable syslog handler
        syslog_address: Syslog socket address
        enable_console: Enable console output handler
        stream: Console stream, defaults to ``sys.stderr``

    Example:
        >>> configure_logging(log_level="INFO")
        >>> set_run_id(new_run_id())
        >>> logging.getLogger(__name__).info("Walk finished", extra={"candidates": 12})
    """
    root_logger = logging.getLogger()

    level = getattr(logging, log_level.upper(), logging.WARNING)  # pyright: ignore[reportAny]
    root_logger.setLevel(level)  # pyright: ignore[reportAny]

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    run_id_filter = RunIDFilter()

    if enable_syslog:
        try:
            syslog_handler = logging.handlers.SysLogHandler(
                address=syslog_address,
                facility=logging.handlers.SysLogHandler.LOG_USER,
            )
            syslog_handler.setFormatter(logging.Formatter(SYSLOG_LOG_FORMAT))
            syslog_handler.addFilter(run_id_filter)
            root_logger.addHandler(syslog_handler)
        except OSError as exc:
            # Syslog not available, console only
            print(
                f"Warning: Could not connect to syslog at {syslog_address}: {exc}",
                file=sys.stderr,
            )

    if enable_console:
        console_handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
        console_handler.setFormatter(ContextFormatter(DEFAULT_LOG_FORMAT))
        console_handler.addFilter(run_id_filter)
        root_logger.addHandler(console_handler)


def new_run_id() -> str:
    """Generate a short run ID."""
    return uuid.uuid4().hex[:12]


def set_run_id(run_id: str) -> None:
    """Set the run ID for the current context.

    Args:
        run_id: Identifier for the current invocation
    """
    _ = run_id_var.set(run_id)


def get_run_id() -> str | None:
    """Get the current run ID from context.

    Returns:
        Current run ID or None if not set
    """
    return run_id_var.get()


def clear_run_id() -> None:
    """Clear the run ID from the current context."""
    _ = run_id_var.set(None)
