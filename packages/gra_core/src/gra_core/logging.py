import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar, Token
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Generator, Optional, Union

# Trace id of the current unit of work (request, job, script run)
trace_id: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(trace_str)s%(name)s: %(message)s"


class TraceFormatter(logging.Formatter):
    """
    Formatter that prefixes records with the active trace id and logs in UTC.
    """

    converter = time.gmtime

    def formatTime(self, record, datefmt=None):  # noqa: N802
        ct = self.converter(record.created)
        if datefmt:
            return time.strftime(datefmt, ct)
        t = time.strftime("%Y-%m-%d %H:%M:%S", ct)
        return "%s.%03dZ" % (t, record.msecs)

    def format(self, record: logging.LogRecord) -> str:
        tid = trace_id.get()
        # Distinct attribute name so it never collides with extra={}
        record.trace_str = f"[{tid}] " if tid else ""
        return super().format(record)


def get_logger(name: str) -> logging.Logger:
    """
    Returns a standard logger instance.

    Name loggers after the module that owns them:
    >>> logger = get_logger(__name__)
    """
    return logging.getLogger(name)


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    max_bytes: int = 10_485_760,  # 10MB
    backup_count: int = 5,
    capture_roots: bool = False,
    module_name: str = "gra_db",
) -> logging.Logger:
    """
    Configure logging for the gra packages.

    Args:
        level: Logging level name or number.
        log_file: Optional path for a rotating log file.
        capture_roots: Configure the root logger instead of ``module_name``.
        module_name: Namespace configured when ``capture_roots`` is False.

    Returns:
        The configured logger.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    target = logging.getLogger() if capture_roots else logging.getLogger(module_name)

    # Reconfiguration replaces handlers instead of stacking them.
    target.handlers.clear()
    target.setLevel(level)

    formatter = TraceFormatter(LOG_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    target.addHandler(console)

    if log_file:
        file_path = Path(log_file).resolve()
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                file_path,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
        except OSError as e:
            # Read-only filesystems still get console logging.
            sys.stderr.write(f"Failed to setup log file: {e}\n")
        else:
            file_handler.setFormatter(formatter)
            target.addHandler(file_handler)

    if not capture_roots:
        target.propagate = False

    return target


def set_trace_id(value: str) -> Token:
    """
    Sets the trace id and returns a token for cleanup.

    >>> token = set_trace_id("req-555")
    >>> reset_trace_id(token)
    """
    return trace_id.set(value)


def reset_trace_id(token: Token) -> None:
    trace_id.reset(token)


@contextmanager
def scoped_trace_id(value: str) -> Generator[None, None, None]:
    """
    Context manager that sets a trace id for the duration of the block.

    >>> with scoped_trace_id("job-42"):
    ...     pass
    """
    token = set_trace_id(value)
    try:
        yield
    finally:
        reset_trace_id(token)
