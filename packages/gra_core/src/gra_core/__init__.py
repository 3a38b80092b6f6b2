from .config import GraSettings, dialect_from_url, gra_settings
from .logging import get_logger, scoped_trace_id, setup_logging

__all__ = [
    "GraSettings",
    "dialect_from_url",
    "get_logger",
    "gra_settings",
    "scoped_trace_id",
    "setup_logging",
]
