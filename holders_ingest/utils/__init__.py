"""
Utility functions and helpers.
"""
from holders_ingest.utils.logging import LogContext, setup_logging

__all__ = [
    "LogContext",
    "setup_logging",
]
