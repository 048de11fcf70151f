"""
Utilities package for Replication Orchestrator

Contains logging and URL helpers. The document store client lives in
``utils.store_client`` and config file loading in ``utils.config``.
"""

from .logger import setup_logger, get_logger, set_log_context, LoggerContext
from .urls import redact_url, extend_url, control_database_url

__all__ = [
    "setup_logger",
    "get_logger",
    "set_log_context",
    "LoggerContext",
    "redact_url",
    "extend_url",
    "control_database_url"
]
