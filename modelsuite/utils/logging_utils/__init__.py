"""
Convenience accessors for the structured logging facility.

Usage:
    from modelsuite.utils.logging_utils import get_logger
    log = get_logger("suite")
    log.info("suite created", extra={"models": ["Person"]})
"""

from .manager import (
    ContextAwareFormatter,
    LogCategory,
    LoggerManager,
    get_logger,
    get_log_context,
    init_logger,
    logger_manager,
    log_context,
    shutdown_logger,
)

__all__ = [
    "ContextAwareFormatter",
    "LogCategory",
    "LoggerManager",
    "get_logger",
    "get_log_context",
    "log_context",
    "init_logger",
    "logger_manager",
    "shutdown_logger",
]
