"""
Structured Logging Utilities

Attaches execution/session identifiers to log records so the lines of one
execution can be followed through the log file.
"""

import inspect
import logging
from contextvars import ContextVar
from functools import wraps
from typing import Any, Dict, Optional

from exceptions import ApplicationError

# Context variable for request-scoped logging context
_logging_context: ContextVar[Dict[str, Any]] = ContextVar('logging_context', default={})

CONTEXT_KEYS = ("execution_id", "session_id", "file_path")


class StructuredLogger:
    """
    Wrapper around a standard logger that merges the current logging
    context into every record's extra and appends it to the message.

    Usage:
        logger = StructuredLogger(__name__)
        logger.info("Output file created", extra={"execution_id": execution_id})
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _add_context(self, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        context = _logging_context.get().copy()
        if extra:
            context.update(extra)
        return context

    @staticmethod
    def _format(message: str, context: Dict[str, Any]) -> str:
        ids = [f"{key}={context[key]}" for key in CONTEXT_KEYS if context.get(key)]
        return f"{message} [{' '.join(ids)}]" if ids else message

    def _log(self, level: int, message: str, extra: Optional[Dict[str, Any]], exc_info: bool = False):
        context = self._add_context(extra)
        self.logger.log(level, self._format(message, context), extra={"context": context}, exc_info=exc_info)

    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log(logging.DEBUG, message, extra)

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log(logging.INFO, message, extra)

    def warning(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log(logging.WARNING, message, extra)

    def error(self, message: str, extra: Optional[Dict[str, Any]] = None, exc_info: bool = False):
        self._log(logging.ERROR, message, extra, exc_info=exc_info)


def set_logging_context(**kwargs):
    """
    Add identifiers to the logging context of the current task.

    Example:
        set_logging_context(execution_id="exec-1", session_id="MTI3LjAuMC4x")
    """
    context = _logging_context.get().copy()
    context.update(kwargs)
    _logging_context.set(context)


def get_logging_context() -> Dict[str, Any]:
    return _logging_context.get().copy()


def clear_logging_context():
    """Clear the logging context."""
    _logging_context.set({})


def _context_from_kwargs(operation_name: str, kwargs: Dict[str, Any]) -> Dict[str, Any]:
    context = {"operation": operation_name}
    for key in CONTEXT_KEYS:
        if kwargs.get(key) is not None:
            context[key] = kwargs[key]
    return context


def _log_failure(logger: StructuredLogger, operation_name: str, context: Dict[str, Any], error: Exception):
    context["error"] = str(error)
    context["error_type"] = type(error).__name__
    if isinstance(error, ApplicationError):
        # Expected outcome (failed command, cancellation, bad input)
        logger.warning(f"Failed {operation_name}: {error}", extra=context)
    else:
        logger.error(f"Failed {operation_name}", extra=context, exc_info=True)


def log_operation(operation_name: str):
    """
    Log start/completion/failure of an operation.

    execution_id, session_id and file_path keyword arguments are picked up
    as context.

    Example:
        @log_operation("begin_execution")
        async def begin_execution(self, *, session_id, execution_id, ...):
            ...
    """
    def decorator(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            logger = StructuredLogger(func.__module__)
            context = _context_from_kwargs(operation_name, kwargs)
            logger.info(f"Starting {operation_name}", extra=context)
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _log_failure(logger, operation_name, context, e)
                raise
            logger.info(f"Completed {operation_name}", extra=context)
            return result

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            logger = StructuredLogger(func.__module__)
            context = _context_from_kwargs(operation_name, kwargs)
            logger.info(f"Starting {operation_name}", extra=context)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _log_failure(logger, operation_name, context, e)
                raise
            logger.info(f"Completed {operation_name}", extra=context)
            return result

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
