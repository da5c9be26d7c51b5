"""
Error handling decorators and utilities for API endpoints.

Maps application exceptions to HTTP responses in one place so every router
reports failures the same way.
"""

from functools import wraps
from typing import Callable
from fastapi import HTTPException
import inspect
import logging

from constants import HTTPStatus
from exceptions import (
    ApplicationError,
    ConfigurationError,
    InputFileError,
    NoActiveProcessError,
    ProbeError,
    ProviderError,
    RegionFormatError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Checked in order; first match wins
_CLIENT_ERRORS = (ConfigurationError, ValidationError, RegionFormatError, InputFileError)
_UPSTREAM_ERRORS = (ProviderError, ProbeError)


def to_http_exception(operation_name: str, error: Exception) -> HTTPException:
    """
    Convert an exception raised by a service into an HTTPException.

    Args:
        operation_name: Human-readable name of the operation (e.g., "Region calculation")
        error: The exception raised

    Returns:
        HTTPException with a status code matching the error category
    """
    if isinstance(error, _CLIENT_ERRORS):
        logger.warning(f"{operation_name} - {type(error).__name__}: {error.message}")
        return HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=error.message)

    if isinstance(error, NoActiveProcessError):
        logger.info(f"{operation_name} - {error.message}")
        return HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=error.message)

    if isinstance(error, _UPSTREAM_ERRORS):
        logger.error(f"{operation_name} - {type(error).__name__}: {error.message}")
        return HTTPException(status_code=HTTPStatus.BAD_GATEWAY, detail=error.message)

    if isinstance(error, ApplicationError):
        logger.error(f"{operation_name} - Application error: {error.message}", exc_info=True)
        return HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail=f"{operation_name} failed: {error.message}"
        )

    logger.error(f"{operation_name} - Unexpected error: {error}", exc_info=True)
    return HTTPException(
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        detail=f"{operation_name} failed. Please check server logs."
    )


def handle_api_errors(operation_name: str):
    """
    Decorator to handle application errors consistently across endpoints.

    Example:
        @router.post("/calculate-region")
        @handle_api_errors("Region calculation")
        async def calculate_region(...):
            return await service.calculate_region_from_display(...)
    """
    def decorator(func: Callable):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except HTTPException:
                # Re-raise HTTPException as-is to preserve status code and detail
                raise
            except Exception as e:
                raise to_http_exception(operation_name, e) from e

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except HTTPException:
                raise
            except Exception as e:
                raise to_http_exception(operation_name, e) from e

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
