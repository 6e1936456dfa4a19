"""
Standardized Error Handling for Cellarwise

Provides the exception hierarchy and consistent error handling patterns
across all modules.
"""

import logging
from typing import Any, Optional
from pydantic import ValidationError

logger = logging.getLogger(__name__)


class CellarError(Exception):
    """Base exception for Cellarwise."""
    pass


class ProfileSourceError(CellarError):
    """Profile service errors (API failures, rate limits)."""
    pass


class FatalStorageError(CellarError):
    """Row or job storage could not be reached or refused a write."""
    pass


class JobAlreadyRunning(CellarError):
    """Another backfill job already holds the running slot."""

    def __init__(self, running_job_id: Optional[str] = None):
        self.running_job_id = running_job_id
        detail = f" (job {running_job_id})" if running_job_id else ""
        super().__init__(f"A backfill job is already running{detail}")


class JobNotFound(CellarError):
    """No backfill job with the requested id."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Backfill job not found: {job_id}")


class WineNotFound(CellarError):
    """No wine row with the requested id."""

    def __init__(self, wine_id: str):
        self.wine_id = wine_id
        super().__init__(f"Wine not found: {wine_id}")


class InvalidJobState(CellarError):
    """Requested transition is not allowed from the job's current state."""

    def __init__(self, job_id: str, status: str, action: str):
        self.job_id = job_id
        self.status = status
        super().__init__(f"Cannot {action} job {job_id} in status '{status}'")


def handle_profile_error(error: Exception, operation: str, fallback_value: Any = None) -> Any:
    """
    Standardized profile-service error handling.

    Args:
        error: Exception that occurred
        operation: Description of operation
        fallback_value: Value to return on error

    Returns:
        fallback_value if error is recoverable, otherwise raises ProfileSourceError
    """
    error_type = type(error).__name__

    # Validation errors - log and return fallback
    if isinstance(error, ValidationError):
        logger.error(f"Profile response validation failed during {operation}: {error}")
        return fallback_value

    # JSON decode errors - log and return fallback
    if error_type == "JSONDecodeError":
        logger.error(f"Invalid JSON from profile service during {operation}: {error}")
        return fallback_value

    # API rate limits - let retry logic handle it
    if "rate limit" in str(error).lower() or error_type == "RateLimitError":
        logger.warning(f"Rate limit hit during {operation}: {error}")
        raise ProfileSourceError(f"Rate limit during {operation}") from error

    if "api" in error_type.lower():
        logger.error(f"API error during {operation}: {error}")
        raise ProfileSourceError(f"API error during {operation}") from error

    logger.error(f"Unexpected error during {operation}: {error_type} - {error}")
    raise ProfileSourceError(f"Unexpected error during {operation}") from error


def describe_error(error: BaseException, max_length: int = 500) -> str:
    """One-line, length-capped description for persisted failure records."""
    message = f"{type(error).__name__}: {error}"
    if len(message) > max_length:
        message = message[:max_length - 3] + "..."
    return message


__all__ = [
    'CellarError',
    'ProfileSourceError',
    'FatalStorageError',
    'JobAlreadyRunning',
    'JobNotFound',
    'WineNotFound',
    'InvalidJobState',
    'handle_profile_error',
    'describe_error'
]
