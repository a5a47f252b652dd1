# src/uuid_archiver/exceptions.py

"""
Shared custom exceptions for the UUID Archiver service.

Keeping every exception in one module lets the clients, the pipeline stages
and the Lambda adapters raise and catch the same types without import cycles.

Exception Hierarchy:
- UuidArchiverError (base)
  - RetryableError (the next redelivery or scheduled tick may succeed)
    - S3ThrottlingError
    - S3TimeoutError
    - S3OperationError
    - S3DeleteError
    - QueueSendError
    - ConsolidationError
  - NonRetryableError (retrying will not help)
    - ValidationError
      - InvalidRecordError
    - S3AccessDeniedError
    - S3ObjectNotFoundError
    - ConfigurationError
"""

from typing import Any, Dict, List, Optional


class UuidArchiverError(Exception):
    """Base exception for all UUID Archiver service errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = dict(context) if context else {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "retryable": isinstance(self, RetryableError),
        }


class RetryableError(UuidArchiverError):
    """Base class for errors that can be retried."""

    pass


class NonRetryableError(UuidArchiverError):
    """Base class for errors that should not be retried."""

    pass


# === S3-Related Errors ===


class S3Error(UuidArchiverError):
    """Base class for S3-related errors."""

    pass


class S3ObjectNotFoundError(S3Error, NonRetryableError):
    """Raised when a requested S3 object does not exist."""

    def __init__(self, bucket: str, key: str, **kwargs):
        message = f"S3 object not found: s3://{bucket}/{key}"
        context = {"bucket": bucket, "key": key}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(
            message, error_code="S3_OBJECT_NOT_FOUND", context=context, **kwargs
        )


class S3AccessDeniedError(S3Error, NonRetryableError):
    """Raised when access is denied to an S3 bucket or object."""

    def __init__(self, bucket: str, key: str, **kwargs):
        message = f"Access denied to S3 object: s3://{bucket}/{key}"
        context = {"bucket": bucket, "key": key}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(
            message, error_code="S3_ACCESS_DENIED", context=context, **kwargs
        )


class S3ThrottlingError(S3Error, RetryableError):
    """Raised when S3 operations are being throttled."""

    def __init__(self, operation: str, **kwargs):
        message = f"S3 operation throttled: {operation}"
        context = {"operation": operation}
        context.update(kwargs.pop("context", None) or {})
        kwargs.setdefault("error_code", "S3_THROTTLING")
        super().__init__(message, context=context, **kwargs)


class S3TimeoutError(S3Error, RetryableError):
    """Raised when S3 operations time out or the endpoint is unreachable."""

    def __init__(self, operation: str, timeout_seconds: float, **kwargs):
        message = f"S3 operation timed out after {timeout_seconds}s: {operation}"
        context = {}
        if "context" in kwargs:
            context.update(kwargs.pop("context") or {})
        context.update({"operation": operation, "timeout_seconds": timeout_seconds})
        kwargs.setdefault("error_code", "S3_TIMEOUT")
        super().__init__(message, context=context, **kwargs)


class S3OperationError(S3Error, RetryableError):
    """Raised for any other S3 client error."""

    def __init__(self, operation: str, reason: str, **kwargs):
        message = f"S3 {operation} failed: {reason}"
        context = {"operation": operation, "reason": reason}
        context.update(kwargs.pop("context", None) or {})
        kwargs.setdefault("error_code", "S3_CLIENT_ERROR")
        super().__init__(message, context=context, **kwargs)


class S3DeleteError(S3Error, RetryableError):
    """Raised when a batch delete reports keys it could not remove."""

    def __init__(self, bucket: str, failed_keys: List[str], **kwargs):
        message = f"Failed to delete {len(failed_keys)} object(s) from s3://{bucket}"
        context = {"bucket": bucket, "failed_keys": list(failed_keys)}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(
            message, error_code="S3_DELETE_FAILED", context=context, **kwargs
        )
        self.failed_keys = list(failed_keys)


# === Queue Errors ===


class QueueError(UuidArchiverError):
    """Base class for queue-related errors."""

    pass


class QueueSendError(QueueError, RetryableError):
    """Raised when a record could not be enqueued."""

    def __init__(self, queue_url: str, reason: str, **kwargs):
        message = f"Failed to send message to queue: {reason}"
        context = {"queue_url": queue_url, "reason": reason}
        context.update(kwargs.pop("context", None) or {})
        kwargs.setdefault("error_code", "QUEUE_SEND_FAILED")
        super().__init__(message, context=context, **kwargs)


# === Validation Errors ===


class ValidationError(NonRetryableError):
    """Base class for validation errors."""

    pass


class InvalidRecordError(ValidationError):
    """Raised when an inbound record does not have the (ts, id_type, id) shape."""

    def __init__(self, errors: List[Dict[str, str]], **kwargs):
        message = "Invalid record"
        context = {"errors": list(errors)}
        kwargs.setdefault("error_code", "INVALID_RECORD")
        super().__init__(message, context=context, **kwargs)
        self.errors = list(errors)


# === Configuration Errors ===


class ConfigurationError(NonRetryableError):
    """Raised when there's an error in the application configuration."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="CONFIGURATION_ERROR", **kwargs)


# === Processing Errors ===


class ConsolidationError(RetryableError):
    """Raised when an hour could not be consolidated."""

    def __init__(self, hour: str, reason: str, **kwargs):
        message = f"Consolidation of hour {hour} failed: {reason}"
        context = {"hour": hour, "reason": reason}
        context.update(kwargs.pop("context", None) or {})
        kwargs.setdefault("error_code", "CONSOLIDATION_FAILED")
        super().__init__(message, context=context, **kwargs)


# === Utility Functions ===


def is_retryable_error(error: Exception) -> bool:
    """Check if an error is retryable."""
    return isinstance(error, RetryableError)


def get_error_context(error: Exception) -> Dict[str, Any]:
    """Extract error context for logging."""
    if isinstance(error, UuidArchiverError):
        return error.to_dict()
    else:
        return {
            "error_type": error.__class__.__name__,
            "message": str(error),
            "retryable": False,
        }
