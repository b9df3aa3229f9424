from typing import Any, Dict, List, Optional

from .base import OptimisticDdbError


class ConnectionError(OptimisticDdbError):
    """Raised when the DynamoDB transport fails."""

    def __init__(self, message: str, original_error: Optional[Exception] = None, context: Optional[Dict[str, Any]] = None):
        """Initialize connection error.

        Args:
            message: Human-readable error message
            original_error: The original exception that caused this error
            context: Additional context information (e.g., endpoint, region)
        """
        super().__init__(message, original_error, context)


class RetryableError(OptimisticDdbError):
    """Raised when DynamoDB throttles or is temporarily unavailable."""

    def __init__(self, message: str, retry_after_seconds: Optional[int] = None, original_error: Optional[Exception] = None):
        self.retry_after_seconds = retry_after_seconds
        context = {}
        if retry_after_seconds:
            context['retry_after_seconds'] = retry_after_seconds
        super().__init__(message, original_error, context)


class StoreValidationError(OptimisticDdbError):
    """Raised when DynamoDB rejects a request as malformed (ValidationException)."""


class TransactionCanceledError(OptimisticDdbError):
    """Raised when TransactWriteItems is cancelled.

    The cancellation reason codes are kept in request order, one per
    transaction operation, with "None" for operations that did not fail.
    """

    def __init__(self, message: str, cancellation_reasons: List[str], original_error: Optional[Exception] = None):
        self.cancellation_reasons = cancellation_reasons
        super().__init__(message, original_error, {'cancellation_reasons': cancellation_reasons})

    @property
    def is_conditional_only(self) -> bool:
        """True when every operation that failed, failed its condition check."""
        failures = [reason for reason in self.cancellation_reasons if reason not in (None, 'None')]
        return len(failures) > 0 and all(reason == 'ConditionalCheckFailed' for reason in failures)
