"""
Error types and error codes for mailrelay.
Provides structured error handling across all packages.
"""

from enum import Enum
from typing import Dict, Any, Optional


class ErrorCode(str, Enum):
    """Standard error codes used across mailrelay."""
    CIRCUIT_OPEN = "circuit_open"
    BACKEND_FAILURE = "backend_failure"
    ALL_BACKENDS_EXHAUSTED = "all_backends_exhausted"
    DELIVERY_FAILED = "delivery_failed"
    CONFIGURATION_ERROR = "configuration_error"
    CONTRACT_VIOLATION = "contract_violation"
    INTERNAL_ERROR = "internal_error"

    def __str__(self) -> str:
        return self.value


class MailRelayError(Exception):
    """Base exception for all mailrelay errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        result = {
            'error': self.error_code.value,
            'message': self.message,
            'details': self.details
        }

        if self.cause:
            result['cause'] = str(self.cause)

        return result

    def __str__(self) -> str:
        return self.message


class BreakerOpenError(MailRelayError):
    """Raised when a circuit breaker rejects a call without running it."""

    def __init__(self, backend: str, message: Optional[str] = None):
        super().__init__(
            message or f"Circuit breaker '{backend}' is open",
            ErrorCode.CIRCUIT_OPEN,
            {'backend': backend}
        )
        self.backend = backend


class BackendFailureError(MailRelayError):
    """Raised when a single delivery attempt against a backend fails."""

    def __init__(
        self,
        backend: str,
        description: str,
        cause: Optional[Exception] = None
    ):
        super().__init__(
            description,
            ErrorCode.BACKEND_FAILURE,
            {'backend': backend},
            cause
        )
        self.backend = backend
        self.description = description


class AllBackendsExhaustedError(MailRelayError):
    """Raised when a fallback pass found no backend able to deliver."""

    def __init__(self, last_error: Optional[Exception] = None):
        message = str(last_error) if last_error else "All backends failed"
        super().__init__(message, ErrorCode.ALL_BACKENDS_EXHAUSTED, cause=last_error)
        self.last_error = last_error


class DeliveryFailedError(MailRelayError):
    """Raised to the work queue when a queued message could not be sent."""

    def __init__(self, message_id: str, error: Optional[str] = None):
        super().__init__(
            error or "Failed to send message",
            ErrorCode.DELIVERY_FAILED,
            {'message_id': message_id}
        )
        self.message_id = message_id


class ConfigurationError(MailRelayError):
    """Raised when there's a configuration error."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)
        self.config_key = config_key
        self.config_value = config_value

        if config_key:
            self.details['config_key'] = config_key
        if config_value is not None:
            self.details['config_value'] = str(config_value)


class ContractViolationError(MailRelayError):
    """Raised when a caller breaks a component's usage contract."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.CONTRACT_VIOLATION, details)


class ProcessorNotRegisteredError(ContractViolationError):
    """Raised when the work queue is used before a processor is registered."""

    def __init__(self):
        super().__init__("No processor registered with the work queue")


class AttemptStateError(ContractViolationError):
    """Raised when a finished delivery attempt is updated again."""

    def __init__(self, attempt_id: str, status: str):
        super().__init__(
            f"Attempt {attempt_id} is already {status}",
            {'attempt_id': attempt_id, 'status': status}
        )


__all__ = [
    'ErrorCode',
    'MailRelayError',
    'BreakerOpenError',
    'BackendFailureError',
    'AllBackendsExhaustedError',
    'DeliveryFailedError',
    'ConfigurationError',
    'ContractViolationError',
    'ProcessorNotRegisteredError',
    'AttemptStateError',
]
