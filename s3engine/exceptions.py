"""
s3engine - Exceptions

This module contains all custom exceptions raised by the engine.

Retryable kinds (TransportError, ServiceTransientError) are handled inside
the transport executor and only reach the caller wrapped in RetryExhausted.
"""

from typing import Optional, Dict, Any


class S3EngineError(Exception):
    """
    Base exception for all s3engine errors.

    Attributes:
        message: Human-readable error message
        code: Error code if available
        details: Additional error details
    """

    retryable = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}', code='{self.code}')"


class ConfigurationError(S3EngineError):
    """
    Raised before any I/O when a request cannot be executed as configured.

    This can occur when:
    - No service endpoint is configured
    - A request carries both a byte body and a text body
    - Presign arguments are missing or contradictory
    """

    def __init__(self, message: str = "Invalid configuration") -> None:
        super().__init__(message, code="CONFIGURATION_ERROR")


class TransportError(S3EngineError):
    """
    Raised when a connection-level I/O failure or timeout occurs.

    Attributes:
        timeout: True when the failure was a timeout
    """

    retryable = True

    def __init__(self, message: str = "Transport failure", timeout: bool = False) -> None:
        super().__init__(message, code="TRANSPORT_ERROR")
        self.timeout = timeout


class ServiceError(S3EngineError):
    """
    Base for errors reported by the storage service.

    Attributes:
        status_code: HTTP status code of the response
        request_id: Service request id, when the response carried one
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code=code,
            details={"status_code": status_code, "request_id": request_id},
        )
        self.status_code = status_code
        self.request_id = request_id


class ServiceTransientError(ServiceError):
    """Raised for HTTP 500/503 or a transient error document. Retryable."""

    retryable = True

    def __init__(
        self,
        message: str = "Service temporarily unavailable",
        code: Optional[str] = "SERVICE_UNAVAILABLE",
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> None:
        super().__init__(message, code=code, status_code=status_code, request_id=request_id)


class ServiceTerminalError(ServiceError):
    """Raised for a non-retryable service failure, including HEAD 404s."""

    def __init__(
        self,
        message: str = "Service request failed",
        code: Optional[str] = "SERVICE_ERROR",
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> None:
        super().__init__(message, code=code, status_code=status_code, request_id=request_id)


class RetryExhausted(S3EngineError):
    """
    Raised when the attempt budget is used up.

    Attributes:
        attempts: Number of retries and redirects performed
        last_cause: The retryable error that ended the last attempt
    """

    def __init__(self, attempts: int, last_cause: Optional[S3EngineError] = None) -> None:
        super().__init__(
            f"Maximum number of retry attempts reached: {attempts}",
            code="RETRY_EXHAUSTED",
            details={"last_cause": str(last_cause) if last_cause else None},
        )
        self.attempts = attempts
        self.last_cause = last_cause


class DecodingError(S3EngineError):
    """Raised when a structured response body cannot be parsed."""

    def __init__(self, message: str = "Unable to decode response") -> None:
        super().__init__(message, code="DECODING_ERROR")
