"""
Standardized error classification for outbound SEC requests.

Every error says whether the fetch layer may retry it. Callers above the
fetch layer only ever see these types, never raw httpx exceptions.
"""

from typing import Optional, Dict, Any


class APIError(Exception):
    """
    Base exception for all upstream API errors.

    Attributes:
        message: Human-readable error description
        source: Upstream name (e.g., 'sec')
        status_code: HTTP status code if applicable
        response_data: Raw response data for debugging
        retryable: Whether this error should trigger a retry
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.source = source
        self.status_code = status_code
        self.response_data = response_data
        self.retryable = retryable

    def __str__(self) -> str:
        parts = [self.message]
        if self.source:
            parts.insert(0, f"[{self.source}]")
        if self.status_code:
            parts.append(f"(HTTP {self.status_code})")
        return " ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "source": self.source,
            "status_code": self.status_code,
            "retryable": self.retryable,
            "response_data": self.response_data,
        }


class RetryableError(APIError):
    """
    Transient errors that should trigger a retry.

    Examples:
    - HTTP 500-599 server errors
    - Connection resets and timeouts
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            source=source,
            status_code=status_code,
            response_data=response_data,
            retryable=True,
        )


class RateLimitError(RetryableError):
    """HTTP 429 from upstream. Retried on the normal backoff schedule."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            source=source,
            status_code=429,
            response_data=response_data,
        )


class FatalError(APIError):
    """
    Non-retryable errors that indicate a permanent problem.

    Examples:
    - Resource not found (404)
    - Forbidden access (403), which SEC returns for a missing User-Agent
    - Invalid request parameters (400)
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            source=source,
            status_code=status_code,
            response_data=response_data,
            retryable=False,
        )


class NotFoundError(FatalError):
    """Requested resource not found (HTTP 404)."""

    def __init__(
        self,
        message: str = "Resource not found",
        source: Optional[str] = None,
        resource_id: Optional[str] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        if resource_id:
            message = f"{message}: {resource_id}"
        super().__init__(
            message=message, source=source, status_code=404, response_data=response_data
        )
        self.resource_id = resource_id


class ConfigurationError(FatalError):
    """
    Configuration error - missing required settings.

    Raised before any request is sent, never retried.
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        missing_config: Optional[str] = None,
    ):
        super().__init__(
            message=message, source=source, status_code=None, response_data=None
        )
        self.missing_config = missing_config


class FetchExhaustedError(APIError):
    """
    Transient failures persisted through every retry.

    Terminal for the single request that raised it. Carries the last
    observed HTTP status (if any) and the last transport error text.
    """

    def __init__(
        self,
        url: str,
        attempts: int,
        last_status: Optional[int] = None,
        last_error: Optional[str] = None,
        source: Optional[str] = None,
    ):
        reason = f"HTTP {last_status}" if last_status is not None else (last_error or "unknown error")
        super().__init__(
            message=f"Gave up on {url} after {attempts} attempts: {reason}",
            source=source,
            status_code=last_status,
            retryable=False,
        )
        self.url = url
        self.attempts = attempts
        self.last_status = last_status
        self.last_error = last_error

    def __str__(self) -> str:
        parts = [self.message]
        if self.source:
            parts.insert(0, f"[{self.source}]")
        return " ".join(parts)


def classify_http_error(
    status_code: int, response_text: str = "", source: Optional[str] = None
) -> APIError:
    """
    Classify an HTTP error into the appropriate APIError subclass.

    Args:
        status_code: HTTP status code
        response_text: Response body text
        source: Upstream name

    Returns:
        Appropriate APIError subclass instance
    """
    if status_code == 429:
        return RateLimitError(
            message=f"Rate limited: {response_text[:200]}", source=source
        )
    elif status_code == 404:
        return NotFoundError(message=f"Not found: {response_text[:200]}", source=source)
    elif 500 <= status_code < 600:
        return RetryableError(
            message=f"Server error: {response_text[:200]}",
            source=source,
            status_code=status_code,
        )
    elif 400 <= status_code < 500:
        return FatalError(
            message=f"Client error: {response_text[:200]}",
            source=source,
            status_code=status_code,
        )
    else:
        return APIError(
            message=f"HTTP error {status_code}: {response_text[:200]}",
            source=source,
            status_code=status_code,
            retryable=False,
        )
