"""
Reliability patterns for CardLink.

Retry classification and linear backoff for backend calls, plus health checks.
"""

import time
from typing import Any, Callable, Dict, Optional

import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from cardlink.core.exceptions import (
    ApiError,
    ApiTimeoutError,
    ApiUnreachableError,
    NetworkError,
    ServerError,
)

logger = structlog.get_logger(__name__)

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})


def is_transient(error: BaseException) -> bool:
    """Timeouts and connection failures: no response was received."""
    return isinstance(error, (ApiTimeoutError, NetworkError))


def should_retry(
    method: str, path: str, error: BaseException, idempotent: Optional[bool] = None
) -> bool:
    """
    Decide whether a failed attempt may be repeated.

    Args:
        method: HTTP method of the request
        path: Backend route (without base URL)
        error: Exception raised by the attempt
        idempotent: Override the method-based idempotency guess

    Returns:
        True if another attempt is allowed
    """
    method = method.upper()

    # Sign-up, login and OTP calls must never be sent twice
    if method == "POST" and "/auth/" in path:
        return False

    # The request never reached the server
    if is_transient(error) and error.connect_failed:
        return True

    if idempotent is None:
        idempotent = method in IDEMPOTENT_METHODS
    if not idempotent:
        return False

    return is_transient(error) or isinstance(error, ServerError)


def linear_backoff(step: float = 2.0) -> wait_incrementing:
    """Wait ``step * n`` seconds after the n-th failed attempt."""
    return wait_incrementing(start=step, increment=step)


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying request",
        attempt=retry_state.attempt_number,
        delay_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
        error=str(error),
        error_type=type(error).__name__,
    )


def _raise_last_error(retry_state: RetryCallState) -> Any:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    if error is None:
        raise ApiUnreachableError(
            "API unreachable - Server may be sleeping. Please try again in a moment."
        )
    if isinstance(error, ApiError):
        error.attempts = retry_state.attempt_number
    logger.error(
        "Request failed after retries",
        attempts=retry_state.attempt_number,
        error=str(error),
        error_type=type(error).__name__,
    )
    raise error


def build_retrying(
    method: str,
    path: str,
    max_attempts: int = 3,
    backoff_step: float = 2.0,
    idempotent: Optional[bool] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Retrying:
    """Create the retry controller for one logical request."""
    return Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=linear_backoff(backoff_step),
        retry=retry_if_exception(lambda e: should_retry(method, path, e, idempotent)),
        before_sleep=_log_retry,
        retry_error_callback=_raise_last_error,
        sleep=sleep,
    )


class HealthChecker:
    """Health checking for the backend and local dependencies."""

    def __init__(self):
        self.checks: Dict[str, Callable] = {}
        self.last_results: Dict[str, Dict[str, Any]] = {}

    def register_check(self, name: str, check_func: Callable):
        """Register a health check function."""
        self.checks[name] = check_func

    def check_all(self) -> Dict[str, Dict[str, Any]]:
        """Run all registered health checks."""
        results = {}

        for name, check_func in self.checks.items():
            start_time = time.time()
            try:
                check_result = check_func()
                results[name] = {
                    "status": "healthy",
                    "response_time_ms": (time.time() - start_time) * 1000,
                    "details": check_result if isinstance(check_result, dict) else {},
                }
            except Exception as e:
                results[name] = {
                    "status": "unhealthy",
                    "response_time_ms": (time.time() - start_time) * 1000,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }

        self.last_results = results
        return results

    def is_healthy(self, service_name: Optional[str] = None) -> bool:
        """Check if service(s) are healthy."""
        if not self.last_results:
            self.check_all()

        if service_name:
            return self.last_results.get(service_name, {}).get("status") == "healthy"

        return all(result.get("status") == "healthy" for result in self.last_results.values())
