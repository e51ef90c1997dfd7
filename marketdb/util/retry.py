"""
Error normalization and retry helpers for callers of the access layer.
Maps Firestore (google.api_core) exceptions to the project error taxonomy
and retries transient failures with exponential backoff.
"""

import random
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Optional, Tuple, TypeVar

from google.api_core import exceptions as core_exceptions

from marketdb.config.settings import DEFAULT_RETRYABLE_CODES, StoreSettings
from marketdb.exceptions import (
    ConflictError,
    DuplicateError,
    ForbiddenError,
    NotFoundError,
    ProjectError,
    RateLimitedError,
    ServiceUnavailableError,
    UnknownStoreError,
    ValidationError,
)
from marketdb.util.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Checked in order; subclasses come before their bases
_STORE_CODES = (
    (core_exceptions.Aborted, "aborted"),
    (core_exceptions.AlreadyExists, "already-exists"),
    (core_exceptions.NotFound, "not-found"),
    (core_exceptions.PermissionDenied, "permission-denied"),
    (core_exceptions.Unauthenticated, "unauthenticated"),
    (core_exceptions.FailedPrecondition, "failed-precondition"),
    (core_exceptions.InvalidArgument, "invalid-argument"),
    (core_exceptions.OutOfRange, "out-of-range"),
    (core_exceptions.ResourceExhausted, "resource-exhausted"),
    (core_exceptions.ServiceUnavailable, "unavailable"),
    (core_exceptions.DeadlineExceeded, "deadline-exceeded"),
    (core_exceptions.Cancelled, "cancelled"),
    (core_exceptions.InternalServerError, "internal"),
)


def store_error_code(exc: BaseException) -> Optional[str]:
    """Firestore status code of an exception, or None if it is not a store error.

    A transaction that gave up after a conflict raises ValueError chained
    from the Aborted error; transport retries that ran out raise RetryError
    carrying the last failure. Both are unwrapped to their cause.
    """
    if isinstance(exc, ProjectError):
        return None
    if isinstance(exc, core_exceptions.RetryError) and exc.cause is not None:
        return store_error_code(exc.cause)
    if isinstance(exc, ValueError) and isinstance(exc.__cause__, core_exceptions.GoogleAPICallError):
        return store_error_code(exc.__cause__)
    for exc_type, code in _STORE_CODES:
        if isinstance(exc, exc_type):
            return code
    if isinstance(exc, core_exceptions.GoogleAPICallError):
        return "unknown"
    return None


def map_store_error(exc: BaseException, resource: Optional[str] = None,
                    resource_id: Optional[str] = None) -> ProjectError:
    """Translate a store exception into the project error taxonomy.

    Project errors are returned unchanged.
    """
    if isinstance(exc, ProjectError):
        return exc

    code = store_error_code(exc)
    message = getattr(exc, "message", None) or str(exc)

    if code == "not-found":
        return NotFoundError(resource or "Resource", resource_id or "unknown")
    if code in ("permission-denied", "unauthenticated"):
        return ForbiddenError("Permission denied", resource=resource)
    if code == "already-exists":
        return DuplicateError(resource or "Resource", resource_id or "unknown")
    if code == "failed-precondition":
        return ValidationError(f"Operation failed precondition check: {message}")
    if code in ("invalid-argument", "out-of-range"):
        return ValidationError(f"Invalid argument: {message}")
    if code == "aborted":
        return ConflictError("Transaction aborted due to conflict. Please retry.")
    if code in ("unavailable", "deadline-exceeded"):
        return ServiceUnavailableError("Document store temporarily unavailable", retry_after=30)
    if code == "resource-exhausted":
        return RateLimitedError(retry_after=60)
    return UnknownStoreError(f"Document store error: {message}", store_code=code)


@dataclass
class RetryPolicy:
    """Configuration for retry behavior with exponential backoff and jitter."""
    max_attempts: int = 3
    base_delay_ms: int = 100
    max_delay_ms: int = 5000
    exponential_base: float = 2.0
    jitter: float = 0.1
    retryable_codes: Tuple[str, ...] = field(default=DEFAULT_RETRYABLE_CODES)

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay_ms=settings.retry_base_delay_ms,
            max_delay_ms=settings.retry_max_delay_ms,
            retryable_codes=tuple(settings.retryable_codes),
        )

    def get_delay(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        if attempt <= 0:
            return 0.0

        delay_ms = min(self.base_delay_ms * (self.exponential_base ** (attempt - 1)), self.max_delay_ms)
        delay_ms += delay_ms * random.uniform(-self.jitter, self.jitter)
        return max(delay_ms, 0.0) / 1000.0


def is_retryable(exc: BaseException, policy: Optional[RetryPolicy] = None) -> bool:
    policy = policy or RetryPolicy()
    code = store_error_code(exc)
    return code is not None and code in policy.retryable_codes


def with_retry(fn: Callable[[], T], policy: Optional[RetryPolicy] = None,
               sleep: Callable[[float], None] = time.sleep) -> T:
    """Call fn, retrying transient store failures.

    Raises:
        ProjectError: The mapped error once fn fails with a non-retryable
            error or the attempts run out
    """
    policy = policy or RetryPolicy()
    attempt = 0
    while True:
        attempt += 1
        try:
            return fn()
        except ProjectError:
            raise
        except Exception as e:
            if attempt >= policy.max_attempts or not is_retryable(e, policy):
                raise map_store_error(e) from e
            delay = policy.get_delay(attempt)
            logger.warning(
                f"Store call failed with {store_error_code(e)} "
                f"(attempt {attempt}/{policy.max_attempts}), retrying in {delay:.3f}s"
            )
            sleep(delay)


def with_transaction_retry(fn: Callable[[], T], max_attempts: int = 3,
                           policy: Optional[RetryPolicy] = None,
                           sleep: Callable[[float], None] = time.sleep) -> T:
    """Re-run a whole transaction when it aborts on a conflict.

    fn should call run_transaction itself, and the transaction callback must
    be safe to run more than once.
    """
    policy = replace(policy or RetryPolicy(), max_attempts=max_attempts, retryable_codes=("aborted",))
    return with_retry(fn, policy, sleep)
