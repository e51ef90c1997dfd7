"""Utility functions package."""

from .logger import get_logger
from .retry import (
    RetryPolicy,
    store_error_code,
    map_store_error,
    is_retryable,
    with_retry,
    with_transaction_retry,
)

__all__ = [
    "get_logger",
    "RetryPolicy",
    "store_error_code",
    "map_store_error",
    "is_retryable",
    "with_retry",
    "with_transaction_retry",
]
