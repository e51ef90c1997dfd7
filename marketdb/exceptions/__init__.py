"""Exceptions package initialization."""

from .CustomError import (
    ProjectError,
    ValidationError,
    UnsupportedValueError,
    ForbiddenError,
    NotFoundError,
    ConflictError,
    DuplicateError,
    LimitExceededError,
    ServiceUnavailableError,
    RateLimitedError,
    UnknownStoreError,
)

__all__ = [
    "ProjectError",
    "ValidationError",
    "UnsupportedValueError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "DuplicateError",
    "LimitExceededError",
    "ServiceUnavailableError",
    "RateLimitedError",
    "UnknownStoreError",
]
