"""Custom exception classes for the store access layer."""

from typing import Optional, Dict, Any


class ProjectError(Exception):
    """Base exception class for project-specific errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        """Initialize ProjectError.

        Args:
            message: Error message
            code: Optional error code
            details: Optional additional error details
            status_code: Optional HTTP-style status code
        """
        super().__init__(message)
        self.message = message
        self.code = code or "PROJECT_ERROR"
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "statusCode": self.status_code,
            "details": self.details,
        }


class ValidationError(ProjectError):
    """Raised when validation fails."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        """Initialize ValidationError.

        Args:
            message: Error message
            field: Optional field that failed validation
            details: Optional additional error details
        """
        if field:
            details = details or {}
            details["field"] = field

        super().__init__(message, code="VALIDATION_ERROR", details=details)


class UnsupportedValueError(ValidationError):
    """Raised when a value cannot be represented in the document store."""

    def __init__(self, path: str, value: Any):
        """Initialize UnsupportedValueError.

        Args:
            path: Dotted path of the offending field
            value: The value that could not be encoded
        """
        super().__init__(
            f"Unsupported value of type '{type(value).__name__}' at '{path or '<root>'}'",
            field=path or None,
            details={"value_type": type(value).__name__},
        )
        self.code = "UNSUPPORTED_VALUE"


class ForbiddenError(ProjectError):
    """Raised when the store denies access."""

    status_code = 403

    def __init__(self, message: str = "Permission denied", resource: Optional[str] = None):
        """Initialize ForbiddenError.

        Args:
            message: Error message
            resource: Optional resource that was denied
        """
        details = {"resource": resource} if resource else {}
        super().__init__(message, code="FORBIDDEN", details=details)


class NotFoundError(ProjectError):
    """Raised when a document is not found."""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        """Initialize NotFoundError.

        Args:
            resource_type: Collection path of the missing document
            resource_id: ID of the missing document
        """
        message = f"{resource_type} with ID '{resource_id}' not found"
        details = {
            "resource_type": resource_type,
            "resource_id": resource_id
        }
        super().__init__(message, code="NOT_FOUND", details=details)


class ConflictError(ProjectError):
    """Raised when a write conflicts with concurrent activity."""

    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFLICT", details=details)


class DuplicateError(ConflictError):
    """Raised when attempting to create a duplicate resource."""

    def __init__(self, resource_type: str, identifier: str):
        """Initialize DuplicateError.

        Args:
            resource_type: Type of resource
            identifier: Identifier that already exists
        """
        message = f"{resource_type} with identifier '{identifier}' already exists"
        details = {
            "resource_type": resource_type,
            "identifier": identifier
        }
        super().__init__(message, details=details)
        self.code = "DUPLICATE"


class LimitExceededError(ProjectError):
    """Raised when a limit is exceeded."""

    status_code = 400

    def __init__(self, limit_type: str, current: int, maximum: int):
        """Initialize LimitExceededError.

        Args:
            limit_type: Type of limit exceeded
            current: Current value
            maximum: Maximum allowed value
        """
        message = f"{limit_type} limit exceeded: {current}/{maximum}"
        details = {
            "limit_type": limit_type,
            "current": current,
            "maximum": maximum
        }
        super().__init__(message, code="LIMIT_EXCEEDED", details=details)


class ServiceUnavailableError(ProjectError):
    """Raised when the document store is temporarily unavailable."""

    status_code = 503

    def __init__(self, message: str, retry_after: Optional[int] = None):
        """Initialize ServiceUnavailableError.

        Args:
            message: Error message
            retry_after: Optional seconds the caller should wait
        """
        details = {"retry_after": retry_after} if retry_after else {}
        super().__init__(message, code="SERVICE_UNAVAILABLE", details=details)
        self.retry_after = retry_after


class RateLimitedError(ProjectError):
    """Raised when the store rejects a call for exhausted quota."""

    status_code = 429

    def __init__(self, retry_after: int):
        super().__init__(
            "Too many requests. Please try again later.",
            code="RATE_LIMIT_EXCEEDED",
            details={"retry_after": retry_after},
        )
        self.retry_after = retry_after


class UnknownStoreError(ProjectError):
    """Raised for store failures with no more specific mapping."""

    def __init__(self, message: str, store_code: Optional[str] = None, status_code: int = 500):
        details = {"store_code": store_code} if store_code else {}
        super().__init__(message, code="UNKNOWN", details=details, status_code=status_code)
