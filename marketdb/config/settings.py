"""
Store settings for the access layer.
Collects client, deadline, batch and retry configuration from the environment.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from marketdb.config.env_loader import get_project_id, get_optional_env_var

# Firestore rejects write batches with more operations than this
MAX_BATCH_OPERATIONS = 500

DEFAULT_RETRYABLE_CODES: Tuple[str, ...] = (
    "aborted",
    "unavailable",
    "deadline-exceeded",
    "resource-exhausted",
)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


def _parse_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = get_optional_env_var(name, "")
    if raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigValidationError(f"{name} must be an integer, got {raw!r}")


def _parse_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = get_optional_env_var(name, "")
    if raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigValidationError(f"{name} must be a number, got {raw!r}")


@dataclass
class StoreSettings:
    """Configuration of the Firestore client handle and the services built on it."""
    project_id: Optional[str] = None
    emulator_host: Optional[str] = None
    environment: str = "development"
    default_timeout: Optional[float] = None
    batch_limit: int = MAX_BATCH_OPERATIONS
    retry_max_attempts: int = 3
    retry_base_delay_ms: int = 100
    retry_max_delay_ms: int = 5000
    retryable_codes: Tuple[str, ...] = field(default=DEFAULT_RETRYABLE_CODES)

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if not 1 <= self.batch_limit <= MAX_BATCH_OPERATIONS:
            raise ConfigValidationError(
                f"batch_limit must be between 1 and {MAX_BATCH_OPERATIONS}, got {self.batch_limit}"
            )
        if self.default_timeout is not None and self.default_timeout <= 0:
            raise ConfigValidationError("default_timeout must be a positive number of seconds")
        if self.retry_max_attempts < 1:
            raise ConfigValidationError("retry_max_attempts must be >= 1")
        if self.retry_base_delay_ms < 0 or self.retry_max_delay_ms < self.retry_base_delay_ms:
            raise ConfigValidationError("retry delays must satisfy 0 <= base <= max")

    @property
    def uses_emulator(self) -> bool:
        return bool(self.emulator_host)

    @classmethod
    def from_environment(cls) -> "StoreSettings":
        """Build settings from environment variables."""
        emulator_host = get_optional_env_var("FIRESTORE_EMULATOR_HOST") or None
        if emulator_host:
            # The emulator accepts any project id
            project_id = os.getenv("GCP_PROJECT_ID") or os.getenv("GCLOUD_PROJECT") or "test-project"
        else:
            project_id = get_project_id()

        return cls(
            project_id=project_id,
            emulator_host=emulator_host,
            environment=get_optional_env_var("ENV", "development"),
            default_timeout=_parse_float("FIRESTORE_TIMEOUT_SECONDS", None),
            batch_limit=_parse_int("FIRESTORE_BATCH_LIMIT", MAX_BATCH_OPERATIONS),
            retry_max_attempts=_parse_int("STORE_RETRY_MAX_ATTEMPTS", 3),
            retry_base_delay_ms=_parse_int("STORE_RETRY_BASE_DELAY_MS", 100),
            retry_max_delay_ms=_parse_int("STORE_RETRY_MAX_DELAY_MS", 5000),
        )
