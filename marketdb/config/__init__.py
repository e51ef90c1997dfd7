"""Configuration package."""

from .env_loader import (
    EnvironmentError,
    load_environment,
    get_required_env_var,
    get_optional_env_var,
    get_project_id,
)
from .settings import (
    StoreSettings,
    ConfigValidationError,
    MAX_BATCH_OPERATIONS,
    DEFAULT_RETRYABLE_CODES,
)

__all__ = [
    "EnvironmentError",
    "load_environment",
    "get_required_env_var",
    "get_optional_env_var",
    "get_project_id",
    "StoreSettings",
    "ConfigValidationError",
    "MAX_BATCH_OPERATIONS",
    "DEFAULT_RETRYABLE_CODES",
]
