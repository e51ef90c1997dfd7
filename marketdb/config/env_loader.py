"""
Environment variable loader for the store access layer.
Loads and validates the variables the Firestore client handle needs.
"""

import os
from pathlib import Path
from typing import Dict, Optional
from dotenv import load_dotenv


class EnvironmentError(Exception):
    """Raised when required environment variables are missing or invalid."""
    pass


def load_environment(env_file: Optional[str] = None) -> None:
    """
    Load environment variables from a .env file.

    Args:
        env_file: Optional path to .env file. If None, prefers .env.local
            and falls back to .env in the project root.
    """
    if env_file is None:
        root = Path(__file__).parent.parent.parent
        env_path = root / ".env.local"
        if not env_path.exists():
            env_path = root / ".env"
    else:
        env_path = Path(env_file)

    # In production, environment variables are set by the platform
    if env_path.exists():
        load_dotenv(env_path)


def get_required_env_var(name: str, description: str = "") -> str:
    """
    Get a required environment variable.

    Args:
        name: Environment variable name
        description: Optional description for error messages

    Returns:
        Environment variable value

    Raises:
        EnvironmentError: If the environment variable is not set or empty
    """
    value = os.getenv(name)
    if not value:
        desc_part = f" ({description})" if description else ""

        guidance = ""
        if "PROJECT" in name:
            guidance = "\n  Hint: Set this to your Google Cloud Project ID (e.g., my-project-123)"
        elif "CREDENTIALS" in name:
            guidance = "\n  Hint: Set this to the path of your Google service account JSON file"
        elif "EMULATOR" in name:
            guidance = "\n  Hint: Start the emulator with `firebase emulators:start --only firestore`"

        raise EnvironmentError(f"Required environment variable {name}{desc_part} is not set{guidance}")
    return value


def get_optional_env_var(name: str, default: str = "", description: str = "") -> str:
    """
    Get an optional environment variable with a default value.

    Args:
        name: Environment variable name
        default: Default value if not set
        description: Optional description for logging

    Returns:
        Environment variable value or default
    """
    return os.getenv(name, default)


def get_project_id() -> str:
    """
    Resolve the Google Cloud project ID.

    GCP_PROJECT_ID wins; GCLOUD_PROJECT is what the Firebase tooling and the
    emulator export.
    """
    project_id = os.getenv("GCP_PROJECT_ID") or os.getenv("GCLOUD_PROJECT")
    if project_id:
        return project_id
    return get_required_env_var("GCP_PROJECT_ID", "Google Cloud Project ID for Firestore access")


def get_emulator_env() -> Dict[str, str]:
    """Return the emulator-related variables currently set."""
    names = ("FIRESTORE_EMULATOR_HOST", "FUNCTIONS_EMULATOR", "GCLOUD_PROJECT")
    return {name: os.environ[name] for name in names if os.getenv(name)}
