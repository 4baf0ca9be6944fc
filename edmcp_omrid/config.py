"""
Central configuration loading for the student number decoder.

Locates the shared .env file the edmcp workflows use and exposes a small
accessor over the environment, so decoder settings come from the same
configuration source as the rest of the grading workflow.
"""

import os
from pathlib import Path
from dotenv import load_dotenv


def get_edmcp_root() -> Path:
    """
    Find the edmcp root directory by looking for the .env file.

    Checks the directory above the edmcp_omrid package first, then searches
    upward from the current working directory.

    Returns:
        Path to the edmcp root directory.
    """
    # Start from the edmcp_omrid package location
    current = Path(__file__).resolve().parent.parent

    if (current / ".env").exists() or (current / ".env.example").exists():
        return current

    current = Path.cwd().resolve()
    for _ in range(10):  # Limit search depth
        if (current / ".env").exists() or (current / ".env.example").exists():
            return current
        if current.parent == current:  # Reached filesystem root
            break
        current = current.parent

    # Fallback: the directory holding the package
    return Path(__file__).resolve().parent.parent


def load_edmcp_config(override: bool = False) -> Path:
    """
    Load environment variables from the central .env file.

    Args:
        override: If True, override existing environment variables.
                  Default is False (existing variables take precedence).

    Returns:
        Path to the .env file that was loaded (or would be loaded if it exists).
    """
    env_path = get_edmcp_root() / ".env"
    load_dotenv(env_path, override=override)
    return env_path


def get_env(key: str, default: str | None = None) -> str | None:
    """
    Get an environment variable with optional default.

    Empty values are treated as unset.

    Args:
        key: The environment variable name.
        default: Default value if not found.

    Returns:
        The environment variable value or the default.
    """
    value = os.environ.get(key)
    if value is None or not value.strip():
        return default
    return value.strip()
