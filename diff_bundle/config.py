"""
Configuration settings for diff_bundle.

Tunables can be overridden through environment variables. Wire-format
constants are fixed because patch-apply tools depend on them.
"""

import os

# Number of unchanged lines kept around a change inside a hunk
DEFAULT_CONTEXT_RADIUS = 3

# Context requested from git when reading a full diff; hunks are re-split later
DEFAULT_GIT_CONTEXT_LINES = 32767

DEFAULT_LOG_LEVEL = "INFO"

# Wire constants
BASE85_LINE_BYTES = 52
DEFAULT_FILE_MODE = "100644"
FILEMODE_PROPERTY = "unix:filemode"
NULL_SHA1 = "0" * 40
EMPTY_BLOB_SHA1 = "e69de29bb2d1d6434b8b29ae775ad8c2e48c5391"

# Environment variable names for configuration overrides
ENV_PREFIX = "DIFF_BUNDLE_"
ENV_CONTEXT_RADIUS = f"{ENV_PREFIX}CONTEXT_RADIUS"
ENV_GIT_CONTEXT_LINES = f"{ENV_PREFIX}GIT_CONTEXT_LINES"
ENV_LOG_LEVEL = f"{ENV_PREFIX}LOG_LEVEL"


def get_config_value(env_var: str, default_value):
    """
    Get a configuration value from environment variable or use default.

    Args:
        env_var: The environment variable name
        default_value: The default value to use if env var is not set

    Returns:
        The configuration value, converted to the type of the default
    """
    value = os.environ.get(env_var)
    if value is None:
        return default_value

    try:
        if isinstance(default_value, bool):
            return value.lower() in ("true", "yes", "1", "y")
        elif isinstance(default_value, int):
            return int(value)
        elif isinstance(default_value, float):
            return float(value)
        else:
            return value
    except (ValueError, TypeError):
        return default_value


def get_context_radius() -> int:
    """Get the configured hunk context radius."""
    radius = get_config_value(ENV_CONTEXT_RADIUS, DEFAULT_CONTEXT_RADIUS)
    return max(0, radius)


def get_git_context_lines() -> int:
    """Get the -U value used when reading diffs from git."""
    return get_config_value(ENV_GIT_CONTEXT_LINES, DEFAULT_GIT_CONTEXT_LINES)


def get_log_level() -> str:
    return str(get_config_value(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL)).upper()
