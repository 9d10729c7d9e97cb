"""Azure CLI command helper.

Provides centralized Azure CLI path detection so every azrestore module runs
the same executable.

Philosophy:
- Single responsibility: Provide correct Azure CLI command
- Standard library only
- Caching for performance

Public API:
    get_az_command: Get Azure CLI command for current environment
"""

import os
import shutil

AZ_PATH_ENV_VAR = "AZRESTORE_AZ_PATH"

# Cache the detection result for performance
_cached_az_command: str | None = None


def get_az_command() -> str:
    """Get Azure CLI command.

    Resolution order:
    1. AZRESTORE_AZ_PATH environment variable
    2. Absolute path of 'az' found on PATH
    3. Bare 'az' (lets subprocess report a missing CLI)

    Returns:
        str: Azure CLI command to use ("az" or explicit path like "/usr/bin/az")

    Examples:
        >>> az_cmd = get_az_command()
        >>> subprocess.run([az_cmd, "account", "show"])
    """
    global _cached_az_command

    if _cached_az_command is not None:
        return _cached_az_command

    override = os.environ.get(AZ_PATH_ENV_VAR)
    if override:
        _cached_az_command = override
        return _cached_az_command

    _cached_az_command = shutil.which("az") or "az"
    return _cached_az_command


def clear_cache() -> None:
    """Clear cached Azure CLI command.

    Useful for testing or if Azure CLI installation changes during runtime.
    """
    global _cached_az_command
    _cached_az_command = None


__all__ = ["AZ_PATH_ENV_VAR", "clear_cache", "get_az_command"]
