"""Configuration management module.

This module handles persistent configuration storage using TOML format.
Stores user defaults like subscription, resource group, region and the
suffix used for restored disk names.

Security:
- Config file permissions: 0600 (owner read/write only)
- Path validation
"""

import logging
import os
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

try:
    import tomli  # type: ignore[import]
except ImportError:
    # Python 3.11+ ships the same parser as tomllib
    try:
        import tomllib as tomli  # type: ignore[import]
    except ImportError as e:
        raise ImportError("toml library not available. Install with: pip install tomli") from e

try:
    import tomlkit
except ImportError as e:
    raise ImportError("tomlkit library not available. Install with: pip install tomlkit") from e

from azrestore.azure_session import DEFAULT_TIMEOUT
from azrestore.disk_recreation import DEFAULT_SUFFIX
from azrestore.exceptions import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class RestoreConfig:
    """azrestore configuration data."""

    default_subscription: str | None = None
    default_resource_group: str | None = None
    default_region: str | None = None
    disk_suffix: str = DEFAULT_SUFFIX
    command_timeout: int = DEFAULT_TIMEOUT  # seconds per az call

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        data = asdict(self)
        # TOML has no null
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RestoreConfig":
        """Create from dictionary.

        Raises:
            ConfigError: If a value has the wrong type
        """
        try:
            timeout = int(data.get("command_timeout", DEFAULT_TIMEOUT))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"command_timeout must be an integer: {e}") from e
        if timeout < 1:
            raise ConfigError("command_timeout must be at least 1 second")

        return cls(
            default_subscription=data.get("default_subscription"),
            default_resource_group=data.get("default_resource_group"),
            default_region=data.get("default_region"),
            disk_suffix=data.get("disk_suffix") or DEFAULT_SUFFIX,
            command_timeout=timeout,
        )


class ConfigManager:
    """Manage azrestore configuration file.

    Configuration is stored at ~/.azrestore/config.toml with secure permissions.
    """

    DEFAULT_CONFIG_DIR = Path.home() / ".azrestore"
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.toml"

    @classmethod
    def _validate_config_path(cls, path: Path) -> Path:
        """Validate configuration file path for security.

        Ensures the path is within allowed directories to prevent path traversal.

        Args:
            path: Path to validate

        Returns:
            Validated, resolved path

        Raises:
            ConfigError: If path is outside allowed directories
        """
        resolved_path = path.resolve()

        allowed_dirs = [
            cls.DEFAULT_CONFIG_DIR.resolve(),
            Path.cwd().resolve(),
            Path(tempfile.gettempdir()).resolve(),  # Allow pytest tmp_path
        ]

        for allowed_dir in allowed_dirs:
            try:
                resolved_path.relative_to(allowed_dir)
                return resolved_path
            except ValueError:
                continue

        raise ConfigError(
            f"Config path outside allowed directories: {resolved_path}\n"
            f"Allowed directories:\n"
            f"  - {cls.DEFAULT_CONFIG_DIR}\n"
            f"  - {Path.cwd()}\n"
            "This restriction prevents path traversal attacks."
        )

    @classmethod
    def get_config_path(cls, custom_path: str | None = None) -> Path:
        """Get configuration file path.

        Args:
            custom_path: Custom config file path (optional)

        Returns:
            Path to config file

        Raises:
            ConfigError: If path is invalid or outside allowed directories
        """
        if custom_path:
            path = cls._validate_config_path(Path(custom_path).expanduser())
            if not path.exists():
                raise ConfigError(f"Config file not found: {path}")
            return path

        return cls.DEFAULT_CONFIG_FILE

    @classmethod
    def ensure_config_dir(cls) -> Path:
        """Ensure config directory exists with secure permissions.

        Raises:
            ConfigError: If directory creation fails
        """
        try:
            cls.DEFAULT_CONFIG_DIR.mkdir(parents=True, exist_ok=True)
            os.chmod(cls.DEFAULT_CONFIG_DIR, 0o700)
            logger.debug(f"Config directory ready: {cls.DEFAULT_CONFIG_DIR}")
            return cls.DEFAULT_CONFIG_DIR
        except OSError as e:
            raise ConfigError(f"Failed to create config directory: {e}") from e

    @classmethod
    def load_config(cls, custom_path: str | None = None) -> RestoreConfig:
        """Load configuration from file.

        Args:
            custom_path: Custom config file path (optional)

        Returns:
            RestoreConfig object (defaults if the file does not exist)

        Raises:
            ConfigError: If loading fails
        """
        config_path = cls.get_config_path(custom_path)

        if not config_path.exists():
            logger.debug("Config file not found, using defaults")
            return RestoreConfig()

        try:
            mode = config_path.stat().st_mode & 0o777
            if mode & 0o077:
                logger.warning(
                    f"Config file has insecure permissions: {oct(mode)}. Fixing to 0600..."
                )
                os.chmod(config_path, 0o600)

            with open(config_path, "rb") as f:
                data = tomli.load(f)  # type: ignore[attr-defined]
        except (OSError, tomli.TOMLDecodeError) as e:  # type: ignore[attr-defined]
            raise ConfigError(f"Failed to load config: {e}") from e

        logger.debug(f"Loaded config from: {config_path}")
        return RestoreConfig.from_dict(data)

    @classmethod
    def save_config(cls, config: RestoreConfig, custom_path: str | None = None) -> Path:
        """Save configuration to file.

        Existing comments and formatting are preserved (tomlkit) and the file
        is replaced atomically.

        Returns:
            Path written

        Raises:
            ConfigError: If saving fails or path is outside allowed directories
        """
        temp_path: Path | None = None
        try:
            if custom_path:
                config_path = cls._validate_config_path(Path(custom_path).expanduser())
                config_path.parent.mkdir(parents=True, exist_ok=True)
            else:
                cls.ensure_config_dir()
                config_path = cls.DEFAULT_CONFIG_FILE

            temp_path = config_path.with_suffix(".tmp")

            if config_path.exists():
                with open(config_path) as f:
                    doc = tomlkit.load(f)
            else:
                doc = tomlkit.document()
            for key, value in config.to_dict().items():
                doc[key] = value

            with open(temp_path, "w") as f:
                tomlkit.dump(doc, f)
            os.chmod(temp_path, 0o600)
            temp_path.replace(config_path)

            logger.debug(f"Saved config to: {config_path}")
            return config_path

        except (OSError, ValueError) as e:
            if temp_path and temp_path.exists():
                temp_path.unlink()
            raise ConfigError(f"Failed to save config: {e}") from e

    @classmethod
    def update_config(cls, custom_path: str | None = None, **updates: Any) -> RestoreConfig:
        """Update configuration values.

        Raises:
            ConfigError: If a key is unknown or the update fails
        """
        config = cls.load_config(custom_path)

        for key, value in updates.items():
            if not hasattr(config, key):
                raise ConfigError(f"Unknown config key: {key}")
            setattr(config, key, value)

        # Re-validate through from_dict
        config = RestoreConfig.from_dict(config.to_dict())
        cls.save_config(config, custom_path)
        return config

    @classmethod
    def resolve(
        cls, key: str, cli_value: Any = None, custom_path: str | None = None
    ) -> Any:
        """Get a setting with CLI override.

        Args:
            key: RestoreConfig attribute name
            cli_value: Value from CLI argument (takes precedence)
            custom_path: Custom config file path (optional)
        """
        if cli_value is not None:
            return cli_value
        return getattr(cls.load_config(custom_path), key)


__all__ = ["ConfigManager", "RestoreConfig"]
