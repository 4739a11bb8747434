"""
Configuration management for waitkit.

Loads and validates config.yaml from the waitkit home directory
($WAITKIT_HOME, default ~/.config/waitkit).
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from waitkit.errors import ConfigurationError

DEFAULT_HOME = Path("~/.config/waitkit")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("structured", "pretty", "plain")


def get_waitkit_home() -> Path:
    """Get the waitkit home directory."""
    return Path(os.environ.get("WAITKIT_HOME", str(DEFAULT_HOME))).expanduser()


class WaitkitConfig:
    """waitkit configuration."""

    def __init__(self, data: Optional[Dict[str, Any]] = None, config_path: Optional[Path] = None):
        data = data or {}
        self.config_path = config_path
        self.raw_config = data

        # Definitions
        self.definitions_dirs: List[Path] = [
            Path(d).expanduser() for d in data.get("definitions_dirs", [])
        ]
        self.include_builtin = data.get("include_builtin", True)

        # Wait defaults (override every definition when set)
        self.default_max_attempts = data.get("default_max_attempts")
        self.default_delay = data.get("default_delay")

        # Logging
        self.logging = data.get("logging", {}) or {}

        self.validate()

    @classmethod
    def from_file(cls, config_path: Path) -> "WaitkitConfig":
        """Load configuration from a YAML file."""
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax: {e}")

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration must be a mapping: {config_path}")
        return cls(data, config_path=config_path)

    def get_log_level(self) -> str:
        """Get logging level."""
        return str(self.logging.get("level", "WARNING")).upper()

    def get_log_format(self) -> str:
        """Get log format (structured, pretty or plain)."""
        return self.logging.get("format", "plain")

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path, if file logging is enabled."""
        log_file = self.logging.get("file")
        return Path(log_file).expanduser() if log_file else None

    def wait_overrides(self) -> Dict[str, Any]:
        """Overrides to apply to every wait started from the CLI."""
        overrides: Dict[str, Any] = {}
        if self.default_max_attempts is not None:
            overrides["max_attempts"] = self.default_max_attempts
        if self.default_delay is not None:
            overrides["delay"] = self.default_delay
        return overrides

    def validate(self) -> None:
        """Validate configuration values."""
        if self.get_log_level() not in LOG_LEVELS:
            raise ConfigurationError(
                f"logging.level must be one of {list(LOG_LEVELS)}, got {self.get_log_level()!r}"
            )
        if self.get_log_format() not in LOG_FORMATS:
            raise ConfigurationError(
                f"logging.format must be one of {list(LOG_FORMATS)}, got {self.get_log_format()!r}"
            )

        max_attempts = self.default_max_attempts
        if max_attempts is not None and (
            not isinstance(max_attempts, int) or isinstance(max_attempts, bool) or max_attempts < 1
        ):
            raise ConfigurationError(
                f"default_max_attempts must be a positive integer, got {max_attempts!r}"
            )

        delay = self.default_delay
        if delay is not None and (
            not isinstance(delay, (int, float)) or isinstance(delay, bool) or delay < 0
        ):
            raise ConfigurationError(f"default_delay must be a non-negative number, got {delay!r}")

    def __repr__(self) -> str:
        return (
            f"WaitkitConfig(definitions_dirs={self.definitions_dirs}, "
            f"log_level={self.get_log_level()})"
        )


def load_config(config_path: Optional[Path] = None) -> WaitkitConfig:
    """
    Load waitkit configuration.

    Args:
        config_path: Path to config file. Defaults to $WAITKIT_HOME/config.yaml

    Returns:
        WaitkitConfig instance (defaults when the default file is absent)

    Raises:
        ConfigurationError: If the config is invalid, or an explicit path is missing
    """
    if config_path is None:
        config_path = get_waitkit_home() / "config.yaml"
        if not config_path.exists():
            return WaitkitConfig()

    return WaitkitConfig.from_file(Path(config_path))
