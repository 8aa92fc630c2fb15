"""
Configuration management with YAML loading and environment variable support.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .constants import DEFAULT_COMMAND_TIMEOUT

SECTIONS = ["paths", "runner", "commands", "logging"]


def _get_default_logs_dir() -> Path:
    """Get default logs directory based on XDG base directories."""
    if xdg_state := os.environ.get("XDG_STATE_HOME"):
        return Path(xdg_state) / "oprunner" / "logs"
    return Path.home() / ".local" / "state" / "oprunner" / "logs"


def _env_path(env_var: str, default: Path | None = None) -> Path | None:
    """Get path from environment variable or return default."""
    if value := os.environ.get(env_var):
        return Path(value)
    return default


@dataclass
class PathsConfig:
    """Paths configuration - can be overridden via environment variables."""

    logs_dir: Path | None = field(default_factory=lambda: _env_path("OPR_LOG_DIR", _get_default_logs_dir()))


@dataclass
class RunnerConfig:
    indeterminate: bool = False
    write_log_file: bool = False  # Write a per-run log file to paths.logs_dir


@dataclass
class CommandConfig:
    timeout: float = DEFAULT_COMMAND_TIMEOUT  # Seconds, 0 = no limit
    shell: bool = False  # Run string commands through the shell


@dataclass
class LoggingConfig:
    level: str = "WARNING"
    file_logging: bool = False
    console_logging: bool = True


@dataclass
class AppConfig:
    paths: PathsConfig = field(default_factory=PathsConfig)
    runner: RunnerConfig = field(default_factory=RunnerConfig)
    commands: CommandConfig = field(default_factory=CommandConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "AppConfig":
        """Load configuration from YAML file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict) -> "AppConfig":
        """Create config from dictionary. Unknown sections and keys are ignored."""
        config = cls()

        for section_name in SECTIONS:
            values = data.get(section_name)
            if not isinstance(values, dict):
                continue
            section = getattr(config, section_name)
            for key, value in values.items():
                if not hasattr(section, key):
                    continue
                if section_name == "paths" and isinstance(value, str):
                    value = Path(value).expanduser()
                setattr(section, key, value)

        return config

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        result = {}
        for attr in SECTIONS:
            section = getattr(self, attr)
            result[attr] = {
                key: str(value) if isinstance(value, Path) else value for key, value in vars(section).items()
            }
        return result


def _get_default_config_dir() -> Path:
    """Get default config directory."""
    # Check environment variable first
    if config_dir := os.environ.get("OPR_CONFIG_DIR"):
        return Path(config_dir)

    # Check XDG config home
    if xdg_config := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_config) / "oprunner"

    # Fall back to ~/.config
    return Path.home() / ".config" / "oprunner"


def load_config(config_path: Path | None = None, config_dir: Path | None = None) -> AppConfig:
    """
    Load configuration.

    Args:
        config_path: Path to config file (default: searches standard locations)
        config_dir: Config directory to search (default: OPR_CONFIG_DIR or XDG)

    Returns:
        AppConfig, with defaults for anything not configured
    """
    if config_path is None:
        if config_dir is None:
            config_dir = _get_default_config_dir()

        search_paths = [
            config_dir / "config.yaml",
            Path.cwd() / "oprunner.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = path
                break

    return AppConfig.from_yaml(config_path) if config_path else AppConfig()
