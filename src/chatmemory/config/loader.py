"""Configuration loading and validation."""

from pathlib import Path

import yaml
from pydantic import ValidationError

from chatmemory.config.schema import ChatMemoryConfig
from chatmemory.errors import InvalidConfigurationError

DEFAULT_CONFIG_PATH = Path.home() / ".chatmemory" / "chatmemory.yaml"


class ConfigError(InvalidConfigurationError):
    """Configuration loading or validation error."""


def load_config(path: str | Path | None = None) -> ChatMemoryConfig:
    """Load and validate configuration from a YAML file.

    Args:
        path: Path to config file. If None, tries the default location.
              If the file doesn't exist, returns the default config.

    Returns:
        Validated configuration object

    Raises:
        ConfigError: If the config file exists but is invalid
    """
    path = DEFAULT_CONFIG_PATH if path is None else Path(path)

    if not path.exists():
        return ChatMemoryConfig()

    try:
        with open(path) as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config from {path}: {e}") from e

    if config_data is None:
        return ChatMemoryConfig()
    if not isinstance(config_data, dict):
        raise ConfigError(f"Expected a mapping at the top of {path}")

    try:
        return ChatMemoryConfig(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e


def save_config(config: ChatMemoryConfig, path: str | Path | None = None) -> None:
    """Save configuration to a YAML file.

    Args:
        config: Configuration object to save
        path: Destination path. If None, uses the default location.
    """
    path = DEFAULT_CONFIG_PATH if path is None else Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        yaml.safe_dump(config.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)
