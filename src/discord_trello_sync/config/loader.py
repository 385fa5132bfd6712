"""Configuration loader with YAML parsing and environment variable substitution."""

import os
import re
from pathlib import Path

import yaml

from .schema import BridgeConfig

# Anything longer than this turns a restart into a flood of historical notifications.
MAX_LOOKBACK_MINUTES = 24 * 60


def substitute_env_vars(text: str) -> str:
    """
    Replace ${VAR_NAME} patterns with environment variable values.

    Args:
        text: Text containing ${VAR_NAME} patterns

    Returns:
        Text with environment variables substituted

    Raises:
        ValueError: If a referenced environment variable is not found
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(f"Environment variable {var_name} not found")
        return value

    return re.sub(r"\$\{([^}]+)\}", replacer, text)


def load_config(path: Path) -> BridgeConfig:
    """
    Load configuration from YAML file with environment variable substitution.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated BridgeConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If environment variables are missing or config is invalid
        ValidationError: If config doesn't match schema
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with path.open() as f:
        raw_yaml = f.read()

    # Substitute environment variables
    yaml_with_env = substitute_env_vars(raw_yaml)

    # Parse YAML
    config_dict = yaml.safe_load(yaml_with_env)
    if not isinstance(config_dict, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")

    # Validate and construct Pydantic model
    config = BridgeConfig.model_validate(config_dict)

    # Additional cross-field validation
    validate_config(config)

    return config


def validate_config(config: BridgeConfig) -> None:
    """
    Perform additional cross-field validation.

    Args:
        config: Configuration to validate

    Raises:
        ValueError: If settings contradict each other
    """
    polling = config.polling

    if polling.lookback_minutes > MAX_LOOKBACK_MINUTES:
        raise ValueError(
            f"polling.lookback_minutes must be at most {MAX_LOOKBACK_MINUTES}, "
            f"got {polling.lookback_minutes}"
        )

    if polling.delivery_delay >= polling.interval_seconds:
        raise ValueError("polling.delivery_delay must be shorter than polling.interval_seconds")

    if config.retry.initial_delay > config.retry.max_delay:
        raise ValueError("retry.initial_delay must not exceed retry.max_delay")
