"""
Settings for the filter process.

Settings come from three layers, later layers winning:

1. Built-in defaults
2. An optional YAML settings file
3. Environment variables (optionally loaded from a .env file)

Example settings file:

    rules_file: /etc/mail/filter-rwfrom.conf
    max_line_size: 2048
    comment_prefix: "#"
    logging:
      level: DEBUG
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv

from filter_rwfrom.engine import MAX_LINE_SIZE
from filter_rwfrom.errors import ConfigError
from filter_rwfrom.rules import DEFAULT_RULES_FILE

DEFAULT_COMMENT_PREFIX = '#'

ENV_VAR_MAPPING = {
    'RWFROM_CONF': 'rules_file',
    'RWFROM_MAX_LINE_SIZE': 'max_line_size',
    'RWFROM_COMMENT_PREFIX': 'comment_prefix',
}


@dataclass(frozen=True)
class FilterSettings:
    """
    Effective filter settings.

    Attributes:
        rules_file: Path to the rule file
        max_line_size: Line buffer size bounding rewritten header lines
        comment_prefix: Marker for comment lines in the rule file, or None
        logging: Overrides passed to init_logging()
    """
    rules_file: Path = Path(DEFAULT_RULES_FILE)
    max_line_size: int = MAX_LINE_SIZE
    comment_prefix: Optional[str] = DEFAULT_COMMENT_PREFIX
    logging: Dict[str, Any] = field(default_factory=dict)


def load_yaml_config(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load and parse a YAML settings file.

    Args:
        path: Path to the YAML settings file

    Returns:
        Dictionary containing the parsed settings (empty for an empty file)

    Raises:
        ConfigError: If the file doesn't exist, contains invalid YAML or is not a mapping
    """
    if not os.path.exists(path):
        raise ConfigError(f"Settings file not found: {path}")
    with open(path, 'r', encoding='utf-8') as f:
        try:
            config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"YAML parse error in {path}: {e}") from e
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigError(f"Settings file {path} must contain a mapping, got {type(config).__name__}")
    return config


def load_env_vars(env_path: Union[str, Path]) -> None:
    """
    Load environment variables from a .env file.

    Variables already present in the environment are not overridden.

    Raises:
        ConfigError: If the .env file doesn't exist
    """
    if not os.path.exists(env_path):
        raise ConfigError(f"Env file not found: {env_path}")
    load_dotenv(env_path)


def _parse_max_line_size(value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"max_line_size must be an integer, got {value!r}")
    try:
        size = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"max_line_size must be an integer, got {value!r}")
    if size < 2:
        raise ConfigError(f"max_line_size must be at least 2, got {size}")
    return size


def _parse_comment_prefix(value: Any) -> Optional[str]:
    # An empty value switches comment handling off
    if value is None or value == '':
        return None
    return str(value)


def load_settings(
    settings_path: Optional[Union[str, Path]] = None,
    env_path: Optional[Union[str, Path]] = None
) -> FilterSettings:
    """
    Build FilterSettings from defaults, the settings file and the environment.

    Args:
        settings_path: Optional YAML settings file
        env_path: Optional .env file loaded before environment overrides are read

    Returns:
        FilterSettings

    Raises:
        ConfigError: If a file is missing or a value is invalid

    Example:
        >>> settings = load_settings('config/filter.yaml')
        >>> settings.rules_file
        PosixPath('/etc/mail/filter-rwfrom.conf')
    """
    raw: Dict[str, Any] = {}
    if settings_path is not None:
        raw.update(load_yaml_config(settings_path))

    if env_path is not None:
        load_env_vars(env_path)

    for env_var, key in ENV_VAR_MAPPING.items():
        env_value = os.environ.get(env_var)
        if env_value is not None:
            raw[key] = env_value

    logging_overrides = raw.get('logging') or {}
    if not isinstance(logging_overrides, dict):
        raise ConfigError("'logging' settings must be a mapping")

    return FilterSettings(
        rules_file=Path(raw.get('rules_file', DEFAULT_RULES_FILE)),
        max_line_size=_parse_max_line_size(raw.get('max_line_size', MAX_LINE_SIZE)),
        comment_prefix=_parse_comment_prefix(raw.get('comment_prefix', DEFAULT_COMMENT_PREFIX)),
        logging=dict(logging_overrides),
    )
