"""
Logging configuration for filter-rwfrom.

This module initializes the ``filter_rwfrom`` logger tree on startup so all
components log with the same settings and contextual information.

Key Features:
    - Console logging on stderr (stdout carries the filtered message data)
    - Optional rotating log file and JSONL file
    - Plain text and JSON formats
    - Session-aware records (session_id, run_id)
    - Environment variable and runtime overrides

Usage:
    >>> from filter_rwfrom.logging_config import init_logging
    >>>
    >>> # Initialize with defaults
    >>> init_logging()
    >>>
    >>> # Initialize with runtime overrides
    >>> init_logging(overrides={'level': 'DEBUG', 'format': 'json'})
    >>>
    >>> import logging
    >>> logger = logging.getLogger(__name__)
    >>> logger.info("This will include context automatically")
"""
import copy
import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any

from filter_rwfrom.logging_context import get_logging_context

ROOT_LOGGER_NAME = 'filter_rwfrom'

PLAIN_FORMAT = '%(asctime)s %(levelname)-8s [%(session_id)s] [%(component)s] %(message)s'

# Default configuration
DEFAULT_CONFIG = {
    'level': 'INFO',
    'format': 'plain',  # 'plain' or 'json'
    'handlers': {
        'console': {
            'enabled': True,
            'level': 'INFO'
        },
        'file': {
            'enabled': False,
            'path': 'logs/filter_rwfrom.log',
            'level': 'INFO',
            'max_bytes': 10 * 1024 * 1024,  # 10MB
            'backup_count': 5
        },
        'json_file': {
            'enabled': False,
            'path': 'logs/filter_rwfrom.jsonl',
            'level': 'INFO'
        }
    }
}

# Environment variable overrides
ENV_VAR_MAPPING = {
    'LOG_LEVEL': 'level',
    'LOG_FORMAT': 'format',
    'LOG_FILE': ('handlers', 'file', 'path'),
    'LOG_CONSOLE': ('handlers', 'console', 'enabled'),
    'LOG_JSON_FILE': ('handlers', 'json_file', 'enabled'),
    'LOG_JSON_PATH': ('handlers', 'json_file', 'path'),
}

_BOOLEAN_ENV_VARS = ('LOG_CONSOLE', 'LOG_JSON_FILE')


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Formats log records as JSON with context fields included.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'component': getattr(record, 'component', 'unknown'),
        }

        for field in ('session_id', 'run_id'):
            value = getattr(record, field, None)
            if value is not None and value != 'N/A':
                log_data[field] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Filter that adds session context fields to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = get_logging_context()
        record.session_id = context.get('session_id', 'N/A')
        record.run_id = context.get('run_id', 'N/A')

        if not hasattr(record, 'component'):
            # Last part of the module path, e.g. 'engine' from 'filter_rwfrom.engine'
            record.component = record.name.rsplit('.', 1)[-1]

        return True


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration."""
    config = copy.deepcopy(config)

    for env_var, config_path in ENV_VAR_MAPPING.items():
        env_value = os.environ.get(env_var)
        if env_value is None:
            continue

        if isinstance(config_path, tuple):
            current = config
            for key in config_path[:-1]:
                current = current.setdefault(key, {})
            key = config_path[-1]
            if env_var in _BOOLEAN_ENV_VARS:
                current[key] = env_value.lower() in ('true', '1', 'yes', 'on')
            else:
                current[key] = env_value
                # Naming a log file implies wanting it
                if env_var == 'LOG_FILE':
                    current['enabled'] = True
        elif config_path == 'level':
            config[config_path] = env_value.upper()
        elif config_path == 'format':
            config[config_path] = env_value.lower()
        else:
            config[config_path] = env_value

    return config


def _merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge configuration dictionaries."""
    result = copy.deepcopy(base)

    for key, value in overrides.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_config(result[key], value)
        else:
            result[key] = value

    return result


def _level(name: Optional[str]) -> int:
    return getattr(logging, str(name or 'INFO').upper(), logging.INFO)


def _make_formatter(log_format: str) -> logging.Formatter:
    if log_format == 'json':
        return JSONFormatter()
    return logging.Formatter(fmt=PLAIN_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')


def _setup_handlers(logger: logging.Logger, config: Dict[str, Any]) -> None:
    """
    Set up logging handlers based on configuration.

    Args:
        logger: Root logger of the package
        config: Logging configuration
    """
    handlers_config = config.get('handlers', {})
    log_format = config.get('format', 'plain')
    default_level = config.get('level', 'INFO')
    context_filter = ContextFilter()

    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    console_config = handlers_config.get('console', {})
    if console_config.get('enabled', True):
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(_level(console_config.get('level', default_level)))
        console_handler.setFormatter(_make_formatter(log_format))
        console_handler.addFilter(context_filter)
        logger.addHandler(console_handler)

    file_config = handlers_config.get('file', {})
    if file_config.get('enabled', False):
        file_path = Path(file_config.get('path', 'logs/filter_rwfrom.log'))
        file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            str(file_path),
            maxBytes=file_config.get('max_bytes', 10 * 1024 * 1024),
            backupCount=file_config.get('backup_count', 5),
            encoding='utf-8',
            errors='backslashreplace'
        )
        file_handler.setLevel(_level(file_config.get('level', default_level)))
        file_handler.setFormatter(_make_formatter(log_format))
        file_handler.addFilter(context_filter)
        logger.addHandler(file_handler)

    json_config = handlers_config.get('json_file', {})
    if json_config.get('enabled', False):
        json_path = Path(json_config.get('path', 'logs/filter_rwfrom.jsonl'))
        json_path.parent.mkdir(parents=True, exist_ok=True)

        json_handler = logging.FileHandler(str(json_path), encoding='utf-8', errors='backslashreplace')
        json_handler.setLevel(_level(json_config.get('level', default_level)))
        json_handler.setFormatter(JSONFormatter())
        json_handler.addFilter(context_filter)
        logger.addHandler(json_handler)


def build_logging_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Compute the effective logging configuration.

    Precedence (lowest to highest): defaults, environment, runtime overrides.
    The CLI passes the ``logging`` section of the settings file as overrides.
    """
    config = _apply_env_overrides(copy.deepcopy(DEFAULT_CONFIG))

    if overrides:
        config = _merge_config(config, overrides)

    return config


def init_logging(overrides: Optional[Dict[str, Any]] = None) -> logging.Logger:
    """
    Initialize the package's logging configuration.

    This should be called once at startup, before the rule file is loaded.

    Args:
        overrides: Optional dictionary of runtime overrides (e.g., {'level': 'DEBUG'})

    Returns:
        The configured ``filter_rwfrom`` root logger
    """
    config = build_logging_config(overrides)

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(_level(config.get('level')))
    _setup_handlers(root_logger, config)

    root_logger.debug(f"Effective logging configuration: level={config.get('level')}, format={config.get('format')}")
    return root_logger
