"""
Error types and error logging utilities for filter-rwfrom.

This module provides:
- The exception hierarchy raised while loading settings and rule files
- Error codes for the different failure categories
- Standardized error logging with operation context

A broken configuration is always fatal: the filter refuses to start instead
of running with an empty or partially loaded rule set. Overlong replacement
lines are not errors; they are truncated and logged under
``ErrorCode.LINE_TOO_LONG``.
"""

import logging
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


class ErrorCode:
    """Standard error codes for different error categories."""
    # Configuration errors (1xxx)
    CONFIG_UNREADABLE = "E1001"
    CONFIG_MALFORMED = "E1002"
    SETTINGS_INVALID = "E1003"

    # Message processing (2xxx)
    LINE_TOO_LONG = "E2001"
    PROTOCOL_INVALID = "E2002"

    # Unknown errors (9xxx)
    UNKNOWN_ERROR = "E9001"


class FilterError(Exception):
    """Base class for all filter-rwfrom errors."""
    pass


class ConfigError(FilterError):
    """
    Raised when the settings file or environment cannot be used.

    This exception is raised for:
    - Missing settings files
    - Invalid YAML syntax or a settings document that is not a mapping
    - Settings values of the wrong type or out of range
    """
    pass


class RuleConfigError(FilterError):
    """Base class for errors raised while loading the rule file."""
    pass


class ConfigUnreadableError(RuleConfigError):
    """
    Raised when the rule file cannot be opened or read.

    Attributes:
        path: Path of the rule file
        reason: Description of the underlying OS error
    """

    def __init__(self, path: str, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"cannot open {self.path}: {reason}")


class ConfigMalformedError(RuleConfigError):
    """
    Raised when a rule line cannot be parsed.

    Attributes:
        line: 1-based line number of the offending line
        reason: Short reason, e.g. "missing pattern" or "missing address"
    """

    def __init__(self, line: int, reason: str):
        self.line = line
        self.reason = reason
        super().__init__(f"{reason} at line {line}")


def error_code_for(error: Exception) -> str:
    """
    Map an exception to its standard error code.

    Example:
        >>> error_code_for(ConfigMalformedError(3, "missing address"))
        'E1002'
    """
    if isinstance(error, ConfigUnreadableError):
        return ErrorCode.CONFIG_UNREADABLE
    elif isinstance(error, ConfigMalformedError):
        return ErrorCode.CONFIG_MALFORMED
    elif isinstance(error, ConfigError):
        return ErrorCode.SETTINGS_INVALID
    return ErrorCode.UNKNOWN_ERROR


def log_error_with_context(
    error: Exception,
    error_code: str,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
    level: int = logging.ERROR,
    include_traceback: bool = False
) -> None:
    """
    Log an error with standardized context information.

    Args:
        error: The exception that occurred
        error_code: Standard error code from ErrorCode class
        operation: Description of the operation that failed
        context: Additional context dictionary (rule file, line number, etc.)
        level: Logging level (default: ERROR)
        include_traceback: Whether to include full traceback (default: False)

    Example:
        >>> try:
        ...     load_rules_file(path)
        ... except RuleConfigError as e:
        ...     log_error_with_context(
        ...         e, error_code_for(e), "Loading rule file",
        ...         context={'path': path}
        ...     )
    """
    error_type = type(error).__name__
    error_message = str(error)

    context_str = ""
    if context:
        context_items = [f"{k}={v}" for k, v in context.items() if v is not None]
        if context_items:
            context_str = f" | Context: {', '.join(context_items)}"

    log_message = (
        f"[{error_code}] {operation} failed: {error_type}: {error_message}{context_str}"
    )

    logger.log(level, log_message, exc_info=include_traceback)
