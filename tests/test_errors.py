"""
Tests for error types and error logging.
"""
import logging

from filter_rwfrom.errors import (
    ConfigError,
    ConfigMalformedError,
    ConfigUnreadableError,
    ErrorCode,
    FilterError,
    RuleConfigError,
    error_code_for,
    log_error_with_context,
)


class TestErrorTypes:
    def test_hierarchy(self):
        assert issubclass(ConfigError, FilterError)
        assert issubclass(ConfigUnreadableError, RuleConfigError)
        assert issubclass(ConfigMalformedError, RuleConfigError)
        assert not issubclass(ConfigError, RuleConfigError)

    def test_unreadable_message(self):
        error = ConfigUnreadableError("/etc/mail/filter-rwfrom.conf", "No such file or directory")
        assert str(error) == "cannot open /etc/mail/filter-rwfrom.conf: No such file or directory"

    def test_error_codes(self):
        assert error_code_for(ConfigUnreadableError("x", "y")) == ErrorCode.CONFIG_UNREADABLE
        assert error_code_for(ConfigMalformedError(1, "missing pattern")) == ErrorCode.CONFIG_MALFORMED
        assert error_code_for(ConfigError("bad")) == ErrorCode.SETTINGS_INVALID
        assert error_code_for(RuntimeError("?")) == ErrorCode.UNKNOWN_ERROR


class TestLogErrorWithContext:
    def test_message_format(self, caplog):
        caplog.set_level(logging.ERROR, logger='filter_rwfrom')
        error = ConfigMalformedError(3, "missing address")

        log_error_with_context(error, ErrorCode.CONFIG_MALFORMED, "Loading rule file",
                               context={'path': 'rules.conf', 'skip': None})

        assert caplog.records[-1].getMessage() == (
            "[E1002] Loading rule file failed: ConfigMalformedError: missing address at line 3"
            " | Context: path=rules.conf"
        )

    def test_custom_level(self, caplog):
        caplog.set_level(logging.WARNING, logger='filter_rwfrom')
        log_error_with_context(ConfigError("x"), ErrorCode.SETTINGS_INVALID, "Reading settings",
                               level=logging.WARNING)
        assert caplog.records[-1].levelno == logging.WARNING
