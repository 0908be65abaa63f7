"""
Shared fixtures for the filter-rwfrom test suite.

Provides:
- Rule file builders
- Engine / session construction helpers
- Environment and logging isolation
"""
import logging
from pathlib import Path
from typing import Callable, List

import pytest

from filter_rwfrom.engine import RewriteEngine
from filter_rwfrom.logging_context import clear_context
from filter_rwfrom.rules import Rule, RuleStore
from filter_rwfrom.session import SessionState

# Environment variables read by the settings and logging layers
FILTER_ENV_VARS = (
    'RWFROM_CONF',
    'RWFROM_MAX_LINE_SIZE',
    'RWFROM_COMMENT_PREFIX',
    'LOG_LEVEL',
    'LOG_FORMAT',
    'LOG_FILE',
    'LOG_CONSOLE',
    'LOG_JSON_FILE',
    'LOG_JSON_PATH',
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove filter settings from the environment and restore them afterwards."""
    for name in FILTER_ENV_VARS:
        # setenv first so monkeypatch also undoes values written by load_dotenv
        monkeypatch.setenv(name, '')
        monkeypatch.delenv(name)
    yield


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset the package logger after each test."""
    yield
    root_logger = logging.getLogger('filter_rwfrom')
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.NOTSET)
    clear_context()


@pytest.fixture
def write_rules(tmp_path) -> Callable[..., Path]:
    """Return a helper writing rule lines to a file and returning its path."""
    def _write(*lines: str, name: str = 'filter-rwfrom.conf') -> Path:
        path = tmp_path / name
        path.write_text(''.join(f"{line}\n" for line in lines), encoding='utf-8')
        return path
    return _write


@pytest.fixture
def make_state() -> Callable[[List[Rule]], SessionState]:
    """Return a helper building a SessionState over the given rules."""
    def _make(rules: List[Rule], max_line_size: int = 2048) -> SessionState:
        return SessionState(RewriteEngine(RuleStore(rules), max_line_size=max_line_size))
    return _make


@pytest.fixture
def old_example_rules() -> List[Rule]:
    return [Rule("mail", "*@old.example", "new-from@new.example", line=1)]
