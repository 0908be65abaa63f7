"""
Logging context for filter-rwfrom.

Stores contextual information (the session id of the transaction being
filtered, and a run id identifying the filter process) that ContextFilter adds
to every log record.

Usage:
    >>> from filter_rwfrom.logging_context import with_session_context
    >>>
    >>> with with_session_context('4f2a1c'):
    >>>     logger.info("This log will include session_id")
    >>> # The previous session id is restored after the block
"""
import contextvars
from contextlib import contextmanager
from typing import Dict, Any, Optional

_session_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar('session_id', default=None)
_run_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar('run_id', default=None)


def get_logging_context() -> Dict[str, Any]:
    """
    Get the current logging context.

    Returns:
        Dictionary with the fields that are currently set:
        - session_id: Session of the transaction being filtered
        - run_id: Identifier of the filter process run
    """
    context = {}
    session_id = _session_id.get()
    run_id = _run_id.get()
    if session_id is not None:
        context['session_id'] = session_id
    if run_id is not None:
        context['run_id'] = run_id
    return context


def set_session_id(session_id: Optional[str]) -> None:
    _session_id.set(session_id)


def set_run_id(run_id: Optional[str]) -> None:
    _run_id.set(run_id)


def clear_context() -> None:
    """Clear all context fields."""
    _session_id.set(None)
    _run_id.set(None)


@contextmanager
def with_session_context(session_id: Optional[str]):
    """
    Context manager setting the session id for the enclosed block.

    Args:
        session_id: Session identifier used by the transport
    """
    token = _session_id.set(session_id)
    try:
        yield
    finally:
        _session_id.reset(token)
