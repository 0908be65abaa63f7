"""
Filter host: maps mail transport events onto per-session rewriting state.

The transport identifies concurrent transactions by an opaque session id.
FilterHost keeps one SessionState and one Transaction per active session;
the RewriteEngine and its RuleStore are shared read-only by all of them.

Event flow for one message:

    message_begin(sid)
    envelope_sender(sid, addr)
    envelope_recipient(sid, addr)      (possibly several times)
    body_line(sid, text) -> line       (once per message line)
    message_end(sid) -> Verdict.ACCEPT

``message_abort`` and ``connection_close`` drop the transaction. The filter
never rejects a message, it only rewrites header lines.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from filter_rwfrom.engine import RewriteEngine
from filter_rwfrom.session import SessionState, Transaction

logger = logging.getLogger(__name__)


class Verdict(Enum):
    ACCEPT = "accept"


@dataclass
class _Session:
    state: SessionState
    transaction: Transaction


class FilterHost:
    """
    Per-session dispatcher for the From: rewriting filter.

    Args:
        engine: RewriteEngine built from the loaded rule store
    """

    def __init__(self, engine: RewriteEngine):
        self.engine = engine
        self._sessions: Dict[str, _Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def transaction(self, session_id: str) -> Optional[Transaction]:
        """Return the active transaction of ``session_id``, if any."""
        session = self._sessions.get(session_id)
        return session.transaction if session is not None else None

    def _session(self, session_id: str) -> _Session:
        session = self._sessions.get(session_id)
        if session is None:
            state = SessionState(self.engine)
            session = _Session(state=state, transaction=state.begin())
            self._sessions[session_id] = session
            logger.debug(f"New transaction for session {session_id}")
        return session

    def message_begin(self, session_id: str) -> None:
        session = self._session(session_id)
        session.state.reset(session.transaction)

    def envelope_sender(self, session_id: str, address: str) -> None:
        session = self._session(session_id)
        session.state.on_mail_address(session.transaction, address)
        logger.debug(f"mail: {address}")

    def envelope_recipient(self, session_id: str, address: str) -> None:
        session = self._session(session_id)
        session.state.on_rcpt_address(session.transaction, address)
        logger.debug(f"rcpt: {address}")

    def body_line(self, session_id: str, line: str) -> str:
        """
        Process one message line.

        Returns:
            The line to write to the output stream in place of ``line``
        """
        session = self._session(session_id)
        return session.state.on_line(session.transaction, line).line

    def message_end(self, session_id: str) -> Verdict:
        self._discard(session_id)
        return Verdict.ACCEPT

    def message_abort(self, session_id: str) -> None:
        self._discard(session_id)

    def connection_close(self, session_id: str) -> None:
        self._discard(session_id)

    def _discard(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is not None:
            logger.debug(f"Transaction for session {session_id} released")
