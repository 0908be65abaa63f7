"""
Per-message header/body state machine.

Each message moves through two states:

    AWAITING_HEADERS --(first empty line)--> IN_BODY

While headers are being read, every line starting with ``From:`` (compared
case-insensitively) is offered to the RewriteEngine; all other lines pass
through untouched. Once the empty line separating headers from body has been
seen, every remaining line passes through without inspection.

The Transaction holding the envelope addresses belongs to the caller and is
passed into every operation. SessionState keeps no per-message data of its
own.

Usage:
    >>> state = SessionState(engine)
    >>> tx = state.begin()
    >>> state.on_mail_address(tx, "alice@old.example")
    >>> state.on_line(tx, "From: Alice <alice@old.example>")
    Action(kind=<ActionKind.REPLACE: 'replace'>, line='From: new-from@new.example')
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from filter_rwfrom.engine import RewriteEngine

logger = logging.getLogger(__name__)

FROM_HEADER = "From:"


class MessageState(Enum):
    AWAITING_HEADERS = "awaiting_headers"
    IN_BODY = "in_body"


@dataclass
class Transaction:
    """
    Envelope facts and header position of one message.

    Fields:
        in_header: True until the empty line ending the header block is seen
        mail_address: Envelope sender, once known
        rcpt_address: Envelope recipient, once known
    """
    in_header: bool = True
    mail_address: Optional[str] = None
    rcpt_address: Optional[str] = None

    @property
    def state(self) -> MessageState:
        return MessageState.AWAITING_HEADERS if self.in_header else MessageState.IN_BODY

    def reset(self) -> None:
        """Return to the initial state of a new message."""
        self.in_header = True
        self.mail_address = None
        self.rcpt_address = None


class ActionKind(Enum):
    PASS_THROUGH = "pass_through"
    REPLACE = "replace"


@dataclass(frozen=True)
class Action:
    """
    What to emit for one input line.

    Fields:
        kind: PASS_THROUGH to emit the original line, REPLACE to emit ``line``
            instead of it
        line: The line to emit
    """
    kind: ActionKind
    line: str

    @classmethod
    def pass_through(cls, line: str) -> 'Action':
        return cls(ActionKind.PASS_THROUGH, line)

    @classmethod
    def replace(cls, line: str) -> 'Action':
        return cls(ActionKind.REPLACE, line)

    @property
    def replaced(self) -> bool:
        return self.kind is ActionKind.REPLACE


class SessionState:
    """
    Drive header rewriting for the messages of one session.

    Args:
        engine: RewriteEngine shared by all sessions
    """

    def __init__(self, engine: RewriteEngine):
        self.engine = engine

    def begin(self) -> Transaction:
        """Start a new message."""
        return Transaction()

    def on_mail_address(self, transaction: Transaction, address: str) -> None:
        transaction.mail_address = address

    def on_rcpt_address(self, transaction: Transaction, address: str) -> None:
        transaction.rcpt_address = address

    def on_line(self, transaction: Transaction, line: str) -> Action:
        """
        Decide what to emit for one message line.

        Args:
            transaction: Current message
            line: Message line without its line terminator

        Returns:
            Action telling the caller to pass the line through or replace it
        """
        if not transaction.in_header:
            return Action.pass_through(line)

        if len(line) == 0:
            transaction.in_header = False
            logger.debug("End of header block")
            return Action.pass_through(line)

        prefix = line[:len(FROM_HEADER)]
        if prefix.lower() == FROM_HEADER.lower():
            replacement = self.engine.try_rewrite(transaction, prefix)
            if replacement is not None:
                logger.info(
                    f"Rewrote {prefix} header (mail={transaction.mail_address}, rcpt={transaction.rcpt_address})"
                )
                return Action.replace(replacement)

        return Action.pass_through(line)

    def reset(self, transaction: Optional[Transaction]) -> None:
        """Clear ``transaction`` back to a fresh message. No-op for None."""
        if transaction is not None:
            transaction.reset()
