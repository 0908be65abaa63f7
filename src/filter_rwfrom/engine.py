"""
Rule evaluation: turn a transaction and a header name into a rewritten header.

The engine walks the rule store in file order and stops at the first rule
whose pattern matches the envelope address the rule is keyed on. Earlier
rules shadow later ones.

A replacement line is composed as ``<header prefix> <replacement address>``
and is bounded by the SMTP line buffer size. Longer lines are cut short and
a warning is logged; the message is still processed.
"""

import logging
from typing import Optional, TYPE_CHECKING

from filter_rwfrom.errors import ErrorCode
from filter_rwfrom.match import match_pattern
from filter_rwfrom.rules import MatchTarget, Rule, RuleStore

if TYPE_CHECKING:
    from filter_rwfrom.session import Transaction

logger = logging.getLogger(__name__)

# Size of the SMTP server's line buffer, terminating NUL included
MAX_LINE_SIZE = 2048


def truncate_line(line: str, max_line_size: int = MAX_LINE_SIZE) -> str:
    """
    Cut ``line`` so that its UTF-8 encoding fits a buffer of ``max_line_size``.

    One byte of the buffer is reserved for the terminator. The cut never splits
    a multi-byte character.
    """
    limit = max_line_size - 1
    encoded = line.encode('utf-8')
    if len(encoded) <= limit:
        return line
    return encoded[:limit].decode('utf-8', errors='ignore')


class RewriteEngine:
    """
    Evaluate the rule store against a transaction.

    Args:
        rules: Rule store loaded at startup
        max_line_size: Line buffer size bounding composed header lines

    Example:
        >>> engine = RewriteEngine(load_rules_file("rules.conf"))
        >>> engine.try_rewrite(tx, "From:")
        'From: new-from@new.example'
    """

    def __init__(self, rules: RuleStore, max_line_size: int = MAX_LINE_SIZE):
        if max_line_size < 2:
            raise ValueError(f"max_line_size must be at least 2, got {max_line_size}")
        self.rules = rules
        self.max_line_size = max_line_size

    def find_rule(self, transaction: 'Transaction') -> Optional[Rule]:
        """Return the first rule matching the transaction, or None."""
        for rule in self.rules:
            target = rule.target
            if target is MatchTarget.MAIL:
                address = transaction.mail_address
            elif target is MatchTarget.RCPT:
                address = transaction.rcpt_address
            else:
                continue
            if address is not None and match_pattern(address, rule.pattern):
                return rule
        return None

    def try_rewrite(self, transaction: 'Transaction', header_prefix: str) -> Optional[str]:
        """
        Compose the replacement header line for ``transaction``.

        Args:
            transaction: Envelope facts of the current message
            header_prefix: Header name exactly as it appears in the input line

        Returns:
            The full replacement line, or None if no rule matches
        """
        rule = self.find_rule(transaction)
        if rule is None:
            return None

        composed = f"{header_prefix} {rule.replacement_address}"
        line = truncate_line(composed, self.max_line_size)
        if line != composed:
            logger.warning(
                f"[{ErrorCode.LINE_TOO_LONG}] Replacement header from rule at line {rule.line} "
                f"exceeds {self.max_line_size - 1} bytes, truncated"
            )
        logger.debug(f"Rule at line {rule.line} ({rule.key} {rule.pattern}) matched, rewriting header")
        return line
