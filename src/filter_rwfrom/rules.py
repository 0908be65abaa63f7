"""
Rule file loading for the From: rewriting filter.

The rule file is plain text with one rule per line and three fields separated
by spaces or tabs:

    mail  *@old.example      new-from@new.example
    rcpt  admin@*            admin-alias@example.com

The first field selects the envelope address the pattern is tested against.
It is compared by prefix: any key starting with ``mail`` tests the envelope
sender, any key starting with ``rcpt`` tests the envelope recipient. Keys
that start with neither are accepted but never match.

Loading is all-or-nothing. A line with a key but no pattern, or a key and a
pattern but no address, aborts the whole load with ConfigMalformedError. Blank
lines are skipped. Tokens after the third one are ignored.

Usage:
    >>> from filter_rwfrom.rules import load_rules_file
    >>> store = load_rules_file("/etc/mail/filter-rwfrom.conf")
    >>> len(store)
    2
    >>> store[0].target
    <MatchTarget.MAIL: 'mail'>
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from filter_rwfrom.errors import ConfigMalformedError, ConfigUnreadableError

logger = logging.getLogger(__name__)

DEFAULT_RULES_FILE = "/etc/mail/filter-rwfrom.conf"

# Only the first three fields of a line are ever read
_TOKEN_RE = re.compile(r'[^ \t]+')
_MAX_TOKENS = 3
_KEY_PREFIX_LEN = 4


class MatchTarget(Enum):
    """
    Envelope address a rule is tested against.

    Values:
        MAIL: Envelope sender (MAIL FROM)
        RCPT: Envelope recipient (RCPT TO)
    """
    MAIL = "mail"
    RCPT = "rcpt"

    @classmethod
    def from_key(cls, key: str) -> Optional['MatchTarget']:
        """Resolve a rule key by its 4-character prefix; None for unknown keys."""
        prefix = key[:_KEY_PREFIX_LEN]
        for target in cls:
            if prefix == target.value:
                return target
        return None


@dataclass(frozen=True)
class Rule:
    """
    A single rewrite rule.

    Fields:
        key: Key token as written in the rule file
        pattern: Glob pattern matched against the selected envelope address
        replacement_address: Text placed after ``From:`` when the rule matches
        line: 1-based line number the rule was read from (0 if built in code)

    Example:
        >>> rule = Rule("mail", "*@old.example", "new-from@new.example")
        >>> rule.target
        <MatchTarget.MAIL: 'mail'>
    """
    key: str
    pattern: str
    replacement_address: str
    line: int = 0

    @property
    def target(self) -> Optional[MatchTarget]:
        return MatchTarget.from_key(self.key)


class RuleStore:
    """
    Ordered, read-only sequence of rules.

    A RuleStore is built once at startup and then shared by every session.
    The rules are kept in a tuple, so the store cannot be changed after it is
    built and needs no locking.
    """

    __slots__ = ('_rules',)

    def __init__(self, rules: Iterable[Rule] = ()):
        self._rules: Tuple[Rule, ...] = tuple(rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __getitem__(self, index: int) -> Rule:
        return self._rules[index]

    def __bool__(self) -> bool:
        return bool(self._rules)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RuleStore):
            return NotImplemented
        return self._rules == other._rules

    def __repr__(self) -> str:
        return f"RuleStore({list(self._rules)!r})"

    @property
    def rules(self) -> Tuple[Rule, ...]:
        return self._rules


def tokenize_rule_line(line: str, comment_prefix: Optional[str] = None) -> List[str]:
    """
    Split a rule line into at most three tokens.

    The line terminator is dropped and leading whitespace is skipped. Runs of
    spaces and tabs separate tokens. When ``comment_prefix`` is given, a line
    whose first token starts with it yields no tokens.

    Args:
        line: Raw line from the rule file
        comment_prefix: Optional comment marker, e.g. ``#``

    Returns:
        List of zero to three tokens

    Example:
        >>> tokenize_rule_line("  mail\\t*@a.example   x@b.example extra\\n")
        ['mail', '*@a.example', 'x@b.example']
    """
    tokens = _TOKEN_RE.findall(line.rstrip('\r\n').lstrip())[:_MAX_TOKENS]
    if comment_prefix and tokens and tokens[0].startswith(comment_prefix):
        return []
    return tokens


def parse_rule_line(line: str, line_no: int, comment_prefix: Optional[str] = None) -> Optional[Rule]:
    """
    Parse one line of the rule file.

    Args:
        line: Raw line from the rule file
        line_no: 1-based line number, used in diagnostics
        comment_prefix: Optional comment marker

    Returns:
        The parsed Rule, or None for blank (and comment) lines

    Raises:
        ConfigMalformedError: If the pattern or the address is missing
    """
    tokens = tokenize_rule_line(line, comment_prefix)
    if not tokens:
        return None
    if len(tokens) == 1:
        logger.warning(f"parse: missing pattern at line {line_no}")
        raise ConfigMalformedError(line_no, "missing pattern")
    if len(tokens) == 2:
        logger.warning(f"parse: missing address at line {line_no}")
        raise ConfigMalformedError(line_no, "missing address")

    key, pattern, address = tokens
    rule = Rule(key=key, pattern=pattern, replacement_address=address, line=line_no)
    if rule.target is None:
        logger.debug(f"parse: key '{key}' at line {line_no} is neither mail nor rcpt, rule will never match")
    return rule


def load_rules(source: Iterable[str], comment_prefix: Optional[str] = None) -> RuleStore:
    """
    Build a RuleStore from an iterable of lines (usually an open text file).

    Args:
        source: Lines of the rule file
        comment_prefix: Optional comment marker

    Returns:
        RuleStore holding the rules in file order

    Raises:
        ConfigMalformedError: On the first malformed line; no rules are returned
    """
    rules: List[Rule] = []
    for line_no, line in enumerate(source, start=1):
        rule = parse_rule_line(line, line_no, comment_prefix)
        if rule is not None:
            rules.append(rule)
    return RuleStore(rules)


def load_rules_file(path: Union[str, Path], comment_prefix: Optional[str] = None) -> RuleStore:
    """
    Load the rule file at ``path``.

    Args:
        path: Path to the rule file
        comment_prefix: Optional comment marker

    Returns:
        RuleStore holding the rules in file order

    Raises:
        ConfigUnreadableError: If the file cannot be opened or read
        ConfigMalformedError: If a line is malformed
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            store = load_rules(f, comment_prefix)
    except UnicodeDecodeError as e:
        logger.warning(f"conf: cannot read {path}: {e}")
        raise ConfigUnreadableError(str(path), str(e)) from e
    except OSError as e:
        logger.warning(f"conf: cannot open {path}: {e.strerror or e}")
        raise ConfigUnreadableError(str(path), e.strerror or str(e)) from e

    logger.info(f"Loaded {len(store)} rule(s) from {path}")
    return store
