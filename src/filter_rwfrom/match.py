"""
Glob-style matching of addresses against rule patterns.

Patterns use two wildcards:

- ``*`` matches any run of zero or more bytes
- ``?`` matches exactly one byte

Every other byte matches itself, case-sensitively. Subject and pattern are
compared as their UTF-8 encodings, so a non-ASCII character counts as
several bytes: ``?`` never matches ``é`` but ``??`` does. The whole subject
has to match, there is no substring search. There are no character classes
and no escapes, so every string is a valid pattern and matching never fails.

Pattern lists are comma-separated patterns where an entry prefixed with
``!`` is a negative entry.

Example:
    >>> match_pattern("alice@old.example", "*@old.example")
    True
    >>> match_pattern_list("x@y", "!x@y,*@y")
    False
"""

_STAR = ord('*')
_ANY = ord('?')


def _as_bytes(text: str) -> bytes:
    # Undecodable input bytes arrive as surrogate escapes and go back unchanged
    return text.encode('utf-8', 'surrogateescape')


def match_pattern(subject: str, pattern: str) -> bool:
    """
    Return True if ``subject`` matches the glob ``pattern`` in full.

    Args:
        subject: String to test, typically an envelope address
        pattern: Glob pattern using ``*`` and ``?``

    Returns:
        True on a full match, False otherwise
    """
    subject_bytes = _as_bytes(subject)
    pattern_bytes = _as_bytes(pattern)

    s = p = 0
    # Position of the last '*' seen and the subject index it is retried from
    star = -1
    resume = 0

    while s < len(subject_bytes):
        if p < len(pattern_bytes) and pattern_bytes[p] == _STAR:
            star = p
            resume = s
            p += 1
        elif p < len(pattern_bytes) and pattern_bytes[p] in (_ANY, subject_bytes[s]):
            s += 1
            p += 1
        elif star != -1:
            # Let the last star swallow one more byte and retry
            resume += 1
            s = resume
            p = star + 1
        else:
            return False

    # Only trailing stars may remain
    while p < len(pattern_bytes) and pattern_bytes[p] == _STAR:
        p += 1
    return p == len(pattern_bytes)


def match_pattern_list(subject: str, pattern_list: str, invert_on_final_mismatch: bool = False) -> bool:
    """
    Match ``subject`` against a comma-separated list of patterns.

    Entries are tried left to right and the first entry that matches decides
    the outcome: a negative entry (``!pattern``) gives False, a positive entry
    gives True. Commas are hard separators, whitespace around them is part of
    the pattern.

    Args:
        subject: String to test
        pattern_list: Comma-separated patterns, optionally prefixed with ``!``
        invert_on_final_mismatch: Result to return when no entry matches.
            The default False makes an unmatched subject a non-match; True
            turns the list into an "everything except" list.

    Returns:
        Outcome of the first matching entry, or ``invert_on_final_mismatch``
    """
    for entry in pattern_list.split(','):
        negated = entry.startswith('!')
        if negated:
            entry = entry[1:]
        if match_pattern(subject, entry):
            return not negated
    return invert_on_final_mismatch
