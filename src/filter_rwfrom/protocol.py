"""
Line-based event protocol between the mail transport and the filter.

Each input line carries one event, fields separated by ``|``. The line is
split at most twice, so message text may itself contain ``|``:

    <sid>|begin
    <sid>|mail|<address>
    <sid>|rcpt|<address>
    <sid>|data|<text>
    <sid>|end
    <sid>|abort
    <sid>|close

The filter answers every ``data`` event with ``<sid>|line|<text>`` and every
``end`` event with ``<sid>|accept``. Malformed or unknown lines are logged and
skipped. Output is flushed after each event so the transport never waits on a
buffered answer.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, TextIO

from filter_rwfrom.errors import ErrorCode
from filter_rwfrom.filter import FilterHost
from filter_rwfrom.logging_context import with_session_context

logger = logging.getLogger(__name__)

SEPARATOR = '|'

# Events that carry a payload
_PAYLOAD_EVENTS = ('mail', 'rcpt', 'data')
_BARE_EVENTS = ('begin', 'end', 'abort', 'close')


class ProtocolError(ValueError):
    """Raised for an input line that is not a valid event."""
    pass


@dataclass(frozen=True)
class Event:
    session_id: str
    name: str
    payload: Optional[str] = None


def parse_event(line: str) -> Event:
    """
    Parse one protocol line (without its terminator).

    Raises:
        ProtocolError: If the line is not a valid event

    Example:
        >>> parse_event("42|data|Subject: a|b")
        Event(session_id='42', name='data', payload='Subject: a|b')
    """
    fields = line.split(SEPARATOR, 2)
    if len(fields) < 2 or not fields[0]:
        raise ProtocolError(f"malformed event line: {line!r}")

    session_id, name = fields[0], fields[1]
    if name in _PAYLOAD_EVENTS:
        if len(fields) < 3:
            raise ProtocolError(f"event '{name}' needs a payload")
        return Event(session_id, name, fields[2])
    if name in _BARE_EVENTS:
        return Event(session_id, name)
    raise ProtocolError(f"unknown event '{name}'")


class ProtocolDriver:
    """
    Run a FilterHost over a pair of text streams.

    Args:
        host: FilterHost receiving the events
        output: Stream answers are written to
    """

    def __init__(self, host: FilterHost, output: TextIO):
        self.host = host
        self.output = output

    def _emit(self, *fields: str) -> None:
        self.output.write(SEPARATOR.join(fields) + '\n')
        self.output.flush()

    def dispatch(self, event: Event) -> None:
        """Apply one event to the host and write its answer, if any."""
        sid = event.session_id
        with with_session_context(sid):
            if event.name == 'begin':
                self.host.message_begin(sid)
            elif event.name == 'mail':
                self.host.envelope_sender(sid, event.payload)
            elif event.name == 'rcpt':
                self.host.envelope_recipient(sid, event.payload)
            elif event.name == 'data':
                self._emit(sid, 'line', self.host.body_line(sid, event.payload))
            elif event.name == 'end':
                verdict = self.host.message_end(sid)
                self._emit(sid, verdict.value)
            elif event.name == 'abort':
                self.host.message_abort(sid)
            elif event.name == 'close':
                self.host.connection_close(sid)

    def run(self, source: Iterable[str]) -> int:
        """
        Process events until ``source`` is exhausted.

        Returns:
            Number of events dispatched
        """
        count = 0
        for line_no, raw in enumerate(source, start=1):
            line = raw.rstrip('\r\n')
            if not line:
                continue
            try:
                event = parse_event(line)
            except ProtocolError as e:
                logger.warning(f"[{ErrorCode.PROTOCOL_INVALID}] Skipping input line {line_no}: {e}")
                continue
            self.dispatch(event)
            count += 1
        return count
