"""Incremental decoding of upstream Server-Sent Events."""

import re
import codecs
import logging
from dataclasses import dataclass
from typing import List, Optional, Union

logger = logging.getLogger(__name__)

# CRLF, LF or a bare CR all end a line
_LINE_END_RE = re.compile(r'\r\n|\r|\n')


@dataclass
class SSEEvent:
    """A decoded SSE frame."""
    event: Optional[str]
    data: str


class SSEDecoder:
    """
    Decode a text/event-stream body fed in arbitrary read-sized pieces.

    Frames end at a blank line. Anything after the last complete line is kept
    until the next feed(), so frames (and multi-byte UTF-8 characters) may
    span read boundaries.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        self._buffer = ''
        self._event: Optional[str] = None
        self._data: List[str] = []

    def feed(self, chunk: Union[bytes, str]) -> List[SSEEvent]:
        """Consume a piece of the body and return the frames it completed."""
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        if not chunk:
            return []

        self._buffer += chunk
        events: List[SSEEvent] = []

        while True:
            match = _LINE_END_RE.search(self._buffer)
            if match is None:
                break

            # A trailing CR may be the first half of a CRLF split across reads
            if match.group() == '\r' and match.end() == len(self._buffer):
                break

            line = self._buffer[:match.start()]
            self._buffer = self._buffer[match.end():]

            event = self._process_line(line)
            if event is not None:
                events.append(event)

        return events

    def flush(self) -> List[SSEEvent]:
        """Return whatever frames the rest of the body completes (call at end of body)."""
        tail = self._decoder.decode(b'', final=True)
        if tail:
            self._buffer += tail

        events: List[SSEEvent] = []
        if self._buffer:
            for line in _LINE_END_RE.split(self._buffer):
                event = self._process_line(line)
                if event is not None:
                    events.append(event)
            self._buffer = ''

        event = self._dispatch()
        if event is not None:
            events.append(event)
        return events

    def _process_line(self, line: str) -> Optional[SSEEvent]:
        if line == '':
            return self._dispatch()

        if line.startswith(':'):
            # Comment / keep-alive
            return None

        field_name, _, value = line.partition(':')
        if value.startswith(' '):
            value = value[1:]

        if field_name == 'event':
            self._event = value.strip()
        elif field_name == 'data':
            self._data.append(value)
        else:
            logger.debug(f"Ignoring SSE field: {field_name}")

        return None

    def _dispatch(self) -> Optional[SSEEvent]:
        if self._event is None and not self._data:
            return None

        event = SSEEvent(event=self._event, data='\n'.join(self._data))
        self._event = None
        self._data = []
        return event
