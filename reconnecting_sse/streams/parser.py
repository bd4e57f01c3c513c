"""Incremental parser turning a raw event stream body into message events."""

import codecs
import json
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass

from reconnecting_sse.errors import FrameParseError, Utf8DecodeError

DEFAULT_MAX_LINE_SIZE = 1024 * 1024
_BOM = "\ufeff"
_LINE_END = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class MessageEvent:
    id: str = ""
    event: str = "message"
    data: str = ""
    retry: float | None = None  # seconds

    def json(self):
        return json.loads(self.data)


def split_field(line: str) -> tuple[str, str]:
    name, sep, value = line.partition(":")
    if sep and value.startswith(" "):
        value = value[1:]
    return name, value


class EventStreamParser:
    """Feed body chunks in, get complete events out.

    The last-event-id buffer persists across events, so an event without an
    ``id`` field reports the most recent id seen (or the one the parser was
    primed with).
    """

    def __init__(
        self, last_event_id: str = "", max_line_size: int = DEFAULT_MAX_LINE_SIZE
    ):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="strict")
        self._max_line_size = max_line_size
        self._buffer = ""
        self._started = False
        self._last_event_id = last_event_id
        self._event_type = ""
        self._data: list[str] = []
        self._retry: float | None = None

    @property
    def last_event_id(self) -> str:
        return self._last_event_id

    def feed(self, chunk: bytes) -> list[MessageEvent]:
        return self._consume(self._decode(chunk, final=False), final=False)

    def flush(self) -> list[MessageEvent]:
        """Process whatever is buffered once the body has ended.

        A frame that was never terminated by a blank line is dropped.
        """
        events = self._consume(self._decode(b"", final=True), final=True)
        self._event_type = ""
        self._data = []
        self._retry = None
        return events

    def _decode(self, chunk: bytes, final: bool) -> str:
        try:
            text = self._decoder.decode(chunk, final)
        except UnicodeDecodeError as exc:
            raise Utf8DecodeError(str(exc)) from exc
        if not self._started and text:
            self._started = True
            if text.startswith(_BOM):
                text = text[1:]
        return text

    def _consume(self, text: str, final: bool) -> list[MessageEvent]:
        buffer = self._buffer + text
        events = []
        pos = 0
        for match in _LINE_END.finditer(buffer):
            # A trailing CR may be the first half of a CRLF split across chunks.
            if not final and match.end() == len(buffer) and match.group() == "\r":
                break
            event = self._process_line(buffer[pos : match.start()])
            if event is not None:
                events.append(event)
            pos = match.end()
        self._buffer = buffer[pos:]
        if len(self._buffer) > self._max_line_size:
            raise FrameParseError(
                f"Line exceeds {self._max_line_size} characters without a terminator"
            )
        return events

    def _process_line(self, line: str) -> MessageEvent | None:
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        name, value = split_field(line)
        if name == "data":
            self._data.append(value)
        elif name == "event":
            self._event_type = value
        elif name == "id":
            if "\0" not in value:
                self._last_event_id = value
        elif name == "retry":
            if value.isascii() and value.isdigit():
                self._retry = int(value) / 1000
        return None

    def _dispatch(self) -> MessageEvent | None:
        if not self._data:
            self._event_type = ""
            return None
        event = MessageEvent(
            id=self._last_event_id,
            event=self._event_type or "message",
            data="\n".join(self._data),
            retry=self._retry,
        )
        self._event_type = ""
        self._data = []
        self._retry = None
        return event


async def aiter_events(
    chunks: AsyncIterator[bytes], parser: EventStreamParser
) -> AsyncIterator[MessageEvent]:
    async for chunk in chunks:
        for event in parser.feed(chunk):
            yield event
    for event in parser.flush():
        yield event
