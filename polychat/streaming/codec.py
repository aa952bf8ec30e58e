"""Wire format of the chat event stream.

Each event is one ``data: <json>`` line followed by a blank line. The JSON
payload has a ``type`` discriminant:

- ``message``: a full persisted message record under ``message``
- ``token``: an incremental text fragment under ``content``
- ``error``: a human-readable ``error``; ends the stream
- ``done``: no payload; ends the stream on success
"""
import codecs
import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Dict, List, Union

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
MEDIA_TYPE = "text/event-stream"
TERMINAL_EVENTS = frozenset({"error", "done"})

EVENT_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    # Stop reverse proxies from buffering the stream
    "X-Accel-Buffering": "no",
}

Event = Dict[str, Any]


def encode_event(event: Event) -> str:
    return f"{DATA_PREFIX}{json.dumps(event, ensure_ascii=False)}\n\n"


def message_event(message: Dict[str, Any]) -> str:
    return encode_event({"type": "message", "message": message})


def token_event(content: str) -> str:
    return encode_event({"type": "token", "content": content})


def error_event(error: str) -> str:
    return encode_event({"type": "error", "error": error})


def done_event() -> str:
    return encode_event({"type": "done"})


class EventStreamDecoder:
    """Incremental decoder for the event stream.

    Reads may split a frame (or a UTF-8 sequence) anywhere or carry several
    frames at once; incomplete lines are held until the rest arrives.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, data: Union[bytes, str]) -> List[Event]:
        if isinstance(data, bytes):
            data = self._decoder.decode(data)
        self._buffer += data

        events = []
        *lines, self._buffer = self._buffer.split("\n")
        for line in lines:
            event = self._parse_line(line)
            if event is not None:
                events.append(event)
        return events

    def close(self) -> List[Event]:
        """Flush whatever is left once the byte stream has ended"""
        remainder = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        event = self._parse_line(remainder)
        return [event] if event is not None else []

    @staticmethod
    def _parse_line(line: str):
        line = line.rstrip("\r")
        if not line.startswith(DATA_PREFIX):
            return None
        try:
            event = json.loads(line[len(DATA_PREFIX):])
        except json.JSONDecodeError as e:
            logger.warning(f"Skipping malformed event payload: {str(e)}")
            return None
        if not isinstance(event, dict) or "type" not in event:
            logger.warning(f"Skipping event without a type: {line!r}")
            return None
        return event


async def aiter_events(chunks: AsyncIterable[bytes]) -> AsyncIterator[Event]:
    """Decode an async byte stream into events"""
    decoder = EventStreamDecoder()
    async for chunk in chunks:
        for event in decoder.feed(chunk):
            yield event
    for event in decoder.close():
        yield event
