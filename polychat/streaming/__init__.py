from .codec import (
    EVENT_STREAM_HEADERS,
    EventStreamDecoder,
    aiter_events,
    done_event,
    encode_event,
    error_event,
    message_event,
    token_event,
)

__all__ = [
    "EVENT_STREAM_HEADERS",
    "EventStreamDecoder",
    "aiter_events",
    "done_event",
    "encode_event",
    "error_event",
    "message_event",
    "token_event",
]
