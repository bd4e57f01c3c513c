"""Reconnecting Server-Sent Events client for httpx."""

from reconnecting_sse.errors import (
    CannotCloneRequestError,
    EventSourceError,
    FrameParseError,
    InvalidContentTypeError,
    InvalidLastEventIdError,
    InvalidStatusCodeError,
    StreamEndedError,
    TransportError,
    Utf8DecodeError,
)
from reconnecting_sse.retry import (
    Constant,
    ExponentialBackoff,
    Never,
    RetryPolicy,
    RetryState,
    default_retry_policy,
)
from reconnecting_sse.streams.consumer import stream_consumer
from reconnecting_sse.streams.parser import MessageEvent
from reconnecting_sse.streams.source import Event, EventSource, OpenEvent, ReadyState

__all__ = [
    "CannotCloneRequestError",
    "Constant",
    "Event",
    "EventSource",
    "EventSourceError",
    "ExponentialBackoff",
    "FrameParseError",
    "InvalidContentTypeError",
    "InvalidLastEventIdError",
    "InvalidStatusCodeError",
    "MessageEvent",
    "Never",
    "OpenEvent",
    "ReadyState",
    "RetryPolicy",
    "RetryState",
    "StreamEndedError",
    "TransportError",
    "Utf8DecodeError",
    "default_retry_policy",
    "stream_consumer",
]
