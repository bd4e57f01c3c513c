"""Callback-style SSE consumer built on the reconnecting EventSource."""

import logging
from collections.abc import Awaitable, Callable

import httpx

from reconnecting_sse.errors import EventSourceError
from reconnecting_sse.retry import RetryPolicy
from reconnecting_sse.streams.parser import DEFAULT_MAX_LINE_SIZE, MessageEvent
from reconnecting_sse.streams.source import EventSource, ReadyState


async def stream_consumer(
    label: str,
    url: str,
    on_message: Callable[[MessageEvent], Awaitable[None]],
    *,
    retry_policy: RetryPolicy | None = None,
    client: httpx.AsyncClient | None = None,
    headers: dict[str, str] | None = None,
    last_event_id: str = "",
    max_line_size: int = DEFAULT_MAX_LINE_SIZE,
) -> str:
    """Consume an SSE endpoint; await on_message(event) for every message.

    Returns the last event id seen once the source gives up reconnecting.
    """
    source = EventSource.get(
        url,
        client=client,
        headers=headers,
        retry_policy=retry_policy,
        last_event_id=last_event_id,
        label=label,
        max_line_size=max_line_size,
    )
    async with source:
        while True:
            try:
                event = await anext(source)
            except StopAsyncIteration:
                return source.last_event_id
            except EventSourceError as exc:
                if source.ready_state is ReadyState.CLOSED:
                    logging.error(
                        "Stream closed [%s] (%s: %s)", label, type(exc).__name__, exc
                    )
                # EventSource already logged the scheduled reconnect.
                continue

            if isinstance(event, MessageEvent):
                await on_message(event)
