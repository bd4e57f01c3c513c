"""Reconnecting event source.

An ``EventSource`` wraps a repeatable ``httpx.Request`` and turns it into a
single logical stream of events. Every ``anext()`` advances exactly one of
three sub-operations, and never more than one exists at a time:

* waiting out a retry delay,
* waiting for the response to a (re)issued request,
* reading the next event from a validated response body.

Failures are raised out of ``anext()`` without ending the iteration; check
``ready_state`` to see whether a reconnection was scheduled. Once the source
is closed every further call raises ``StopAsyncIteration``.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass

import httpx

from reconnecting_sse.errors import (
    CannotCloneRequestError,
    EventSourceError,
    InvalidLastEventIdError,
    StreamEndedError,
    TransportError,
)
from reconnecting_sse.retry import RetryPolicy, RetryState, default_retry_policy
from reconnecting_sse.streams.parser import (
    DEFAULT_MAX_LINE_SIZE,
    EventStreamParser,
    MessageEvent,
    aiter_events,
)
from reconnecting_sse.streams.validation import check_response

LAST_EVENT_ID_HEADER = "Last-Event-ID"


class ReadyState(enum.IntEnum):
    CONNECTING = 0
    OPEN = 1
    CLOSED = 2


@dataclass(frozen=True)
class OpenEvent:
    """Emitted each time a response is accepted as an event stream."""


Event = OpenEvent | MessageEvent


def is_header_value(value: str) -> bool:
    return all(char == "\t" or " " <= char <= "~" for char in value)


def clone_request(request: httpx.Request, last_event_id: str = "") -> httpx.Request:
    """Copy ``request``, adding a Last-Event-ID header when an id is known."""
    try:
        content = request.content
    except httpx.RequestNotRead as exc:
        raise CannotCloneRequestError() from exc

    headers = httpx.Headers(request.headers)
    if last_event_id:
        if not is_header_value(last_event_id):
            raise InvalidLastEventIdError(last_event_id)
        headers[LAST_EVENT_ID_HEADER] = last_event_id
    return httpx.Request(
        request.method,
        request.url,
        headers=headers,
        content=content,
        extensions=dict(request.extensions),
    )


class _PendingDelay:
    def __init__(self, delay: float):
        self.delay = delay
        self._deadline: float | None = None

    async def wait(self) -> None:
        # The deadline is fixed on first wait so a cancelled poll only
        # resumes the remainder.
        loop = asyncio.get_running_loop()
        if self._deadline is None:
            self._deadline = loop.time() + self.delay
        await asyncio.sleep(max(0.0, self._deadline - loop.time()))


@dataclass
class _PendingRequest:
    request: httpx.Request


class _PendingCursor:
    def __init__(self, response: httpx.Response, parser: EventStreamParser):
        self.response = response
        self.events = aiter_events(response.aiter_bytes(), parser)

    async def next_event(self) -> MessageEvent:
        return await anext(self.events)

    async def aclose(self) -> None:
        try:
            await self.events.aclose()
        finally:
            await self.response.aclose()


class EventSource:
    def __init__(
        self,
        request: httpx.Request,
        *,
        client: httpx.AsyncClient | None = None,
        retry_policy: RetryPolicy | None = None,
        last_event_id: str = "",
        label: str | None = None,
        max_line_size: int = DEFAULT_MAX_LINE_SIZE,
    ):
        base = clone_request(request)
        base.headers["Accept"] = "text/event-stream"
        first = clone_request(base, last_event_id)

        self.label = label or str(request.url)
        self._request = base
        self._client = client or httpx.AsyncClient(timeout=None)
        self._owns_client = client is None
        self._retry_policy = retry_policy or default_retry_policy()
        self._max_line_size = max_line_size
        self._last_event_id = last_event_id
        self._retry_state: RetryState | None = None
        self._pending: _PendingDelay | _PendingRequest | _PendingCursor | None = (
            _PendingRequest(first)
        )
        self._closed = False
        self._polling = False
        self._release_after_poll = False

    @classmethod
    def get(
        cls,
        url: httpx.URL | str,
        *,
        client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
        **kwargs,
    ) -> "EventSource":
        """Create an EventSource for a plain GET request."""
        if client is None:
            request = httpx.Request("GET", url, headers=headers)
        else:
            request = client.build_request("GET", url, headers=headers)
        return cls(request, client=client, **kwargs)

    @property
    def ready_state(self) -> ReadyState:
        if self._closed:
            return ReadyState.CLOSED
        if isinstance(self._pending, _PendingCursor):
            return ReadyState.OPEN
        return ReadyState.CONNECTING

    @property
    def last_event_id(self) -> str:
        return self._last_event_id

    @property
    def retry_state(self) -> RetryState | None:
        return self._retry_state

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    @retry_policy.setter
    def retry_policy(self, policy: RetryPolicy) -> None:
        self._retry_policy = policy

    def close(self) -> None:
        """Stop the stream; no further events are delivered and no retries happen."""
        self._closed = True

    async def aclose(self) -> None:
        """Close the stream and release the open response and any owned client."""
        self.close()
        if self._polling:
            self._release_after_poll = True
        else:
            await self._release()

    async def __aenter__(self) -> "EventSource":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def __aiter__(self) -> "EventSource":
        return self

    async def __anext__(self) -> Event:
        if self._polling:
            raise RuntimeError("anext() called while another anext() is pending")
        self._polling = True
        try:
            return await self._poll()
        finally:
            self._polling = False
            if self._release_after_poll:
                self._release_after_poll = False
                await self._release()

    async def _poll(self) -> Event:
        if self._closed:
            raise StopAsyncIteration

        if isinstance(self._pending, _PendingDelay):
            await self._pending.wait()
            if self._closed:
                raise StopAsyncIteration
            try:
                request = clone_request(self._request, self._last_event_id)
            except InvalidLastEventIdError as exc:
                raise self._handle_error(exc)
            self._pending = _PendingRequest(request)

        if isinstance(self._pending, _PendingRequest):
            return await self._connect(self._pending.request)

        assert isinstance(self._pending, _PendingCursor)
        return await self._read_event(self._pending)

    async def _connect(self, request: httpx.Request) -> OpenEvent:
        try:
            response = await self._client.send(request, stream=True)
        except httpx.RequestError as exc:
            if self._closed:
                raise StopAsyncIteration from exc
            raise self._handle_error(TransportError(exc)) from exc

        if self._closed:
            await response.aclose()
            raise StopAsyncIteration
        try:
            check_response(response)
        except EventSourceError as exc:
            await response.aclose()
            raise self._handle_error(exc)

        self._retry_state = None
        parser = EventStreamParser(self._last_event_id, self._max_line_size)
        self._pending = _PendingCursor(response, parser)
        logging.info("Stream open [%s]", self.label)
        return OpenEvent()

    async def _read_event(self, cursor: _PendingCursor) -> MessageEvent:
        try:
            event = await cursor.next_event()
        except StopAsyncIteration:
            await self._drop_cursor()
            raise self._handle_error(StreamEndedError()) from None
        except httpx.RequestError as exc:
            await self._drop_cursor()
            raise self._handle_error(TransportError(exc)) from exc
        except EventSourceError as exc:
            await self._drop_cursor()
            raise self._handle_error(exc)

        if self._closed:
            await self._drop_cursor()
            raise StopAsyncIteration
        if event.id:
            self._last_event_id = event.id
        if event.retry is not None:
            self._retry_policy.set_reconnection_time(event.retry)
        return event

    def _handle_error(self, error: EventSourceError) -> EventSourceError:
        self._pending = None
        delay = None
        if error.retryable and not self._closed:
            delay = self._retry_policy.decide(error, self._retry_state)

        if delay is None:
            self._closed = True
            logging.warning(
                "Stream error [%s] (%s: %s); closing",
                self.label,
                type(error).__name__,
                error,
            )
            return error

        attempt = self._retry_state.attempt + 1 if self._retry_state else 1
        self._retry_state = RetryState(attempt, delay)
        self._pending = _PendingDelay(delay)
        logging.warning(
            "Stream error [%s] (%s: %s); reconnecting in %.2fs…",
            self.label,
            type(error).__name__,
            error,
            delay,
        )
        return error

    async def _drop_cursor(self) -> None:
        cursor, self._pending = self._pending, None
        if isinstance(cursor, _PendingCursor):
            await cursor.aclose()

    async def _release(self) -> None:
        try:
            await self._drop_cursor()
        finally:
            if self._owns_client:
                self._owns_client = False
                await self._client.aclose()
