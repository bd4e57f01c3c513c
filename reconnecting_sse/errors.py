"""Failures an EventSource can report, each with a fixed retry classification."""


class EventSourceError(Exception):
    """Base class for everything an EventSource raises."""

    retryable = False


class Utf8DecodeError(EventSourceError):
    """The response body is not valid UTF-8."""


class FrameParseError(EventSourceError):
    """The response body could not be split into event stream frames."""


class TransportError(EventSourceError):
    """The HTTP transport failed while connecting or reading the body."""

    retryable = True

    def __init__(self, error: Exception):
        super().__init__(f"{type(error).__name__}: {error}")
        self.error = error


class InvalidContentTypeError(EventSourceError):
    def __init__(self, content_type: str):
        super().__init__(f"Invalid content type: {content_type!r}")
        self.content_type = content_type


class InvalidStatusCodeError(EventSourceError):
    def __init__(self, status_code: int):
        super().__init__(f"Invalid status code: {status_code}")
        self.status_code = status_code


class InvalidLastEventIdError(EventSourceError):
    def __init__(self, last_event_id: str):
        super().__init__(f"Invalid last event id: {last_event_id!r}")
        self.last_event_id = last_event_id


class StreamEndedError(EventSourceError):
    """The server closed the response body."""

    retryable = True

    def __init__(self, message: str = "Stream ended"):
        super().__init__(message)


class CannotCloneRequestError(EventSourceError):
    """The request body is a one-shot stream, so the request cannot be re-sent."""

    def __init__(self, message: str = "expected a cloneable request"):
        super().__init__(message)
