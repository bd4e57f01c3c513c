import httpx

from reconnecting_sse.errors import InvalidContentTypeError, InvalidStatusCodeError

_EVENT_STREAM = ("text", "event-stream")
_TOKEN_SEPARATORS = set(' \t"(),/:;<=>?@[\\]{}')


def _is_token(value: str) -> bool:
    return bool(value) and value.isascii() and not any(
        char in _TOKEN_SEPARATORS or not char.isprintable() for char in value
    )


def parse_mime_type(value: str) -> tuple[str, str] | None:
    """Return the lower-cased (type, subtype) of a media type, ignoring parameters."""
    essence = value.split(";", 1)[0].strip()
    main_type, sep, subtype = essence.partition("/")
    if not sep or not _is_token(main_type) or not _is_token(subtype):
        return None
    return main_type.lower(), subtype.lower()


def check_response(response: httpx.Response) -> None:
    """Raise unless the response can be consumed as an event stream."""
    if response.status_code != httpx.codes.OK:
        raise InvalidStatusCodeError(response.status_code)
    content_type = response.headers.get("content-type")
    if content_type is None:
        raise InvalidContentTypeError("")
    if parse_mime_type(content_type) != _EVENT_STREAM:
        raise InvalidContentTypeError(content_type)
