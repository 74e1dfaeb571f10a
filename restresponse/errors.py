class RestResponseError(Exception):
    """Base error for restresponse."""


class StreamAlreadyConsumed(RestResponseError):
    """Raised when a one-shot content stream is requested a second time."""


class StreamReadError(RestResponseError, OSError):
    """Raised when reading the content stream fails mid-read."""


class DecodeError(RestResponseError, ValueError):
    """Raised when the body cannot be decoded with the chosen charset."""


class ParseError(RestResponseError, ValueError):
    """Raised when the body text is not valid JSON of the requested shape."""
