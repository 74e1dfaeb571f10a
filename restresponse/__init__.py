from restresponse.response import RestResponse, is_success
from restresponse.entity import (
    BufferedResponse,
    ContentStream,
    Entity,
    TransportResponse,
)
from restresponse.aio import from_async_stream, read_response
from restresponse.errors import (
    RestResponseError,
    StreamAlreadyConsumed,
    StreamReadError,
    DecodeError,
    ParseError,
)

__all__ = [
    "RestResponse",
    "is_success",
    "BufferedResponse",
    "ContentStream",
    "Entity",
    "TransportResponse",
    "from_async_stream",
    "read_response",
    "RestResponseError",
    "StreamAlreadyConsumed",
    "StreamReadError",
    "DecodeError",
    "ParseError",
]
