"""Length-prefixed JSON framing for greetd IPC.

Each frame is a 4-byte unsigned length in native byte order followed by
that many bytes of UTF-8 JSON. The length counts body bytes only.
"""

from __future__ import annotations

import asyncio
import json
import struct
from typing import Any

from ..errors import GreetdFramingError, GreetdIoError, GreetdProtocolError
from ..protocol import (
    Request,
    Response,
    request_from_wire,
    request_to_wire,
    response_from_wire,
)

_LENGTH_PREFIX = struct.Struct("=I")

HEADER_SIZE = _LENGTH_PREFIX.size

# greetd messages are a few hundred bytes at most
MAX_FRAME_SIZE = 1 << 20


def encode_payload(payload: dict[str, Any]) -> bytes:
    """Frame a JSON-serializable body."""
    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    return _LENGTH_PREFIX.pack(len(body)) + body


def encode_request(request: Request) -> bytes:
    """Frame a request for sending to greetd."""
    return encode_payload(request_to_wire(request))


def parse_body(body: bytes) -> Any:
    """Decode a frame body into JSON.

    Raises:
        GreetdProtocolError: If the body is not UTF-8 JSON.
    """
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as err:
        raise GreetdProtocolError(f"Malformed frame body: {err}") from err


def _parse_length(header: bytes) -> int:
    (length,) = _LENGTH_PREFIX.unpack(header)
    if length > MAX_FRAME_SIZE:
        raise GreetdFramingError(f"Frame length {length} exceeds {MAX_FRAME_SIZE}")
    return length


async def read_frame(reader: asyncio.StreamReader) -> bytes:
    """Read exactly one frame body from the stream.

    Raises:
        GreetdFramingError: If the peer closes the stream mid-frame.
        GreetdIoError: If the underlying read fails.
    """
    try:
        header = await reader.readexactly(HEADER_SIZE)
        return await reader.readexactly(_parse_length(header))
    except asyncio.IncompleteReadError as err:
        raise GreetdFramingError(
            f"greetd closed the connection after {len(err.partial)} of "
            f"{err.expected} bytes"
        ) from err
    except OSError as err:
        raise GreetdIoError("Failed to read from greetd socket") from err


async def decode_response(reader: asyncio.StreamReader) -> Response:
    """Read and parse one response frame."""
    return response_from_wire(parse_body(await read_frame(reader)))


def decode_request_frame(frame: bytes) -> Request:
    """Parse one complete request frame held in memory.

    Raises:
        GreetdFramingError: If the prefix does not match the body length.
    """
    if len(frame) < HEADER_SIZE:
        raise GreetdFramingError("Frame is shorter than its length prefix")
    length = _parse_length(frame[:HEADER_SIZE])
    body = frame[HEADER_SIZE:]
    if len(body) != length:
        raise GreetdFramingError(
            f"Length prefix says {length} bytes but frame carries {len(body)}"
        )
    return request_from_wire(parse_body(body))
