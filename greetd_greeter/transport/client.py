"""Request/response client for the greetd IPC socket."""

from __future__ import annotations

import asyncio
import logging

from ..errors import (
    GreetdConnectError,
    GreetdIoError,
    GreetdProtocolViolation,
    GreetdTimeout,
)
from ..protocol import Request, Response, describe_request
from .codec import decode_response, encode_request
from .ipc import connect_socket

_LOGGER = logging.getLogger(__name__)


class GreetdClient:
    """Owns one greetd connection and allows a single request in flight.

    Usage:
        client = GreetdClient("/run/greetd.sock")
        await client.connect()
        response = await client.round_trip(CreateSession("alice"))
        await client.close()
    """

    def __init__(
        self,
        socket_path: str,
        *,
        connect_timeout: float = 5.0,
        response_timeout: float | None = None,
    ) -> None:
        self.socket_path = socket_path
        self._connect_timeout = connect_timeout
        self._response_timeout = response_timeout
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._in_flight: Request | None = None

    @property
    def connected(self) -> bool:
        """Return True while a connection is open."""
        return self._writer is not None

    @property
    def in_flight(self) -> Request | None:
        """The request awaiting its response, if any."""
        return self._in_flight

    @property
    def response_timeout(self) -> float | None:
        return self._response_timeout

    async def connect(self) -> None:
        """Open a fresh connection, dropping any previous one."""
        if self._writer is not None:
            await self.close()
        self._reader, self._writer = await connect_socket(
            self.socket_path, timeout=self._connect_timeout
        )
        _LOGGER.info("Connected to greetd at %s", self.socket_path)

    async def close(self) -> None:
        """Close the connection without a cancel handshake."""
        writer = self._writer
        self._reader = None
        self._writer = None
        self._in_flight = None
        if writer is None:
            return

        writer.close()
        try:
            await asyncio.wait_for(writer.wait_closed(), timeout=2.0)
        except TimeoutError:
            _LOGGER.warning("Closing greetd connection timed out")
        except OSError as err:
            _LOGGER.debug("greetd connection closed with error: %s", err)
        _LOGGER.debug("Disconnected from greetd")

    async def send_request(self, request: Request) -> None:
        """Frame and write a request.

        Raises:
            GreetdConnectError: If not connected
            GreetdProtocolViolation: If a previous request is unanswered
            GreetdIoError: If the write fails
        """
        if self._writer is None:
            raise GreetdConnectError("greetd connection is not open")
        if self._in_flight is not None:
            raise GreetdProtocolViolation(
                f"Cannot send {describe_request(request)} while "
                f"{describe_request(self._in_flight)} is unanswered"
            )

        frame = encode_request(request)
        # marked before writing: a concurrent receive() may see the reply
        # before drain() returns
        self._in_flight = request
        try:
            self._writer.write(frame)
            await self._writer.drain()
        except OSError as err:
            self._in_flight = None
            raise GreetdIoError("Failed to write to greetd socket") from err

        _LOGGER.debug("Sent %s", describe_request(request))

    async def await_response(self) -> Response:
        """Wait for the response to the request in flight.

        Raises:
            GreetdConnectError: If not connected
            GreetdProtocolViolation: If no request is outstanding
            GreetdTimeout: If a response timeout is configured and expires
            GreetdFramingError: If the frame is truncated or malformed
        """
        if self._reader is None:
            raise GreetdConnectError("greetd connection is not open")
        if self._in_flight is None:
            raise GreetdProtocolViolation("No request is awaiting a response")

        try:
            if self._response_timeout is None:
                response = await decode_response(self._reader)
            else:
                response = await asyncio.wait_for(
                    decode_response(self._reader), timeout=self._response_timeout
                )
        except TimeoutError as err:
            raise GreetdTimeout(
                f"No response from greetd within {self._response_timeout}s"
            ) from err
        finally:
            self._in_flight = None

        _LOGGER.debug("Received %s", type(response).__name__)
        return response

    async def receive(self) -> Response:
        """Read the next frame whether or not a request is outstanding.

        Keeping this read pending for the life of a connection catches
        frames greetd sends unprompted, which would otherwise be taken as
        the answer to the next request. No response timeout is applied;
        a caller that wants one keeps its own deadline.

        Raises:
            GreetdConnectError: If not connected
            GreetdProtocolViolation: If the frame answers no request
            GreetdFramingError: If the frame is truncated or malformed
        """
        if self._reader is None:
            raise GreetdConnectError("greetd connection is not open")

        response = await decode_response(self._reader)
        request, self._in_flight = self._in_flight, None
        if request is None:
            raise GreetdProtocolViolation(
                f"greetd sent {type(response).__name__} with no request outstanding"
            )

        _LOGGER.debug(
            "Received %s for %s", type(response).__name__, describe_request(request)
        )
        return response

    async def round_trip(self, request: Request) -> Response:
        """Send a request and wait for its response."""
        await self.send_request(request)
        return await self.await_response()

    async def __aenter__(self) -> GreetdClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
