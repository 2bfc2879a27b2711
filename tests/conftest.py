"""Pytest configuration and fixtures for greetd_greeter tests."""

from __future__ import annotations

import asyncio
import os
import tempfile
from collections import deque
from collections.abc import AsyncIterator
from typing import Any

import pytest
import pytest_asyncio

from greetd_greeter.conversation import Conversation
from greetd_greeter.errors import GreetdFramingError
from greetd_greeter.protocol import Request, request_from_wire, response_to_wire
from greetd_greeter.render import GreeterView
from greetd_greeter.sessions import DesktopSession, SessionCatalog
from greetd_greeter.transport.codec import encode_payload, parse_body, read_frame

# Scripted reply that leaves the request unanswered with the connection open.
HANG = object()
# Scripted reply that makes the daemon drop the connection.
DISCONNECT = object()


class FakeGreetd:
    """Scripted greetd daemon served over a real Unix socket.

    Each received request is recorded and answered with the next scripted
    reply. A reply may be a Response, a tuple of Responses written back to
    back, HANG, DISCONNECT, or a callable taking the request and returning
    one of those.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self.requests: list[Request] = []
        self.script: deque[Any] = deque()
        self.connections = 0
        self._server: asyncio.AbstractServer | None = None
        self._handlers: set[asyncio.Task[None]] = set()

    def reply(self, *replies: Any) -> None:
        """Queue replies for upcoming requests."""
        self.script.extend(replies)

    async def start(self) -> None:
        self._server = await asyncio.start_unix_server(self._handle, path=self.path)

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        handlers = list(self._handlers)
        for task in handlers:
            task.cancel()
        await asyncio.gather(*handlers, return_exceptions=True)
        await self._server.wait_closed()

    async def _handle(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        self.connections += 1
        task = asyncio.current_task()
        if task is not None:
            self._handlers.add(task)
        try:
            while True:
                try:
                    body = await read_frame(reader)
                except GreetdFramingError:
                    break
                request = request_from_wire(parse_body(body))
                self.requests.append(request)

                reply = self.script.popleft() if self.script else DISCONNECT
                if callable(reply):
                    reply = reply(request)
                if reply is DISCONNECT:
                    break
                if reply is HANG:
                    await asyncio.Event().wait()
                for response in reply if isinstance(reply, tuple) else (reply,):
                    writer.write(encode_payload(response_to_wire(response)))
                await writer.drain()
        except (asyncio.CancelledError, ConnectionError):
            pass
        finally:
            writer.close()
            self._handlers.discard(task)  # type: ignore[arg-type]


class PatientKeys:
    """Types scripted keys, waiting while the greeter has a request in flight.

    ``None`` entries simulate end of input. Once the script is used up,
    ``get`` blocks forever.
    """

    def __init__(self, keys: list[str | None] | str, conversation: Conversation) -> None:
        self._keys: deque[str | None] = deque(keys)
        self._conversation = conversation

    async def get(self) -> str | None:
        if not self._keys:
            await asyncio.Event().wait()
        while self._conversation.awaiting_response:
            await asyncio.sleep(0.001)
        return self._keys.popleft()


class RecordingSink:
    """Render sink that keeps every view it is handed."""

    def __init__(self) -> None:
        self.views: list[GreeterView] = []

    def __call__(self, view: GreeterView) -> None:
        self.views.append(view)

    @property
    def last(self) -> GreeterView:
        return self.views[-1]


@pytest_asyncio.fixture
async def fake_greetd() -> AsyncIterator[FakeGreetd]:
    """Start a fake greetd on a short socket path (AF_UNIX paths are limited)."""
    with tempfile.TemporaryDirectory(prefix="greetd-", dir="/tmp") as tmp:
        daemon = FakeGreetd(os.path.join(tmp, "greetd.sock"))
        await daemon.start()
        try:
            yield daemon
        finally:
            await daemon.stop()


@pytest.fixture
def catalog() -> SessionCatalog:
    return SessionCatalog(
        [
            DesktopSession(name="Plasma (Wayland)", exec="/usr/bin/startplasma-wayland"),
            DesktopSession(name="Sway", exec="sway"),
        ]
    )


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


def make_reader(data: bytes, *, eof: bool = True) -> asyncio.StreamReader:
    """Create a StreamReader pre-loaded with ``data``."""
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    if eof:
        reader.feed_eof()
    return reader


