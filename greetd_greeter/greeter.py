"""Control loop tying keystrokes, the conversation, and greetd together.

The loop owns the conversation. While a connection is open a read is
always pending on it, so every frame greetd sends is seen as it arrives.
A frame that answers no request is a protocol violation. Requests are only
ever produced by the conversation, which returns one solely from states
with nothing outstanding.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from .conversation import Conversation, ConversationState
from .errors import (
    GreeterError,
    GreeterInterrupted,
    GreetdAuthFailure,
    GreetdGenericFailure,
    GreetdTimeout,
)
from .launch import LaunchDispatcher
from .protocol import Request, Response
from .render import RenderSink, build_view
from .sessions import SessionCatalog
from .transport.client import GreetdClient

_LOGGER = logging.getLogger(__name__)

KEY_SUBMIT = frozenset({"\r", "\n"})
KEY_TOGGLE_FOCUS = "\t"
KEY_NEXT_SESSION = ">"
KEY_PREVIOUS_SESSION = "<"
KEY_ERASE = frozenset({"\x7f", "\x08"})
KEY_INTERRUPT = "\x03"


class KeySource(Protocol):
    """Anything that yields characters, then None at end of input."""

    async def get(self) -> str | None: ...


class Greeter:
    """Runs one greeter instance until a session has been started."""

    def __init__(
        self,
        client: GreetdClient,
        conversation: Conversation,
        sessions: SessionCatalog,
        keys: KeySource,
        render: RenderSink,
        *,
        dispatcher: LaunchDispatcher | None = None,
    ) -> None:
        self._client = client
        self._conversation = conversation
        self._sessions = sessions
        self._keys = keys
        self._render_sink = render
        self._dispatcher = dispatcher or LaunchDispatcher(client)

        self._incoming: asyncio.Task[Response] | None = None
        self._deadline: float | None = None
        self._input_closed = False

    @property
    def conversation(self) -> Conversation:
        return self._conversation

    @property
    def finished(self) -> bool:
        return self._conversation.state is ConversationState.SESSION_STARTED

    async def run(self) -> None:
        """Authenticate and start the selected session.

        Raises:
            GreeterInterrupted: If the user pressed Ctrl-C.
            GreetdProtocolViolation: If greetd sends a frame nothing asked for.
            GreeterError: On any unrecoverable failure.
        """
        if not self._client.connected:
            await self._client.connect()

        initial = self._conversation.start()
        self._render()
        if initial is not None:
            await self._send(initial)

        key_task: asyncio.Task[str | None] | None = None
        try:
            while not self.finished:
                if key_task is None and not self._input_closed:
                    key_task = asyncio.create_task(self._keys.get())
                if self._incoming is None and self._client.connected:
                    self._incoming = asyncio.create_task(self._client.receive())

                if key_task is None and self._client.in_flight is None:
                    raise GreeterError("Keystroke input closed before login completed")

                waiters: set[asyncio.Task[Any]] = {
                    task for task in (key_task, self._incoming) if task is not None
                }
                done, _ = await asyncio.wait(
                    waiters,
                    timeout=self._time_left(),
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if not done:
                    raise GreetdTimeout(
                        f"No response from greetd within {self._client.response_timeout}s"
                    )

                if self._incoming is not None and self._incoming in done:
                    task, self._incoming = self._incoming, None
                    self._deadline = None
                    await self._on_response(task.result())

                if key_task is not None and key_task in done and not self.finished:
                    key, key_task = key_task.result(), None
                    await self._on_key(key)

                self._render()
        finally:
            leftover = [task for task in (key_task, self._incoming) if task is not None]
            self._incoming = None
            for task in leftover:
                task.cancel()
            await asyncio.gather(*leftover, return_exceptions=True)

    # -------------------------------------------------------------------------
    # Internal: Input
    # -------------------------------------------------------------------------

    async def _on_key(self, key: str | None) -> None:
        conversation = self._conversation
        request: Request | None = None

        if key is None:
            self._input_closed = True
            return
        if key == KEY_INTERRUPT:
            raise GreeterInterrupted("Interrupted from keyboard")
        if key in KEY_SUBMIT:
            request = conversation.submit()
        elif key == KEY_TOGGLE_FOCUS:
            conversation.toggle_focus()
        elif key == KEY_NEXT_SESSION:
            self._sessions.next()
        elif key == KEY_PREVIOUS_SESSION:
            self._sessions.previous()
        elif key in KEY_ERASE:
            conversation.backspace()
        elif key.isprintable():
            conversation.type_char(key)

        if request is not None:
            await self._send(request)

    # -------------------------------------------------------------------------
    # Internal: Protocol
    # -------------------------------------------------------------------------

    async def _send(self, request: Request) -> None:
        """Send a request; its response arrives through the pending read."""
        if not self._client.connected:
            await self._client.connect()
        await self._client.send_request(request)

        timeout = self._client.response_timeout
        if timeout is not None:
            self._deadline = asyncio.get_running_loop().time() + timeout

    def _time_left(self) -> float | None:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - asyncio.get_running_loop().time())

    async def _on_response(self, response: Response) -> None:
        conversation = self._conversation
        if conversation.state is ConversationState.LAUNCH_REQUESTED:
            self._dispatcher.complete(conversation, response)
            return

        try:
            follow_up = conversation.handle_response(response)
        except GreetdAuthFailure as err:
            _LOGGER.warning("Login failed: %s", err.description)
            await self._client.connect()
            follow_up = conversation.start()
        except GreetdGenericFailure:
            await self._client.close()
            follow_up = None

        if follow_up is None and conversation.authenticated:
            self._render()
            follow_up = self._dispatcher.prepare(conversation, self._sessions.current)

        if follow_up is not None:
            await self._send(follow_up)

    def _render(self) -> None:
        self._render_sink(build_view(self._conversation, self._sessions.current.name))
