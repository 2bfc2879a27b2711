"""Session launch after successful authentication."""

from __future__ import annotations

import logging
import shlex

from .conversation import Conversation
from .errors import GreetdProtocolViolation
from .protocol import AuthMessage, Error, Response, StartSession, Success
from .sessions import DesktopSession
from .transport.client import GreetdClient

_LOGGER = logging.getLogger(__name__)

DEFAULT_SESSION_WRAPPER = "/etc/ly/wsetup.sh"


def build_session_command(
    exec_line: str,
    *,
    wrapper: str | None = DEFAULT_SESSION_WRAPPER,
) -> list[str]:
    """Build the argv greetd should run for a session.

    With a wrapper the Exec line is passed to it as a single argument, so
    the wrapper's shell performs word splitting. Without one the Exec line
    is split here.
    """
    if wrapper:
        return [wrapper, exec_line]
    return shlex.split(exec_line)


class LaunchDispatcher:
    """Builds start_session and interprets greetd's single reply.

    ``launch`` performs the whole round trip. A caller that already owns
    the connection's read side uses ``prepare`` and ``complete`` instead.
    """

    def __init__(
        self,
        client: GreetdClient,
        *,
        wrapper: str | None = DEFAULT_SESSION_WRAPPER,
    ) -> None:
        self._client = client
        self._wrapper = wrapper
        self._session: DesktopSession | None = None

    async def launch(self, conversation: Conversation, session: DesktopSession) -> None:
        """Start ``session`` for the authenticated conversation.

        Raises:
            GreetdProtocolViolation: If the conversation is not authenticated
                or greetd answers with anything but success.
        """
        request = self.prepare(conversation, session)
        response = await self._client.round_trip(request)
        self.complete(conversation, response)

    def prepare(self, conversation: Conversation, session: DesktopSession) -> StartSession:
        """Commit the conversation to ``session`` and return the request to send."""
        command = build_session_command(session.exec, wrapper=self._wrapper)
        request = conversation.request_launch(command)
        self._session = session
        _LOGGER.info("Starting session %r for %s", session.name, conversation.username)
        return request

    def complete(self, conversation: Conversation, response: Response) -> None:
        """Interpret the reply to start_session.

        Raises:
            GreetdProtocolViolation: Unless the reply is success.
        """
        session, self._session = self._session, None
        if session is None:
            raise GreetdProtocolViolation(
                f"Unexpected {type(response).__name__}: no session start is pending"
            )

        if isinstance(response, Success):
            conversation.mark_session_started()
            _LOGGER.info("Session %r handed off to greetd", session.name)
            return
        if isinstance(response, Error):
            raise GreetdProtocolViolation(
                f"greetd refused to start {session.name!r} "
                f"({response.error_type.value}): {response.description}"
            )
        if isinstance(response, AuthMessage):
            raise GreetdProtocolViolation(
                f"Unexpected auth message after start_session: {response.auth_message!r}"
            )
        raise GreetdProtocolViolation(f"Unsupported response: {response!r}")
