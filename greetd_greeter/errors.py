"""Error types for greetd greeter interactions."""

from __future__ import annotations


class GreeterError(Exception):
    """Base error for greeter failures."""


class GreetdClientError(GreeterError):
    """Base error for greetd IPC client failures."""


class GreetdConnectError(GreetdClientError):
    """The greetd socket could not be reached."""


class GreetdIoError(GreetdClientError):
    """Reading from or writing to the greetd socket failed."""


class GreetdTimeout(GreetdIoError):
    """Timed out waiting for a response from greetd."""


class GreetdFramingError(GreetdClientError):
    """A frame was truncated or could not be read in full."""


class GreetdProtocolError(GreetdFramingError):
    """A frame body is not a well-formed greetd message."""


class GreetdProtocolViolation(GreetdClientError):
    """A message arrived or was issued out of protocol order."""


class GreetdAuthFailure(GreetdClientError):
    """Authentication was rejected; the conversation must restart."""

    def __init__(self, description: str) -> None:
        super().__init__(description)
        self.description = description


class GreetdGenericFailure(GreetdClientError):
    """greetd reported a non-authentication error."""

    def __init__(self, description: str) -> None:
        super().__init__(description)
        self.description = description


class ConfigError(GreeterError):
    """Greeter configuration is invalid or incomplete."""


class GreeterInterrupted(GreeterError):
    """The user aborted the greeter from the keyboard."""
