"""Message types and JSON shapes for the greetd IPC protocol.

Requests and responses are closed sets of frozen dataclasses. Every
conversion helper handles each variant explicitly and raises on anything
else, so an unknown message can never fall through to a default branch.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeAlias

from .errors import GreetdProtocolError


class AuthMessageType(Enum):
    """Kind of prompt carried by an auth_message response."""

    VISIBLE = "visible"
    SECRET = "secret"
    INFO = "info"
    ERROR = "error"

    @property
    def expects_reply(self) -> bool:
        """Return True when the user must type an answer to this prompt."""
        return self in (AuthMessageType.VISIBLE, AuthMessageType.SECRET)


class ErrorType(Enum):
    """Kind of failure carried by an error response."""

    ERROR = "error"
    AUTH_ERROR = "auth_error"


# -----------------------------------------------------------------------------
# Requests
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class CreateSession:
    """Begin an authentication conversation for a user."""

    username: str


@dataclass(frozen=True)
class PostAuthMessageResponse:
    """Answer the most recent prompt.

    ``response`` is None when acknowledging info/error prompts; the field is
    then omitted from the wire body entirely.
    """

    response: str | None = None


@dataclass(frozen=True)
class StartSession:
    """Launch the session command once authentication succeeded."""

    cmd: Sequence[str]

    def __post_init__(self) -> None:
        object.__setattr__(self, "cmd", tuple(self.cmd))


@dataclass(frozen=True)
class CancelSession:
    """Abort the conversation in progress."""


Request: TypeAlias = CreateSession | PostAuthMessageResponse | StartSession | CancelSession


# -----------------------------------------------------------------------------
# Responses
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class AuthMessage:
    """greetd asks the greeter to show a prompt."""

    auth_message_type: AuthMessageType
    auth_message: str


@dataclass(frozen=True)
class Success:
    """The preceding request was accepted."""


@dataclass(frozen=True)
class Error:
    """The preceding request failed."""

    error_type: ErrorType
    description: str


Response: TypeAlias = AuthMessage | Success | Error


# -----------------------------------------------------------------------------
# Wire conversion
# -----------------------------------------------------------------------------


def request_to_wire(request: Request) -> dict[str, Any]:
    """Return the JSON body for a request."""
    if isinstance(request, CreateSession):
        return {"type": "create_session", "username": request.username}
    if isinstance(request, PostAuthMessageResponse):
        body: dict[str, Any] = {"type": "post_auth_message_response"}
        if request.response is not None:
            body["response"] = request.response
        return body
    if isinstance(request, StartSession):
        return {"type": "start_session", "cmd": list(request.cmd)}
    if isinstance(request, CancelSession):
        return {"type": "cancel_session"}
    raise TypeError(f"Unsupported request: {request!r}")


def response_to_wire(response: Response) -> dict[str, Any]:
    """Return the JSON body greetd would send for a response."""
    if isinstance(response, AuthMessage):
        return {
            "type": "auth_message",
            "auth_message_type": response.auth_message_type.value,
            "auth_message": response.auth_message,
        }
    if isinstance(response, Success):
        return {"type": "success"}
    if isinstance(response, Error):
        return {
            "type": "error",
            "error_type": response.error_type.value,
            "description": response.description,
        }
    raise TypeError(f"Unsupported response: {response!r}")


def _require_str(data: dict[str, Any], key: str) -> str:
    """Return a mandatory string field or raise GreetdProtocolError."""
    value = data.get(key)
    if not isinstance(value, str):
        raise GreetdProtocolError(
            f"Field {key!r} must be a string, got {type(value).__name__}"
        )
    return value


def _require_type(data: Any) -> str:
    if not isinstance(data, dict):
        raise GreetdProtocolError(
            f"Message body must be a JSON object, got {type(data).__name__}"
        )
    return _require_str(data, "type")


def response_from_wire(data: Any) -> Response:
    """Parse a decoded JSON body into a Response.

    Raises:
        GreetdProtocolError: If the body is not a known, well-formed response.
    """
    msg_type = _require_type(data)

    if msg_type == "success":
        return Success()

    if msg_type == "auth_message":
        raw_kind = _require_str(data, "auth_message_type")
        try:
            kind = AuthMessageType(raw_kind)
        except ValueError as err:
            raise GreetdProtocolError(f"Unknown auth_message_type: {raw_kind}") from err
        return AuthMessage(
            auth_message_type=kind,
            auth_message=_require_str(data, "auth_message"),
        )

    if msg_type == "error":
        raw_kind = _require_str(data, "error_type")
        try:
            error_type = ErrorType(raw_kind)
        except ValueError as err:
            raise GreetdProtocolError(f"Unknown error_type: {raw_kind}") from err
        return Error(
            error_type=error_type,
            description=_require_str(data, "description"),
        )

    raise GreetdProtocolError(f"Unknown response type: {msg_type}")


def request_from_wire(data: Any) -> Request:
    """Parse a decoded JSON body into a Request.

    The greeter never receives requests; this is the daemon-side view used
    by test doubles and for checking encoder output.
    """
    msg_type = _require_type(data)

    if msg_type == "create_session":
        return CreateSession(username=_require_str(data, "username"))

    if msg_type == "post_auth_message_response":
        if "response" not in data or data["response"] is None:
            return PostAuthMessageResponse()
        return PostAuthMessageResponse(response=_require_str(data, "response"))

    if msg_type == "start_session":
        cmd = data.get("cmd")
        if not isinstance(cmd, list) or not all(isinstance(arg, str) for arg in cmd):
            raise GreetdProtocolError("Field 'cmd' must be a list of strings")
        return StartSession(cmd)

    if msg_type == "cancel_session":
        return CancelSession()

    raise GreetdProtocolError(f"Unknown request type: {msg_type}")


def describe_request(request: Request) -> str:
    """Return a log-safe description of a request (never includes replies)."""
    if isinstance(request, CreateSession):
        return f"create_session(username={request.username!r})"
    if isinstance(request, PostAuthMessageResponse):
        has_reply = request.response is not None
        return f"post_auth_message_response(reply={'yes' if has_reply else 'no'})"
    if isinstance(request, StartSession):
        return f"start_session(cmd={list(request.cmd)!r})"
    if isinstance(request, CancelSession):
        return "cancel_session"
    raise TypeError(f"Unsupported request: {request!r}")
