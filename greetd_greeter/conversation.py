"""Authentication conversation state machine.

The conversation performs no IO. Each input (a submitted field or a greetd
response) mutates the state and returns at most one request for the caller
to send. Because a request is only returned from a state that has nothing
in flight, the caller can never have two requests outstanding.

State flow:
    UNAUTHENTICATED --create_session--> AWAITING_CREATE_ACK
    AWAITING_*      --auth_message----> PROMPT_VISIBLE | PROMPT_SECRET
                                        | PROMPT_INFO_PENDING (auto-ack)
    PROMPT_*        --reply-----------> AWAITING_PROMPT_ACK
    AWAITING_*      --success---------> AUTHENTICATED
    AWAITING_*      --auth_error------> UNAUTHENTICATED (GreetdAuthFailure)
    AWAITING_*      --error-----------> FAILED (GreetdGenericFailure)
    AUTHENTICATED   --start_session---> LAUNCH_REQUESTED --> SESSION_STARTED
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from enum import Enum

from .errors import (
    GreetdAuthFailure,
    GreetdGenericFailure,
    GreetdProtocolViolation,
)
from .protocol import (
    AuthMessage,
    AuthMessageType,
    CreateSession,
    Error,
    ErrorType,
    PostAuthMessageResponse,
    Request,
    Response,
    StartSession,
    Success,
)

_LOGGER = logging.getLogger(__name__)

MAX_PROMPT_ROUNDS = 32

DEFAULT_TITLE = "Login"
AUTH_FAILED_TITLE = "Login failed"


class ConversationState(Enum):
    """Progress of one authentication conversation."""

    UNAUTHENTICATED = "unauthenticated"
    AWAITING_CREATE_ACK = "awaiting_create_ack"
    PROMPT_VISIBLE = "prompt_visible"
    PROMPT_SECRET = "prompt_secret"
    PROMPT_INFO_PENDING = "prompt_info_pending"
    AWAITING_PROMPT_ACK = "awaiting_prompt_ack"
    AUTHENTICATED = "authenticated"
    LAUNCH_REQUESTED = "launch_requested"
    SESSION_STARTED = "session_started"
    FAILED = "failed"


class FocusedField(Enum):
    """Input field receiving keystrokes."""

    USERNAME = "username"
    PASSWORD = "password"


AWAITING_STATES = frozenset(
    {ConversationState.AWAITING_CREATE_ACK, ConversationState.AWAITING_PROMPT_ACK}
)
REPLY_STATES = frozenset(
    {ConversationState.PROMPT_VISIBLE, ConversationState.PROMPT_SECRET}
)
IDLE_STATES = frozenset({ConversationState.UNAUTHENTICATED, ConversationState.FAILED})

_PROMPT_STATES = {
    AuthMessageType.VISIBLE: ConversationState.PROMPT_VISIBLE,
    AuthMessageType.SECRET: ConversationState.PROMPT_SECRET,
    AuthMessageType.INFO: ConversationState.PROMPT_INFO_PENDING,
    AuthMessageType.ERROR: ConversationState.PROMPT_INFO_PENDING,
}


class Conversation:
    """Greeter-side state for authenticating one user against greetd.

    The instance is owned by the control loop. Credentials typed for an
    attempt live here and are discarded whenever the attempt is reset.
    """

    def __init__(
        self,
        default_username: str | None = None,
        *,
        max_prompt_rounds: int = MAX_PROMPT_ROUNDS,
    ) -> None:
        """Initialize conversation.

        Args:
            default_username: Identity to authenticate without asking
            max_prompt_rounds: Upper bound on prompts within one conversation
        """
        self.default_username = default_username or None
        self.max_prompt_rounds = max_prompt_rounds

        self.state = ConversationState.UNAUTHENTICATED
        self.focus = FocusedField.USERNAME
        self.username = ""
        self.reply = ""
        self.prompt_type: AuthMessageType | None = None
        self.prompt_text = ""
        self.title = DEFAULT_TITLE
        self.error: str | None = None
        self._prompt_rounds = 0

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def awaiting_response(self) -> bool:
        """Return True while a request issued by this conversation is unanswered."""
        return self.state in AWAITING_STATES or (
            self.state is ConversationState.LAUNCH_REQUESTED
        )

    @property
    def authenticated(self) -> bool:
        return self.state is ConversationState.AUTHENTICATED

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> Request | None:
        """Begin a conversation on a fresh connection.

        Issues create_session straight away when a default identity is
        configured; otherwise waits for the user to enter one.
        """
        if self.state not in IDLE_STATES:
            raise GreetdProtocolViolation(
                f"Cannot start a conversation in state {self.state.value}"
            )
        if self.default_username is None:
            self.focus = FocusedField.USERNAME
            return None
        self.username = self.default_username
        return self._create_session()

    def reset(self) -> None:
        """Discard everything entered for the current attempt."""
        self.state = ConversationState.UNAUTHENTICATED
        self.focus = FocusedField.USERNAME
        self.username = ""
        self.reply = ""
        self.prompt_type = None
        self.prompt_text = ""
        self.error = None
        self._prompt_rounds = 0

    # -------------------------------------------------------------------------
    # User input
    # -------------------------------------------------------------------------

    def type_char(self, char: str) -> None:
        """Append a character to the focused field."""
        if self.focus is FocusedField.USERNAME:
            self.username += char
        else:
            self.reply += char

    def backspace(self) -> None:
        """Erase the last character of the focused field."""
        if self.focus is FocusedField.USERNAME:
            self.username = self.username[:-1]
        else:
            self.reply = self.reply[:-1]

    def toggle_focus(self) -> None:
        if self.focus is FocusedField.USERNAME:
            self.focus = FocusedField.PASSWORD
        else:
            self.focus = FocusedField.USERNAME

    def submit(self) -> Request | None:
        """Handle the submit key on the focused field.

        Returns:
            The request to send, or None when the keystroke is swallowed.
        """
        if self.focus is FocusedField.USERNAME:
            return self._submit_username()
        return self._submit_reply()

    def _submit_username(self) -> Request | None:
        if not self.username:
            return None
        if self.state in IDLE_STATES:
            return self._create_session()
        if self.state in REPLY_STATES:
            self.focus = FocusedField.PASSWORD
        return None

    def _submit_reply(self) -> Request | None:
        if not self.username:
            self.focus = FocusedField.USERNAME
            return None
        if self.state in IDLE_STATES:
            return self._create_session()
        if self.state not in REPLY_STATES:
            return None

        request = PostAuthMessageResponse(response=self.reply)
        self.reply = ""
        self.state = ConversationState.AWAITING_PROMPT_ACK
        return request

    def _create_session(self) -> CreateSession:
        if self.state is ConversationState.FAILED:
            self.title = DEFAULT_TITLE
        self.reply = ""
        self.prompt_type = None
        self.prompt_text = ""
        self.error = None
        self._prompt_rounds = 0
        self.focus = FocusedField.PASSWORD
        self.state = ConversationState.AWAITING_CREATE_ACK
        _LOGGER.debug("Creating session for %s", self.username)
        return CreateSession(username=self.username)

    # -------------------------------------------------------------------------
    # Daemon responses
    # -------------------------------------------------------------------------

    def handle_response(self, response: Response) -> Request | None:
        """Advance the conversation with a greetd response.

        Returns:
            The follow-up request to send, if any.

        Raises:
            GreetdProtocolViolation: If no request of this conversation is
                outstanding or the prompt bound is exceeded.
            GreetdAuthFailure: After resetting on an auth_error.
            GreetdGenericFailure: After entering FAILED on a generic error.
        """
        if self.state not in AWAITING_STATES:
            raise GreetdProtocolViolation(
                f"Unexpected {type(response).__name__} in state {self.state.value}"
            )

        if isinstance(response, AuthMessage):
            return self._handle_auth_message(response)
        if isinstance(response, Success):
            self.state = ConversationState.AUTHENTICATED
            self.prompt_type = None
            self.prompt_text = ""
            _LOGGER.info("Authenticated %s", self.username)
            return None
        if isinstance(response, Error):
            return self._handle_error(response)
        raise GreetdProtocolViolation(f"Unsupported response: {response!r}")

    def _handle_auth_message(self, message: AuthMessage) -> Request | None:
        self._prompt_rounds += 1
        if self._prompt_rounds > self.max_prompt_rounds:
            raise GreetdProtocolViolation(
                f"greetd sent more than {self.max_prompt_rounds} prompts"
            )

        self.prompt_type = message.auth_message_type
        self.prompt_text = message.auth_message
        self.state = _PROMPT_STATES[message.auth_message_type]

        if message.auth_message_type.expects_reply:
            self.focus = FocusedField.PASSWORD
            return None

        # info and error prompts are shown but acknowledged without input
        self.state = ConversationState.AWAITING_PROMPT_ACK
        return PostAuthMessageResponse()

    def _handle_error(self, error: Error) -> Request | None:
        if error.error_type is ErrorType.AUTH_ERROR:
            _LOGGER.warning("Authentication failed for %s", self.username)
            self.reset()
            self.title = AUTH_FAILED_TITLE
            raise GreetdAuthFailure(error.description)

        if error.error_type is ErrorType.ERROR:
            _LOGGER.error("greetd error: %s", error.description)
            self.state = ConversationState.FAILED
            self.focus = FocusedField.USERNAME
            self.reply = ""
            self.prompt_type = None
            self.prompt_text = ""
            self.error = error.description
            self.title = error.description
            raise GreetdGenericFailure(error.description)

        raise GreetdProtocolViolation(f"Unsupported error type: {error.error_type!r}")

    # -------------------------------------------------------------------------
    # Launch
    # -------------------------------------------------------------------------

    def request_launch(self, command: Sequence[str]) -> StartSession:
        """Commit to starting ``command``.

        Raises:
            GreetdProtocolViolation: If authentication has not succeeded.
        """
        if self.state is not ConversationState.AUTHENTICATED:
            raise GreetdProtocolViolation(
                f"Cannot start a session in state {self.state.value}"
            )
        self.state = ConversationState.LAUNCH_REQUESTED
        return StartSession(command)

    def mark_session_started(self) -> None:
        if self.state is not ConversationState.LAUNCH_REQUESTED:
            raise GreetdProtocolViolation(
                f"No session start is pending in state {self.state.value}"
            )
        self.state = ConversationState.SESSION_STARTED
