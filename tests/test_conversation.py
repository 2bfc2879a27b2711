"""Tests for the authentication conversation state machine."""

from __future__ import annotations

import pytest

from greetd_greeter.conversation import (
    AUTH_FAILED_TITLE,
    DEFAULT_TITLE,
    Conversation,
    ConversationState,
    FocusedField,
)
from greetd_greeter.errors import (
    GreetdAuthFailure,
    GreetdGenericFailure,
    GreetdProtocolViolation,
)
from greetd_greeter.protocol import (
    AuthMessage,
    AuthMessageType,
    CreateSession,
    Error,
    ErrorType,
    PostAuthMessageResponse,
    StartSession,
    Success,
)

SECRET = AuthMessage(AuthMessageType.SECRET, "Password:")
VISIBLE = AuthMessage(AuthMessageType.VISIBLE, "Token:")
INFO = AuthMessage(AuthMessageType.INFO, "Place your finger on the reader")
PAM_ERROR = AuthMessage(AuthMessageType.ERROR, "Account expires soon")
AUTH_ERROR = Error(ErrorType.AUTH_ERROR, "pam_authenticate: AUTH_ERR")
GENERIC_ERROR = Error(ErrorType.ERROR, "a session is already being configured")


def _type(conversation: Conversation, text: str) -> None:
    for char in text:
        conversation.type_char(char)


def _at_password_prompt(default_username: str | None = None) -> Conversation:
    conversation = Conversation(default_username)
    if default_username is None:
        _type(conversation, "alice")
        conversation.submit()
    else:
        conversation.start()
    conversation.handle_response(SECRET)
    return conversation


# =============================================================================
# Identity entry
# =============================================================================


class TestIdentityEntry:
    def test_fresh_conversation(self):
        conversation = Conversation()
        assert conversation.start() is None
        assert conversation.state is ConversationState.UNAUTHENTICATED
        assert conversation.focus is FocusedField.USERNAME
        assert not conversation.awaiting_response

    def test_submit_username_creates_session(self):
        """Typing alice and submitting issues exactly one create_session."""
        conversation = Conversation()
        conversation.start()
        _type(conversation, "alice")

        request = conversation.submit()

        assert request == CreateSession("alice")
        assert conversation.state is ConversationState.AWAITING_CREATE_ACK
        assert conversation.focus is FocusedField.PASSWORD
        assert conversation.awaiting_response

    def test_empty_username_is_swallowed(self):
        conversation = Conversation()
        conversation.start()

        assert conversation.submit() is None
        assert conversation.submit() is None
        assert conversation.state is ConversationState.UNAUTHENTICATED
        assert conversation.focus is FocusedField.USERNAME

    def test_submit_reply_without_identity_refocuses_username(self):
        conversation = Conversation()
        conversation.toggle_focus()
        _type(conversation, "hunter2")

        assert conversation.submit() is None
        assert conversation.focus is FocusedField.USERNAME
        assert conversation.state is ConversationState.UNAUTHENTICATED

    def test_submit_reply_field_with_identity_creates_session(self):
        conversation = Conversation()
        _type(conversation, "alice")
        conversation.toggle_focus()

        assert conversation.submit() == CreateSession("alice")
        assert conversation.state is ConversationState.AWAITING_CREATE_ACK

    def test_default_username_creates_session_on_start(self):
        conversation = Conversation("bob")

        assert conversation.start() == CreateSession("bob")
        assert conversation.username == "bob"
        assert conversation.focus is FocusedField.PASSWORD
        assert conversation.state is ConversationState.AWAITING_CREATE_ACK

    def test_empty_default_username_is_ignored(self):
        assert Conversation("").start() is None

    def test_start_while_active_is_violation(self):
        conversation = Conversation("bob")
        conversation.start()
        with pytest.raises(GreetdProtocolViolation):
            conversation.start()

    def test_editing(self):
        conversation = Conversation()
        _type(conversation, "alicex")
        conversation.backspace()
        conversation.toggle_focus()
        _type(conversation, "pw")
        conversation.backspace()
        conversation.backspace()
        conversation.backspace()

        assert conversation.username == "alice"
        assert conversation.reply == ""

    def test_submit_while_awaiting_is_swallowed(self):
        conversation = Conversation()
        _type(conversation, "alice")
        conversation.submit()

        assert conversation.submit() is None
        conversation.toggle_focus()
        assert conversation.submit() is None
        assert conversation.state is ConversationState.AWAITING_CREATE_ACK


# =============================================================================
# Prompts
# =============================================================================


class TestPrompts:
    def test_secret_prompt_waits_for_input(self):
        conversation = Conversation()
        _type(conversation, "alice")
        conversation.submit()

        assert conversation.handle_response(SECRET) is None
        assert conversation.state is ConversationState.PROMPT_SECRET
        assert conversation.prompt_type is AuthMessageType.SECRET
        assert conversation.prompt_text == "Password:"
        assert conversation.focus is FocusedField.PASSWORD
        assert not conversation.awaiting_response

    def test_visible_prompt_waits_for_input(self):
        conversation = Conversation("alice")
        conversation.start()

        assert conversation.handle_response(VISIBLE) is None
        assert conversation.state is ConversationState.PROMPT_VISIBLE

    @pytest.mark.parametrize("prompt", [INFO, PAM_ERROR])
    def test_info_and_error_prompts_are_acknowledged(self, prompt):
        conversation = Conversation("alice")
        conversation.start()

        request = conversation.handle_response(prompt)

        assert request == PostAuthMessageResponse()
        assert request.response is None
        assert conversation.state is ConversationState.AWAITING_PROMPT_ACK
        assert conversation.prompt_text == prompt.auth_message

    def test_reply_is_sent_and_cleared(self):
        conversation = _at_password_prompt()
        _type(conversation, "hunter2")

        request = conversation.submit()

        assert request == PostAuthMessageResponse("hunter2")
        assert conversation.reply == ""
        assert conversation.state is ConversationState.AWAITING_PROMPT_ACK

    def test_empty_reply_is_sent(self):
        conversation = _at_password_prompt()
        assert conversation.submit() == PostAuthMessageResponse("")

    def test_submit_username_during_prompt_moves_focus(self):
        conversation = _at_password_prompt()
        conversation.toggle_focus()

        assert conversation.submit() is None
        assert conversation.focus is FocusedField.PASSWORD
        assert conversation.state is ConversationState.PROMPT_SECRET

    def test_multi_round(self):
        conversation = _at_password_prompt()
        _type(conversation, "hunter2")
        conversation.submit()

        assert conversation.handle_response(INFO) == PostAuthMessageResponse()
        assert conversation.handle_response(VISIBLE) is None
        _type(conversation, "123456")
        assert conversation.submit() == PostAuthMessageResponse("123456")
        assert conversation.handle_response(Success()) is None
        assert conversation.state is ConversationState.AUTHENTICATED

    def test_prompt_bound(self):
        conversation = Conversation("alice", max_prompt_rounds=2)
        conversation.start()
        conversation.handle_response(INFO)
        conversation.handle_response(INFO)

        with pytest.raises(GreetdProtocolViolation, match="more than 2 prompts"):
            conversation.handle_response(INFO)

    def test_prompt_bound_resets_per_conversation(self):
        conversation = Conversation("alice", max_prompt_rounds=1)
        conversation.start()
        conversation.handle_response(SECRET)
        conversation.submit()
        with pytest.raises(GreetdAuthFailure):
            conversation.handle_response(AUTH_ERROR)

        conversation.start()
        assert conversation.handle_response(SECRET) is None


# =============================================================================
# Outcomes
# =============================================================================


class TestOutcomes:
    def test_success_without_prompts(self):
        conversation = Conversation("alice")
        conversation.start()

        assert conversation.handle_response(Success()) is None
        assert conversation.authenticated

    def test_success_after_reply(self):
        conversation = _at_password_prompt()
        conversation.submit()

        conversation.handle_response(Success())

        assert conversation.state is ConversationState.AUTHENTICATED
        assert conversation.prompt_type is None

    def test_auth_error_resets_everything(self):
        """A wrong password discards every credential typed so far."""
        conversation = _at_password_prompt()
        _type(conversation, "wrong")
        assert conversation.submit() == PostAuthMessageResponse("wrong")
        _type(conversation, "typed-ahead")

        with pytest.raises(GreetdAuthFailure) as excinfo:
            conversation.handle_response(AUTH_ERROR)

        assert excinfo.value.description == AUTH_ERROR.description
        assert conversation.state is ConversationState.UNAUTHENTICATED
        assert conversation.username == ""
        assert conversation.reply == ""
        assert conversation.prompt_type is None
        assert conversation.focus is FocusedField.USERNAME
        assert conversation.title == AUTH_FAILED_TITLE

    def test_auth_error_after_create_session(self):
        conversation = Conversation()
        _type(conversation, "mallory")
        conversation.submit()

        with pytest.raises(GreetdAuthFailure):
            conversation.handle_response(AUTH_ERROR)
        assert conversation.state is ConversationState.UNAUTHENTICATED

    def test_auth_error_with_default_identity_restarts(self):
        conversation = _at_password_prompt("bob")
        conversation.submit()

        with pytest.raises(GreetdAuthFailure):
            conversation.handle_response(AUTH_ERROR)

        assert conversation.start() == CreateSession("bob")
        assert conversation.state is ConversationState.AWAITING_CREATE_ACK

    def test_generic_error_fails_conversation(self):
        conversation = Conversation()
        _type(conversation, "alice")
        conversation.submit()

        with pytest.raises(GreetdGenericFailure) as excinfo:
            conversation.handle_response(GENERIC_ERROR)

        assert excinfo.value.description == GENERIC_ERROR.description
        assert conversation.state is ConversationState.FAILED
        assert conversation.error == GENERIC_ERROR.description
        assert conversation.title == GENERIC_ERROR.description
        assert conversation.username == "alice"
        assert conversation.focus is FocusedField.USERNAME

    def test_retry_after_generic_error(self):
        conversation = Conversation()
        _type(conversation, "alice")
        conversation.submit()
        with pytest.raises(GreetdGenericFailure):
            conversation.handle_response(GENERIC_ERROR)

        assert conversation.submit() == CreateSession("alice")
        assert conversation.error is None
        assert conversation.title == DEFAULT_TITLE
        assert conversation.state is ConversationState.AWAITING_CREATE_ACK


# =============================================================================
# Protocol order
# =============================================================================


class TestProtocolOrder:
    @pytest.mark.parametrize("response", [Success(), SECRET, INFO, AUTH_ERROR])
    def test_spurious_response_before_any_request(self, response):
        conversation = Conversation()
        with pytest.raises(GreetdProtocolViolation, match="Unexpected"):
            conversation.handle_response(response)

    def test_spurious_response_during_prompt(self):
        conversation = _at_password_prompt()
        with pytest.raises(GreetdProtocolViolation):
            conversation.handle_response(Success())
        assert conversation.state is ConversationState.PROMPT_SECRET

    def test_spurious_response_after_authentication(self):
        conversation = Conversation("alice")
        conversation.start()
        conversation.handle_response(Success())
        with pytest.raises(GreetdProtocolViolation):
            conversation.handle_response(Success())

    def test_launch_requires_authentication(self):
        conversation = _at_password_prompt()
        with pytest.raises(GreetdProtocolViolation, match="Cannot start a session"):
            conversation.request_launch(["sway"])
        assert conversation.state is ConversationState.PROMPT_SECRET

    def test_launch(self):
        conversation = Conversation("alice")
        conversation.start()
        conversation.handle_response(Success())

        request = conversation.request_launch(["/etc/ly/wsetup.sh", "sway"])

        assert request == StartSession(["/etc/ly/wsetup.sh", "sway"])
        assert conversation.state is ConversationState.LAUNCH_REQUESTED
        assert conversation.awaiting_response

        conversation.mark_session_started()
        assert conversation.state is ConversationState.SESSION_STARTED

    def test_mark_started_without_launch(self):
        with pytest.raises(GreetdProtocolViolation):
            Conversation().mark_session_started()
