"""greetd login greeter: IPC client, authentication conversation, launcher."""

__version__ = "0.1.0"

from .config import GreeterConfig, load_config
from .conversation import Conversation, ConversationState, FocusedField
from .errors import (
    ConfigError,
    GreeterError,
    GreeterInterrupted,
    GreetdAuthFailure,
    GreetdClientError,
    GreetdConnectError,
    GreetdFramingError,
    GreetdGenericFailure,
    GreetdIoError,
    GreetdProtocolError,
    GreetdProtocolViolation,
    GreetdTimeout,
)
from .greeter import Greeter
from .launch import DEFAULT_SESSION_WRAPPER, LaunchDispatcher, build_session_command
from .protocol import (
    AuthMessage,
    AuthMessageType,
    CancelSession,
    CreateSession,
    Error,
    ErrorType,
    PostAuthMessageResponse,
    StartSession,
    Success,
)
from .sessions import DesktopSession, SessionCatalog, discover_sessions
from .transport import GreetdClient

__all__ = [
    "DEFAULT_SESSION_WRAPPER",
    "AuthMessage",
    "AuthMessageType",
    "CancelSession",
    "ConfigError",
    "Conversation",
    "ConversationState",
    "CreateSession",
    "DesktopSession",
    "Error",
    "ErrorType",
    "FocusedField",
    "Greeter",
    "GreeterConfig",
    "GreeterError",
    "GreeterInterrupted",
    "GreetdAuthFailure",
    "GreetdClient",
    "GreetdClientError",
    "GreetdConnectError",
    "GreetdFramingError",
    "GreetdGenericFailure",
    "GreetdIoError",
    "GreetdProtocolError",
    "GreetdProtocolViolation",
    "GreetdTimeout",
    "LaunchDispatcher",
    "PostAuthMessageResponse",
    "SessionCatalog",
    "StartSession",
    "Success",
    "__version__",
    "build_session_command",
    "discover_sessions",
    "load_config",
]
