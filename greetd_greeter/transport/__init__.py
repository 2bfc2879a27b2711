"""Transport layer for the greetd greeter.

This package contains all socket IO and wire framing.

Components:
- codec: length-prefixed JSON frame encoding and decoding
- ipc: socket path discovery and connection setup
- client: one-request-in-flight greetd client
"""

from .client import GreetdClient
from .codec import (
    decode_request_frame,
    decode_response,
    encode_payload,
    encode_request,
    read_frame,
)
from .ipc import SOCKET_ENV_VAR, connect_socket, socket_path_from_env

__all__ = [
    "SOCKET_ENV_VAR",
    "GreetdClient",
    "connect_socket",
    "decode_request_frame",
    "decode_response",
    "encode_payload",
    "encode_request",
    "read_frame",
    "socket_path_from_env",
]
