"""Unix socket helpers for reaching the greetd daemon."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping

from ..errors import GreetdConnectError

SOCKET_ENV_VAR = "GREETD_SOCK"


def socket_path_from_env(environ: Mapping[str, str] | None = None) -> str:
    """Return the greetd socket path advertised in the environment.

    Raises:
        GreetdConnectError: If GREETD_SOCK is unset or empty.
    """
    env = os.environ if environ is None else environ
    path = env.get(SOCKET_ENV_VAR)
    if not path:
        raise GreetdConnectError(f"{SOCKET_ENV_VAR} is not set; is greetd running?")
    return path


async def connect_socket(
    path: str,
    *,
    timeout: float = 5.0,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Connect to the greetd IPC socket.

    Args:
        path: Filesystem path of the greetd socket
        timeout: Connection timeout in seconds

    Raises:
        GreetdConnectError: If the socket is missing, stale, refuses the
            connection, or does not accept within ``timeout``.
    """
    try:
        return await asyncio.wait_for(asyncio.open_unix_connection(path), timeout=timeout)
    except TimeoutError as err:
        raise GreetdConnectError(f"Connecting to {path} timed out") from err
    except OSError as err:
        raise GreetdConnectError(f"Failed to connect to greetd at {path}: {err}") from err
