"""Keystroke collection from a terminal in raw mode."""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import sys
import termios
import tty
from typing import IO, Any

_LOGGER = logging.getLogger(__name__)


class KeystrokeSource:
    """Delivers one character at a time through a single-slot inbox.

    A reader task decodes bytes from the input stream and blocks on the
    inbox until the control loop takes the previous key. The terminal is
    put in raw mode on entry and always restored on exit.

    Usage:
        async with KeystrokeSource() as keys:
            key = await keys.get()   # None once input is exhausted
    """

    def __init__(self, stream: IO[Any] | None = None, *, raw: bool = True) -> None:
        self._stream = stream if stream is not None else sys.stdin
        self._raw = raw
        self._inbox: asyncio.Queue[str | None] = asyncio.Queue(maxsize=1)
        self._fd: int | None = None
        self._saved_attrs: list[Any] | None = None
        self._transport: asyncio.ReadTransport | None = None
        self._reader_task: asyncio.Task[None] | None = None

    async def __aenter__(self) -> KeystrokeSource:
        fd = self._fd = self._stream.fileno()
        if self._raw and os.isatty(fd):
            self._saved_attrs = termios.tcgetattr(fd)
            tty.setraw(fd)
            _LOGGER.debug("Terminal raw mode enabled")

        try:
            loop = asyncio.get_running_loop()
            reader = asyncio.StreamReader()
            # the transport closes its pipe, so it gets a duplicate of the fd
            pipe = os.fdopen(os.dup(fd), "rb", buffering=0)
            self._transport, _ = await loop.connect_read_pipe(
                lambda: asyncio.StreamReaderProtocol(reader), pipe
            )
        except BaseException:
            self._restore_terminal()
            raise

        self._reader_task = asyncio.create_task(self._pump(reader))
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Stop reading and restore the terminal."""
        if self._reader_task is not None:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
            self._reader_task = None

        self._restore_terminal()

        if self._transport is not None:
            self._transport.close()
            self._transport = None
            if self._fd is not None:
                os.set_blocking(self._fd, True)

    def _restore_terminal(self) -> None:
        if self._saved_attrs is None:
            return
        termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved_attrs)
        self._saved_attrs = None
        _LOGGER.debug("Terminal raw mode disabled")

    async def get(self) -> str | None:
        """Wait for the next character; None means input has ended."""
        return await self._inbox.get()

    async def _pump(self, reader: asyncio.StreamReader) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            try:
                data = await reader.read(1)
            except OSError as err:
                _LOGGER.warning("Keystroke input failed: %s", err)
                data = b""

            if not data:
                _LOGGER.info("Keystroke input closed")
                await self._inbox.put(None)
                return

            for char in decoder.decode(data):
                await self._inbox.put(char)
