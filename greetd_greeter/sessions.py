"""Desktop session discovery from freedesktop ``.desktop`` files."""

from __future__ import annotations

import configparser
import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigError

_LOGGER = logging.getLogger(__name__)

DEFAULT_SESSION_DIRS: tuple[Path, ...] = (
    Path("/usr/share/wayland-sessions"),
    Path("/usr/share/xsessions"),
)

_DESKTOP_ENTRY = "Desktop Entry"
_FIELD_CODE = re.compile(r"\s*%[fFuUdDnNickvm]")


@dataclass(frozen=True)
class DesktopSession:
    """A launchable desktop session.

    Attributes:
        name: Display name (e.g., "Plasma (Wayland)").
        exec: Command line to run, with field codes removed.
        path: Source file, or None for sessions defined in configuration.
    """

    name: str
    exec: str
    path: Path | None = None


def strip_field_codes(exec_line: str) -> str:
    """Remove desktop-entry field codes such as %U from an Exec value."""
    return _FIELD_CODE.sub("", exec_line).replace("%%", "%").strip()


def load_desktop_entry(path: Path) -> DesktopSession | None:
    """Parse one ``.desktop`` file.

    Returns:
        The session, or None when the file is hidden, unreadable, or lacks
        a Name or Exec key.
    """
    parser = configparser.ConfigParser(interpolation=None, strict=False)
    try:
        with path.open(encoding="utf-8") as f:
            parser.read_file(f)
    except (OSError, UnicodeDecodeError, configparser.Error) as err:
        _LOGGER.warning("Skipping unreadable session file %s: %s", path, err)
        return None

    if not parser.has_section(_DESKTOP_ENTRY):
        return None
    entry = parser[_DESKTOP_ENTRY]

    if entry.get("Hidden", "false").strip().lower() == "true":
        return None

    name = entry.get("Name", "").strip()
    exec_line = strip_field_codes(entry.get("Exec", ""))
    if not name or not exec_line:
        _LOGGER.debug("Skipping %s: missing Name or Exec", path)
        return None

    return DesktopSession(name=name, exec=exec_line, path=path)


def discover_sessions(directories: Iterable[Path]) -> list[DesktopSession]:
    """Collect sessions from each directory in order, files sorted by name."""
    sessions: list[DesktopSession] = []
    for directory in directories:
        if not directory.is_dir():
            continue
        for path in sorted(directory.glob("*.desktop")):
            session = load_desktop_entry(path)
            if session is not None:
                sessions.append(session)
    _LOGGER.debug("Discovered %d sessions", len(sessions))
    return sessions


class SessionCatalog:
    """Ordered list of sessions with a wrap-around selection cursor."""

    def __init__(
        self,
        sessions: Sequence[DesktopSession],
        *,
        default: str | None = None,
    ) -> None:
        if not sessions:
            raise ConfigError("No desktop sessions found")
        self._sessions = tuple(sessions)
        self._index = 0

        if default:
            names = [session.name for session in self._sessions]
            if default in names:
                self._index = names.index(default)
            else:
                _LOGGER.warning("Default session %r not found, using %r", default, names[0])

    def __len__(self) -> int:
        return len(self._sessions)

    @property
    def sessions(self) -> tuple[DesktopSession, ...]:
        return self._sessions

    @property
    def current(self) -> DesktopSession:
        return self._sessions[self._index]

    def next(self) -> DesktopSession:
        """Select the following session, wrapping to the first."""
        self._index = (self._index + 1) % len(self._sessions)
        return self.current

    def previous(self) -> DesktopSession:
        """Select the preceding session, wrapping to the last."""
        self._index = (self._index - 1) % len(self._sessions)
        return self.current
