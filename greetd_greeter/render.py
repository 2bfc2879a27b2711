"""View snapshots handed to the render sink, and a plain terminal renderer."""

from __future__ import annotations

import sys
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import IO

from .conversation import Conversation, ConversationState, FocusedField
from .protocol import AuthMessageType

_MASK = "*"


@dataclass(frozen=True)
class GreeterView:
    """Everything a renderer needs to draw the login form."""

    title: str
    state: ConversationState
    focus: FocusedField
    username: str
    prompt_type: AuthMessageType | None
    prompt_text: str
    reply: str
    session_name: str
    error: str | None = None


RenderSink = Callable[[GreeterView], None]


def build_view(conversation: Conversation, session_name: str) -> GreeterView:
    """Snapshot the conversation; secret replies are masked."""
    reply = conversation.reply
    if conversation.prompt_type is not AuthMessageType.VISIBLE:
        reply = _MASK * len(reply)
    return GreeterView(
        title=conversation.title,
        state=conversation.state,
        focus=conversation.focus,
        username=conversation.username,
        prompt_type=conversation.prompt_type,
        prompt_text=conversation.prompt_text,
        reply=reply,
        session_name=session_name,
        error=conversation.error,
    )


def format_clock(now: datetime) -> str:
    """Format a 12-hour clock without a leading zero (e.g. "9:05")."""
    hour = now.hour % 12 or 12
    return f"{hour}:{now.minute:02d}"


class TerminalRenderer:
    """Redraws the login form on a terminal that may be in raw mode."""

    def __init__(
        self,
        stream: IO[str] | None = None,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._stream = stream if stream is not None else sys.stdout
        self._clock = clock

    def render_lines(self, view: GreeterView) -> list[str]:
        def marker(field: FocusedField) -> str:
            return "> " if view.focus is field else "  "

        lines = [f"{view.title:<40}{format_clock(self._clock()):>8}", ""]
        lines.append(f"{marker(FocusedField.USERNAME)}Username: {view.username}")
        if view.prompt_type is not None:
            if view.prompt_type.expects_reply:
                lines.append(f"{marker(FocusedField.PASSWORD)}{view.prompt_text} {view.reply}")
            else:
                lines.append(f"  {view.prompt_text}")
        lines.append("")
        lines.append(f"Session: < {view.session_name} >")
        return lines

    def __call__(self, view: GreeterView) -> None:
        # raw mode disables output post-processing, so carriage returns are explicit
        self._stream.write("\x1b[H\x1b[2J" + "\r\n".join(self.render_lines(view)) + "\r\n")
        self._stream.flush()
