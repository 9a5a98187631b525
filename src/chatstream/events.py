"""Caller-visible events produced by a stream session."""

from __future__ import annotations

from dataclasses import dataclass, field
from collections.abc import Hashable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chatstream.errors import CompletionError
    from chatstream.response import Usage
    from chatstream.streaming import ToolCall


@dataclass
class StreamEvent:
    """Base for all streaming events."""

    stream_id: Hashable = None

    @property
    def is_terminal(self) -> bool:
        return False


@dataclass
class TokenEvent(StreamEvent):
    """A content delta, in the order it arrived."""

    content: str = ""


@dataclass
class CompletionEvent(StreamEvent):
    """Normal end of a stream.

    ``usage`` is only set when the server reported it on the frame that
    carried the finish reason; a bare ``[DONE]`` leaves it ``None``.
    """

    usage: Usage | None = None
    finish_reason: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return True


@dataclass
class ErrorEvent(StreamEvent):
    """Abnormal end of a stream, reported exactly once."""

    error: CompletionError | None = None

    @property
    def is_terminal(self) -> bool:
        return True
