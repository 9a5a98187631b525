"""Frame decoding for streamed chat completions.

:func:`decode_frame` turns one raw ``data:`` payload into a
:class:`StreamChunk`, or a :class:`SkippedFrame` when the payload is
not a usable JSON object.  The :class:`ToolCallAccumulator`
reassembles tool calls whose arguments arrive in fragments across
multiple chunks.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chatstream.response import Usage


@dataclass
class ToolCallFragment:
    """A fragment of a tool call from a streaming chunk."""

    index: int
    call_id: str | None = None
    name: str | None = None
    arguments_delta: str | None = None


@dataclass
class StreamChunk:
    """One decoded frame: the first choice's delta plus frame-level usage."""

    index: int = 0
    role: str | None = None
    content_delta: str | None = None
    tool_call_fragments: list[ToolCallFragment] | None = None
    finish_reason: str | None = None
    usage: Usage | None = None


@dataclass
class SkippedFrame:
    """Diagnostic record for a frame that could not be decoded."""

    raw: str
    reason: str


@dataclass
class ToolCall:
    """A resolved tool call ready for the transcript."""

    id: str = ""
    name: str = ""
    arguments: str = ""


def _fragments(raw_calls) -> list[ToolCallFragment] | None:
    if not isinstance(raw_calls, list):
        return None
    fragments = []
    for position, call in enumerate(raw_calls):
        if not isinstance(call, dict):
            continue
        function = call.get("function") or {}
        fragments.append(ToolCallFragment(
            index=call.get("index", position),
            call_id=call.get("id"),
            name=function.get("name"),
            arguments_delta=function.get("arguments"),
        ))
    return fragments or None


def _text_of_parts(parts: list) -> str:
    """Join the ``text`` of each ``{"type": "text"}`` content part."""
    return "".join(
        part["text"]
        for part in parts
        if isinstance(part, dict)
        and part.get("type") == "text"
        and isinstance(part.get("text"), str)
    )


def decode_frame(raw: str) -> StreamChunk | SkippedFrame:
    """Decode one frame payload.

    Never raises: anything that is not a JSON object with a list of
    choices comes back as a :class:`SkippedFrame` so the caller can
    count it and move on.
    """
    from chatstream.response import Usage

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        return SkippedFrame(raw=raw, reason=f"invalid JSON: {e}")
    if not isinstance(data, dict):
        return SkippedFrame(raw=raw, reason="frame is not a JSON object")

    error = data.get("error")
    if isinstance(error, dict) and not data.get("choices"):
        return SkippedFrame(
            raw=raw, reason=f"error frame: {error.get('message', 'unknown')}"
        )

    choices = data.get("choices") or []
    if not isinstance(choices, list):
        return SkippedFrame(raw=raw, reason="choices is not a list")

    usage = None
    if isinstance(data.get("usage"), dict):
        try:
            usage = Usage.model_validate(data["usage"])
        except ValueError:
            usage = None

    if not choices:
        return StreamChunk(usage=usage)

    choice = choices[0]
    if not isinstance(choice, dict):
        return SkippedFrame(raw=raw, reason="choice is not a JSON object")
    delta = choice.get("delta") or {}
    if not isinstance(delta, dict):
        return SkippedFrame(raw=raw, reason="delta is not a JSON object")

    content = delta.get("content")
    if isinstance(content, list):
        content = _text_of_parts(content)
    elif content is not None and not isinstance(content, str):
        return SkippedFrame(raw=raw, reason="content is not text")

    return StreamChunk(
        index=choice.get("index", 0),
        role=delta.get("role"),
        content_delta=content,
        tool_call_fragments=_fragments(delta.get("tool_calls")),
        finish_reason=choice.get("finish_reason"),
        usage=usage,
    )


class ToolCallAccumulator:
    """Assembles complete tool calls from streaming fragments."""

    def __init__(self) -> None:
        self._pending: dict[int, ToolCall] = {}

    def feed(self, fragment: ToolCallFragment) -> None:
        if fragment.index not in self._pending:
            self._pending[fragment.index] = ToolCall()
        tc = self._pending[fragment.index]
        if fragment.call_id is not None:
            tc.id = fragment.call_id
        if fragment.name is not None:
            tc.name = fragment.name
        if fragment.arguments_delta is not None:
            tc.arguments += fragment.arguments_delta

    def finalize(self) -> list[ToolCall]:
        """Return completed tool calls in index order."""
        return [self._pending[i] for i in sorted(self._pending)]
