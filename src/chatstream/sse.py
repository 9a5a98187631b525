"""Incremental parser for the ``data:`` lines of a Server-Sent Events body."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


@dataclass
class ParsedChunk:
    """Result of one :func:`parse_frames` call.

    ``frames`` holds raw JSON payloads in arrival order, ``residual``
    the trailing text that is not yet a complete line, and ``done``
    whether the ``[DONE]`` sentinel was seen.
    """

    frames: list[str] = field(default_factory=list)
    residual: str = ""
    done: bool = False


def parse_frames(buffer: str, chunk: str) -> ParsedChunk:
    """Resolve ``buffer + chunk`` into complete frames.

    Network chunks split the body at arbitrary points, so the last line
    is held back as ``residual`` unless the text ends in a line
    terminator.  Lines without the ``data: `` prefix (comments,
    keep-alives, other SSE fields, blank separators) are dropped.
    Nothing after ``[DONE]`` is looked at.
    """
    lines = _LINE_BREAK.split(buffer + chunk)
    result = ParsedChunk(residual=lines.pop())

    for line in lines:
        line = line.strip()
        if not line.startswith(DATA_PREFIX):
            continue
        payload = line[len(DATA_PREFIX):].strip()
        if payload == DONE_SENTINEL:
            result.done = True
            result.residual = ""
            break
        result.frames.append(payload)
    return result
