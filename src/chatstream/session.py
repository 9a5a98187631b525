"""Per-stream state machine.

A :class:`StreamSession` owns the residual buffer of one in-flight
request and turns raw text chunks into :mod:`chatstream.events`.  It
never calls back into user code; it returns the events so the engine
can dispatch them in order.

States::

    ACTIVE --token--> ACTIVE
    ACTIVE --finish_reason / [DONE]--> COMPLETED
    ACTIVE --fail() / finish() without terminator--> ERRORED
    ACTIVE --cancel()--> CANCELLED

Terminal states are final.  Every method is a no-op returning ``[]``
once the session has left ``ACTIVE``.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable
from enum import Enum

from chatstream.errors import CompletionError, StreamingInterruptedError
from chatstream.events import CompletionEvent, ErrorEvent, StreamEvent, TokenEvent
from chatstream.request import CompletionRequest
from chatstream.response import Usage
from chatstream.sse import parse_frames
from chatstream.streaming import SkippedFrame, ToolCallAccumulator, decode_frame

logger = logging.getLogger(__name__)


class SessionState(Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ERRORED = "errored"
    CANCELLED = "cancelled"


class StreamSession:
    """One streaming completion, from first byte to terminal event.

    Args:
        stream_id: Caller-chosen identifier, unique among active streams.
        request: The request this session is answering.
    """

    def __init__(self, stream_id: Hashable, request: CompletionRequest | None = None):
        self.stream_id = stream_id
        self.request = request
        self.state = SessionState.ACTIVE
        self.buffer = ""
        self.text = ""
        self.usage: Usage | None = None
        self.finish_reason: str | None = None
        self.error: CompletionError | None = None
        self.skipped: list[SkippedFrame] = []
        self._tool_calls = ToolCallAccumulator()

    def __repr__(self) -> str:
        return f"StreamSession(stream_id={self.stream_id!r}, state={self.state.value})"

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    @property
    def is_terminal(self) -> bool:
        return self.state is not SessionState.ACTIVE

    def feed(self, chunk: str) -> list[StreamEvent]:
        """Consume one chunk of body text and return the events it completes."""
        if not self.is_active:
            return []

        parsed = parse_frames(self.buffer, chunk)
        self.buffer = parsed.residual
        events: list[StreamEvent] = []

        for raw in parsed.frames:
            frame = decode_frame(raw)
            if isinstance(frame, SkippedFrame):
                self.skipped.append(frame)
                logger.warning(
                    f"Skipping undecodable frame on stream {self.stream_id!r}: "
                    f"{frame.reason}"
                )
                continue

            if frame.content_delta is not None:
                self.text += frame.content_delta
                events.append(TokenEvent(stream_id=self.stream_id, content=frame.content_delta))
            for fragment in frame.tool_call_fragments or ():
                self._tool_calls.feed(fragment)

            if frame.finish_reason is not None:
                events.append(self._complete(frame.usage, frame.finish_reason))
                return events

        if parsed.done:
            events.append(self._complete(None, None))
        return events

    def finish(self) -> list[StreamEvent]:
        """The transport delivered the whole body.

        End of body terminates whatever line is still in the buffer.  If
        that does not complete the stream, the server broke off early.
        """
        if not self.is_active:
            return []
        events = self.feed("\n") if self.buffer else []
        if self.is_active:
            logger.info(
                f"Stream {self.stream_id!r} ended without a terminal frame "
                f"after {len(self.text)} characters"
            )
            events.extend(self.fail(StreamingInterruptedError(partial_content=self.text)))
        return events

    def fail(self, error: CompletionError) -> list[StreamEvent]:
        if not self.is_active:
            return []
        self.state = SessionState.ERRORED
        self.error = error
        self.buffer = ""
        return [ErrorEvent(stream_id=self.stream_id, error=error)]

    def cancel(self) -> bool:
        """Move to ``CANCELLED`` and drop the buffer.  Emits nothing."""
        if not self.is_active:
            return False
        self.state = SessionState.CANCELLED
        self.buffer = ""
        return True

    def _complete(self, usage: Usage | None, finish_reason: str | None) -> CompletionEvent:
        self.state = SessionState.COMPLETED
        self.usage = usage
        self.finish_reason = finish_reason
        self.buffer = ""
        return CompletionEvent(
            stream_id=self.stream_id,
            usage=usage,
            finish_reason=finish_reason,
            tool_calls=self.tool_calls,
        )

    @property
    def tool_calls(self):
        return self._tool_calls.finalize()
