import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Callable, Hashable
from contextlib import aclosing

from chatstream.catalog import ModelInfo
from chatstream.errors import (
    CompletionError,
    InvalidResponseError,
    NetworkError,
    StreamingInterruptedError,
)
from chatstream.events import CompletionEvent, ErrorEvent, StreamEvent, TokenEvent
from chatstream.instrumentation import record_error, record_usage, stream_span
from chatstream.provider import ModelProvider
from chatstream.registry import StreamRegistry
from chatstream.request import CompletionRequest
from chatstream.response import ChatCompletion, Usage
from chatstream.session import SessionState, StreamSession

logger = logging.getLogger(__name__)

EventSink = Callable[[StreamEvent], None]


class StreamEngine:
    """Runs streaming completions and routes their events to callers.

    Each stream is one ``asyncio.Task`` that pulls body text from the
    provider and feeds it to its own :class:`StreamSession`, so a
    session only ever has one writer.  Callbacks run synchronously on
    the event loop, in the order frames were parsed.  For every stream
    exactly one of ``on_complete`` / ``on_error`` is called, unless the
    caller cancels first, after which nothing is called at all.

    ``cancel_stream`` and ``cancel_all_streams`` must be called from the
    loop's thread (use ``loop.call_soon_threadsafe`` elsewhere).

    Args:
        provider: Transport for the completion service.
        registry: Registry to track streams in; a fresh one by default.

    Example:
        engine = StreamEngine(OpenRouter())
        engine.start_stream(
            request, message_id,
            on_token=view.append,
            on_complete=view.finish,
            on_error=view.show_error,
        )
    """

    def __init__(self, provider: ModelProvider, registry: StreamRegistry | None = None):
        self.provider = provider
        self.registry = registry or StreamRegistry()
        self._tasks: set[asyncio.Task] = set()

    async def __aenter__(self) -> "StreamEngine":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    @property
    def active_streams(self) -> list[Hashable]:
        return self.registry.active_ids()

    def start_stream(
        self,
        request: CompletionRequest,
        stream_id: Hashable,
        on_token: Callable[[str], None] | None = None,
        on_complete: Callable[[Usage | None], None] | None = None,
        on_error: Callable[[CompletionError], None] | None = None,
    ) -> asyncio.Task:
        """Start streaming ``request`` under ``stream_id``.

        Must be called with a running event loop.

        Raises:
            DuplicateStreamError: If ``stream_id`` is still active.
        """
        def sink(event: StreamEvent) -> None:
            if isinstance(event, TokenEvent):
                if on_token is not None:
                    on_token(event.content)
            elif isinstance(event, CompletionEvent):
                if on_complete is not None:
                    on_complete(event.usage)
            elif isinstance(event, ErrorEvent):
                if on_error is not None:
                    on_error(event.error)

        _, task = self._start(request, stream_id, sink)
        return task

    async def stream(
        self,
        request: CompletionRequest,
        stream_id: Hashable | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Stream ``request`` as an async iterator of events.

        The last event is a :class:`CompletionEvent` or
        :class:`ErrorEvent`.  Leaving the loop early cancels the stream;
        if the stream is cancelled from elsewhere the iterator simply
        stops.
        """
        if stream_id is None:
            stream_id = uuid.uuid4().hex
        queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue()
        session, task = self._start(request, stream_id, queue.put_nowait)
        task.add_done_callback(lambda _: queue.put_nowait(None))
        try:
            while True:
                event = await queue.get()
                if event is None or session.state is SessionState.CANCELLED:
                    return
                yield event
                if event.is_terminal:
                    return
        finally:
            if self.registry.is_current(stream_id, session):
                self.registry.cancel(stream_id)

    def cancel_stream(self, stream_id: Hashable) -> bool:
        """Stop a stream.  No events for it fire once this returns.

        Unknown or already finished ids are ignored.
        """
        return self.registry.cancel(stream_id)

    def cancel_all_streams(self) -> int:
        return self.registry.cancel_all()

    async def complete(self, request: CompletionRequest) -> ChatCompletion:
        return await self.provider.complete(request)

    async def fetch_models(self) -> list[ModelInfo]:
        return await self.provider.fetch_models()

    async def aclose(self) -> None:
        """Cancel every stream, wait for the tasks to unwind, then close the provider."""
        current = asyncio.current_task()
        tasks = [t for t in self._tasks if t is not current]
        self.cancel_all_streams()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.provider.aclose()

    # ------------------------------------------------------------------
    # Stream driving
    # ------------------------------------------------------------------

    def _start(
        self, request: CompletionRequest, stream_id: Hashable, sink: EventSink,
    ) -> tuple[StreamSession, asyncio.Task]:
        loop = asyncio.get_running_loop()
        session = self.registry.begin(stream_id, request)
        task = loop.create_task(
            self._drive(session, sink), name=f"chatstream-{stream_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self.registry.attach(stream_id, task)
        logger.info(f"Started stream {stream_id!r} with {request.model}")
        return session, task

    async def _drive(self, session: StreamSession, sink: EventSink) -> None:
        received = False
        async with stream_span(session.request.model, session.stream_id) as span:
            try:
                async with aclosing(self.provider.stream_text(session.request)) as chunks:
                    async for chunk in chunks:
                        received = True
                        self._dispatch(session, session.feed(chunk), sink, span)
                        if session.is_terminal:
                            break
                self._dispatch(session, session.finish(), sink, span)
            except CompletionError as e:
                error = e
                if received and isinstance(e, NetworkError):
                    error = _interrupted(session, e)
                self._dispatch(session, session.fail(error), sink, span)
            except asyncio.CancelledError:
                session.cancel()
                raise
            except Exception as e:
                logger.exception(f"Unexpected failure in stream {session.stream_id!r}")
                error = InvalidResponseError(
                    f"Unexpected error while streaming: {e}",
                    details={"exception": type(e).__name__},
                )
                self._dispatch(session, session.fail(error), sink, span)
            finally:
                self.registry.release(session.stream_id, session)

    def _dispatch(
        self, session: StreamSession, events: list[StreamEvent], sink: EventSink, span=None,
    ) -> None:
        for event in events:
            # Cancelled, possibly by an earlier callback in this batch.
            if not self.registry.is_current(session.stream_id, session):
                return
            if event.is_terminal:
                self.registry.release(session.stream_id, session)
                if isinstance(event, CompletionEvent):
                    record_usage(span, event.usage, event.finish_reason)
                    logger.info(
                        f"Stream {session.stream_id!r} completed "
                        f"({event.finish_reason or 'done'})"
                    )
                else:
                    record_error(span, event.error)
                    logger.info(
                        f"Stream {session.stream_id!r} failed: {event.error.code}"
                    )
            try:
                sink(event)
            except Exception:
                logger.exception(
                    f"Event handler for stream {session.stream_id!r} raised"
                )


def _interrupted(session: StreamSession, error: NetworkError) -> StreamingInterruptedError:
    """A transport failure after the body started is an interrupted stream."""
    interrupted = StreamingInterruptedError(
        partial_content=session.text,
        details={**error.details, "cause": error.code, "cause_message": error.message},
    )
    interrupted.__cause__ = error
    return interrupted
