import asyncio
import json

import httpx
import pytest

from chatstream.message import Message
from chatstream.provider import ModelProvider, OpenRouter
from chatstream.request import build_request


# ---------------------------------------------------------------------------
# Wire helpers (mirror the OpenAI chunk shape)
# ---------------------------------------------------------------------------

def sse_frame(
    content: str | None = None,
    finish_reason: str | None = None,
    usage: dict | None = None,
    tool_calls: list[dict] | None = None,
    role: str | None = None,
    ensure_ascii: bool = True,
) -> str:
    """One ``data:`` line carrying a ``chat.completion.chunk``.

    Pass ``ensure_ascii=False`` to send non-ASCII text as raw UTF-8 rather
    than ``\\u`` escapes.
    """
    delta = {}
    if role is not None:
        delta["role"] = role
    if content is not None:
        delta["content"] = content
    if tool_calls is not None:
        delta["tool_calls"] = tool_calls
    body = {
        "id": "gen-1",
        "object": "chat.completion.chunk",
        "created": 1700000000,
        "model": "mock-model",
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    }
    if usage is not None:
        body["usage"] = usage
    return f"data: {json.dumps(body, ensure_ascii=ensure_ascii)}\n"


DONE = "data: [DONE]\n"

USAGE = {"prompt_tokens": 12, "completion_tokens": 3, "total_tokens": 15}


def split_every(text: str, size: int) -> list[str]:
    return [text[i:i + size] for i in range(0, len(text), size)]


# ---------------------------------------------------------------------------
# Fake provider
# ---------------------------------------------------------------------------

class FakeProvider(ModelProvider):
    """Provider that replays pre-queued body scripts. No network calls.

    Each script is a list whose items are yielded in order: strings are
    body text, exceptions are raised, and ``asyncio.Event`` objects are
    awaited so tests can hold a stream open mid-body.
    """

    name = "fake"

    def __init__(self):
        self.scripts: list[list] = []
        self.call_log: list = []
        self.closed_streams = 0
        self.closed = False
        self.closed_after_shutdown = 0

    async def stream_text(self, request):
        self.call_log.append(request)
        script = self.scripts.pop(0)
        try:
            for item in script:
                if isinstance(item, asyncio.Event):
                    await item.wait()
                elif isinstance(item, BaseException):
                    raise item
                else:
                    yield item
        finally:
            self.closed_streams += 1
            if self.closed:
                self.closed_after_shutdown += 1

    async def aclose(self):
        self.closed = True


class Recorder:
    """Collects callback invocations for one stream, in order."""

    def __init__(self):
        self.calls: list[tuple[str, object]] = []

    def on_token(self, text):
        self.calls.append(("token", text))

    def on_complete(self, usage):
        self.calls.append(("complete", usage))

    def on_error(self, error):
        self.calls.append(("error", error))

    @property
    def tokens(self) -> list[str]:
        return [value for kind, value in self.calls if kind == "token"]

    @property
    def terminals(self) -> list[tuple[str, object]]:
        return [c for c in self.calls if c[0] in ("complete", "error")]

    def callbacks(self) -> dict:
        return {
            "on_token": self.on_token,
            "on_complete": self.on_complete,
            "on_error": self.on_error,
        }


async def drain(task: asyncio.Task) -> None:
    """Wait for a stream task, tolerating cancellation."""
    try:
        await task
    except asyncio.CancelledError:
        pass


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------

def chunked_response(chunks: list[str | bytes], status_code: int = 200, headers=None):
    """An ``httpx.Response`` whose body arrives in the given pieces."""
    async def body():
        for chunk in chunks:
            yield chunk.encode() if isinstance(chunk, str) else chunk

    return httpx.Response(
        status_code,
        headers={"content-type": "text/event-stream", **(headers or {})},
        content=body(),
    )


def make_openrouter(handler, **kwargs) -> OpenRouter:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    kwargs.setdefault("api_key", "test-key")
    return OpenRouter(client=client, **kwargs)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def request_():
    return build_request("mock-model", [Message.user("Hello")])


@pytest.fixture
def recorder():
    return Recorder()
