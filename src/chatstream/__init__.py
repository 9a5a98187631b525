"""Streaming chat-completion client for OpenRouter and OpenAI-compatible APIs."""

from chatstream.config import ClientConfig, configure_logging
from chatstream.engine import StreamEngine
from chatstream.errors import (
    CompletionError,
    ContextLengthExceededError,
    DuplicateStreamError,
    HTTPStatusError,
    InsufficientCreditsError,
    InvalidRequestError,
    InvalidResponseError,
    MissingAPIKeyError,
    ModelNotFoundError,
    NetworkError,
    RateLimitError,
    StreamingInterruptedError,
)
from chatstream.events import CompletionEvent, ErrorEvent, StreamEvent, TokenEvent
from chatstream.instrumentation import instrument, uninstrument
from chatstream.message import (
    ImagePart,
    Message,
    MessageRole,
    TextPart,
    ToolCallRequestMessage,
    ToolCallResultMessage,
)
from chatstream.provider import (
    ModelProvider,
    OpenAICompatibleProvider,
    OpenAIProvider,
    OpenRouter,
    VLLMProvider,
)
from chatstream.registry import StreamRegistry
from chatstream.request import CompletionRequest, build_request
from chatstream.response import ChatCompletion, Usage
from chatstream.session import SessionState, StreamSession
from chatstream.sse import parse_frames
from chatstream.streaming import ToolCall

__all__ = [
    "ChatCompletion",
    "ClientConfig",
    "CompletionError",
    "CompletionEvent",
    "CompletionRequest",
    "ContextLengthExceededError",
    "DuplicateStreamError",
    "ErrorEvent",
    "HTTPStatusError",
    "ImagePart",
    "InsufficientCreditsError",
    "InvalidRequestError",
    "InvalidResponseError",
    "Message",
    "MessageRole",
    "MissingAPIKeyError",
    "ModelNotFoundError",
    "ModelProvider",
    "NetworkError",
    "OpenAICompatibleProvider",
    "OpenAIProvider",
    "OpenRouter",
    "RateLimitError",
    "SessionState",
    "StreamEngine",
    "StreamEvent",
    "StreamRegistry",
    "StreamSession",
    "StreamingInterruptedError",
    "TextPart",
    "TokenEvent",
    "ToolCall",
    "ToolCallRequestMessage",
    "ToolCallResultMessage",
    "Usage",
    "VLLMProvider",
    "build_request",
    "configure_logging",
    "instrument",
    "parse_frames",
    "uninstrument",
]
