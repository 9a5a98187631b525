"""Outbound chat-completion requests.

:func:`build_request` is the only place requests are validated; once
built, a :class:`CompletionRequest` is frozen and serialises itself
with :meth:`CompletionRequest.to_payload`.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from chatstream.errors import InvalidRequestError
from chatstream.message import Message, MessageRole


class CompletionRequest(BaseModel):
    model_config = {"frozen": True}

    model: str
    messages: tuple[Message, ...]
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, gt=0)
    stream: bool = True
    tools: tuple[dict, ...] | None = None
    tool_choice: str | None = None
    provider_order: tuple[str, ...] | None = None
    allow_fallbacks: bool | None = None

    @field_validator("model")
    @classmethod
    def model_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("model id must not be empty")
        return value.strip()

    @field_validator("messages")
    @classmethod
    def messages_not_empty(cls, value: tuple[Message, ...]) -> tuple[Message, ...]:
        if not value:
            raise ValueError("at least one message is required")
        return value

    @model_validator(mode="after")
    def tool_messages_reference_calls(self) -> "CompletionRequest":
        for position, message in enumerate(self.messages):
            if message.role is MessageRole.TOOL and not getattr(
                message, "tool_call_id", None
            ):
                raise ValueError(
                    f"tool message at position {position} has no tool_call_id"
                )
        return self

    def to_payload(self, stream: bool | None = None) -> dict[str, Any]:
        """JSON body for ``POST /chat/completions``.

        Unset optionals are left out.  Provider routing goes into the
        ``provider`` object the OpenRouter API expects.
        """
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [m.model_dump(exclude_none=True) for m in self.messages],
            "stream": self.stream if stream is None else stream,
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens
        if self.tools:
            payload["tools"] = list(self.tools)
        if self.tool_choice is not None:
            payload["tool_choice"] = self.tool_choice

        provider: dict[str, Any] = {}
        if self.provider_order:
            provider["order"] = list(self.provider_order)
        if self.allow_fallbacks is not None:
            provider["allow_fallbacks"] = self.allow_fallbacks
        if provider:
            payload["provider"] = provider
        return payload


def build_request(
    model: str,
    messages: list[Message],
    *,
    temperature: float | None = None,
    max_tokens: int | None = None,
    tools: list[dict] | None = None,
    tool_choice: str | None = None,
    provider_order: list[str] | None = None,
    allow_fallbacks: bool | None = None,
) -> CompletionRequest:
    """Build a streaming completion request.

    Raises:
        InvalidRequestError: If the arguments cannot form a valid
            request (empty model id, no messages, out-of-range
            parameters, a tool message without ``tool_call_id``).
    """
    try:
        return CompletionRequest(
            model=model,
            messages=tuple(messages),
            temperature=temperature,
            max_tokens=max_tokens,
            stream=True,
            tools=tuple(tools) if tools is not None else None,
            tool_choice=tool_choice,
            provider_order=tuple(provider_order) if provider_order is not None else None,
            allow_fallbacks=allow_fallbacks,
        )
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or "request"
        raise InvalidRequestError(
            f"Invalid request: {location}: {first.get('msg')}",
            details={"errors": e.errors(include_url=False)},
        ) from e
