from pydantic import BaseModel, Field, field_validator

from chatstream.streaming import ToolCall


class Usage(BaseModel):
    """Token totals reported by the server at the end of a completion."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ResponseMessage(BaseModel):
    role: str = "assistant"
    content: str | None = None
    tool_calls: list[ToolCall] | None = None

    @field_validator("tool_calls", mode="before")
    @classmethod
    def flatten_tool_calls(cls, value):
        if not value:
            return None
        return [
            ToolCall(
                id=call.get("id", ""),
                name=(call.get("function") or {}).get("name", ""),
                arguments=(call.get("function") or {}).get("arguments", ""),
            )
            if isinstance(call, dict) else call
            for call in value
        ]


class Choice(BaseModel):
    index: int = 0
    message: ResponseMessage
    finish_reason: str | None = None


class ChatCompletion(BaseModel):
    """Body of a non-streaming ``/chat/completions`` response."""

    id: str
    object: str = "chat.completion"
    created: int = 0
    model: str = ""
    choices: list[Choice] = Field(default_factory=list)
    usage: Usage | None = None

    @property
    def content(self) -> str | None:
        if not self.choices:
            return None
        return self.choices[0].message.content
