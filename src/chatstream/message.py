from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_serializer, field_validator, model_serializer

from chatstream.streaming import ToolCall


class MessageRole(Enum):
    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"
    TOOL = "tool"


class ImageURL(BaseModel):
    url: str
    detail: Literal["auto", "low", "high"] = "auto"


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImagePart(BaseModel):
    """Inline image reference: an http(s) URL or a ``data:`` URI."""

    type: Literal["image_url"] = "image_url"
    image_url: ImageURL

    @classmethod
    def from_url(cls, url: str, detail: str = "auto") -> "ImagePart":
        return cls(image_url=ImageURL(url=url, detail=detail))


ContentPart = Annotated[Union[TextPart, ImagePart], Field(discriminator="type")]


class Message(BaseModel):
    """One role-tagged chat message with ordered content parts.

    A plain string is accepted for ``content`` and becomes a single
    text part.
    """

    role: MessageRole
    content: list[ContentPart] = Field(default_factory=list)

    @field_validator("content", mode="before")
    @classmethod
    def coerce_text(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [{"type": "text", "text": value}]
        return value

    @field_serializer("role")
    def serialize_role(self, role: MessageRole, _info) -> str:
        return role.value

    @property
    def text(self) -> str:
        return "".join(p.text for p in self.content if isinstance(p, TextPart))

    @classmethod
    def system(cls, text: str) -> "Message":
        return cls(role=MessageRole.SYSTEM, content=text)

    @classmethod
    def user(cls, text: str, images: tuple[str, ...] | list[str] = ()) -> "Message":
        """User message with the text first and any image URLs after it."""
        parts: list = [TextPart(text=text)]
        parts.extend(ImagePart.from_url(url) for url in images)
        return cls(role=MessageRole.USER, content=parts)

    @classmethod
    def assistant(cls, text: str) -> "Message":
        return cls(role=MessageRole.ASSISTANT, content=text)


class ToolCallRequestMessage(Message):
    role: MessageRole = MessageRole.ASSISTANT
    tool_calls: list[ToolCall]

    @model_serializer(mode="wrap")
    def drop_empty_content(self, handler):
        # Endpoints reject an empty content array next to tool_calls.
        data = handler(self)
        if not data.get("content"):
            data.pop("content", None)
        return data

    @field_serializer("tool_calls")
    def serialize_tool_calls(self, tool_calls: list[ToolCall]) -> list[dict]:
        return [
            {
                "id": t.id,
                "type": "function",
                "function": {
                    "arguments": t.arguments,
                    "name": t.name
                }
            }
            for t in tool_calls
        ]


class ToolCallResultMessage(Message):
    role: MessageRole = MessageRole.TOOL
    tool_call_id: str
