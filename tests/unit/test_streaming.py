"""Unit tests for frame decoding and tool-call reassembly."""

import json

from chatstream.response import Usage
from chatstream.streaming import (
    SkippedFrame,
    StreamChunk,
    ToolCall,
    ToolCallAccumulator,
    ToolCallFragment,
    decode_frame,
)


def _payload(**delta) -> str:
    finish = delta.pop("finish_reason", None)
    usage = delta.pop("usage", None)
    body = {
        "id": "gen-1",
        "object": "chat.completion.chunk",
        "created": 1,
        "model": "m",
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish}],
    }
    if usage is not None:
        body["usage"] = usage
    return json.dumps(body)


class TestDecodeFrame:
    def test_content_delta(self):
        frame = decode_frame(_payload(content="Hel"))
        assert isinstance(frame, StreamChunk)
        assert frame.content_delta == "Hel"
        assert frame.finish_reason is None
        assert frame.usage is None

    def test_role_only_delta_has_no_content(self):
        frame = decode_frame(_payload(role="assistant"))
        assert frame.role == "assistant"
        assert frame.content_delta is None

    def test_empty_string_content_is_kept(self):
        frame = decode_frame(_payload(content=""))
        assert frame.content_delta == ""

    def test_finish_reason_and_usage(self):
        frame = decode_frame(_payload(
            finish_reason="stop",
            usage={"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7},
        ))
        assert frame.finish_reason == "stop"
        assert frame.usage == Usage(prompt_tokens=5, completion_tokens=2, total_tokens=7)

    def test_usage_only_frame_with_no_choices(self):
        raw = json.dumps({"id": "x", "choices": [], "usage": {"total_tokens": 9}})
        frame = decode_frame(raw)
        assert isinstance(frame, StreamChunk)
        assert frame.content_delta is None
        assert frame.usage.total_tokens == 9

    def test_tool_call_fragments(self):
        frame = decode_frame(_payload(tool_calls=[
            {"index": 0, "id": "call_1", "type": "function",
             "function": {"name": "lookup", "arguments": '{"q"'}},
        ]))
        assert frame.tool_call_fragments == [
            ToolCallFragment(index=0, call_id="call_1", name="lookup", arguments_delta='{"q"'),
        ]

    def test_invalid_json_is_skipped(self):
        frame = decode_frame('{"choices": [')
        assert isinstance(frame, SkippedFrame)
        assert frame.raw == '{"choices": ['
        assert "invalid JSON" in frame.reason

    def test_non_object_is_skipped(self):
        frame = decode_frame("[1, 2, 3]")
        assert isinstance(frame, SkippedFrame)

    def test_error_frame_is_skipped(self):
        frame = decode_frame(json.dumps({"error": {"message": "upstream died"}}))
        assert isinstance(frame, SkippedFrame)
        assert "upstream died" in frame.reason

    def test_malformed_usage_is_ignored(self):
        raw = json.dumps({"choices": [], "usage": {"total_tokens": "lots"}})
        frame = decode_frame(raw)
        assert isinstance(frame, StreamChunk)
        assert frame.usage is None

    def test_content_parts_are_joined(self):
        frame = decode_frame(_payload(content=[
            {"type": "text", "text": "Hi"},
            {"type": "image_url", "image_url": {"url": "https://x/1.png"}},
            {"type": "text", "text": " there"},
        ]))
        assert isinstance(frame, StreamChunk)
        assert frame.content_delta == "Hi there"

    def test_non_text_content_is_skipped(self):
        for content in (5, {"text": "Hi"}, True):
            frame = decode_frame(_payload(content=content))
            assert isinstance(frame, SkippedFrame)
            assert frame.reason == "content is not text"


class TestToolCallAccumulator:
    def test_single_tool_call_single_fragment(self):
        acc = ToolCallAccumulator()
        acc.feed(ToolCallFragment(index=0, call_id="c1", name="echo", arguments_delta='{"text": "hi"}'))
        result = acc.finalize()

        assert len(result) == 1
        assert result[0] == ToolCall(id="c1", name="echo", arguments='{"text": "hi"}')

    def test_arguments_accumulated_across_fragments(self):
        acc = ToolCallAccumulator()
        acc.feed(ToolCallFragment(index=0, call_id="c1", name="echo", arguments_delta='{"te'))
        acc.feed(ToolCallFragment(index=0, arguments_delta='xt": "hi"}'))
        result = acc.finalize()

        assert result[0].arguments == '{"text": "hi"}'

    def test_multiple_concurrent_tool_calls(self):
        acc = ToolCallAccumulator()
        acc.feed(ToolCallFragment(index=0, call_id="c1", name="foo", arguments_delta='{"a":'))
        acc.feed(ToolCallFragment(index=1, call_id="c2", name="bar", arguments_delta='{"b":'))
        acc.feed(ToolCallFragment(index=0, arguments_delta=' 1}'))
        acc.feed(ToolCallFragment(index=1, arguments_delta=' 2}'))
        result = acc.finalize()

        assert len(result) == 2
        assert result[0] == ToolCall(id="c1", name="foo", arguments='{"a": 1}')
        assert result[1] == ToolCall(id="c2", name="bar", arguments='{"b": 2}')

    def test_finalize_returns_index_order(self):
        acc = ToolCallAccumulator()
        acc.feed(ToolCallFragment(index=2, call_id="c3", name="c"))
        acc.feed(ToolCallFragment(index=0, call_id="c1", name="a"))
        acc.feed(ToolCallFragment(index=1, call_id="c2", name="b"))
        result = acc.finalize()

        assert [tc.name for tc in result] == ["a", "b", "c"]

    def test_empty_accumulator(self):
        acc = ToolCallAccumulator()
        assert acc.finalize() == []
