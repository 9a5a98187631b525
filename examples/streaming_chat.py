"""Streaming example: two replies side by side, one cancelled midway.

Demonstrates the callback API of ``StreamEngine``:
- Tokens are printed as they arrive, tagged with their stream id
- Each stream ends with exactly one completion or error callback
- Cancelling a stream silences it immediately; the other keeps going

Usage:
    Add OPENROUTER_API_KEY=sk-or-... to .env, then:
    uv run --env-file=.env examples/streaming_chat.py
"""

import asyncio
import logging

from chatstream import (
    ClientConfig,
    Message,
    OpenRouter,
    StreamEngine,
    build_request,
    configure_logging,
)

MODEL = "openai/gpt-4o-mini"


def printer(stream_id: str):
    def on_token(text):
        print(f"[{stream_id}] {text!r}")

    def on_complete(usage):
        tokens = usage.total_tokens if usage else "?"
        print(f"[{stream_id}] done ({tokens} tokens)")

    def on_error(error):
        print(f"[{stream_id}] failed: {error.message}")
        if error.suggestion:
            print(f"[{stream_id}] hint: {error.suggestion}")

    return {"on_token": on_token, "on_complete": on_complete, "on_error": on_error}


async def main():
    configure_logging(logging.INFO)
    config = ClientConfig.from_env(app_title="chatstream example")

    async with StreamEngine(OpenRouter(config=config)) as engine:
        poem = build_request(MODEL, [Message.user("Write a four-line poem about rivers.")])
        essay = build_request(
            MODEL,
            [
                Message.system("You are verbose."),
                Message.user("Explain the history of the printing press."),
            ],
            max_tokens=800,
        )

        poem_task = engine.start_stream(poem, "poem", **printer("poem"))
        essay_task = engine.start_stream(essay, "essay", **printer("essay"))

        await asyncio.sleep(2)
        engine.cancel_stream("essay")

        await poem_task
        await asyncio.gather(essay_task, return_exceptions=True)

        # The async iterator form, for a single reply.
        question = build_request(MODEL, [Message.user("What is 2 + 2?")])
        async for event in engine.stream(question):
            print(event)


if __name__ == "__main__":
    asyncio.run(main())
