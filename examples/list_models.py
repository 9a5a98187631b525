"""Print the OpenRouter model catalog with per-1K-token prices.

Usage:
    uv run --env-file=.env examples/list_models.py [filter]
"""

import asyncio
import sys

from chatstream import CompletionError, OpenRouter


async def main(needle: str = ""):
    provider = OpenRouter()
    try:
        models = await provider.fetch_models()
    except CompletionError as e:
        print(f"Could not fetch models: {e.message}")
        return
    finally:
        await provider.aclose()

    for model in models:
        if needle.lower() not in model.id.lower():
            continue
        print(
            f"{model.id:<50} {model.context_length:>8} ctx  "
            f"in {model.formatted_price_prompt}  out {model.formatted_price_completion}"
        )


if __name__ == "__main__":
    asyncio.run(main(*sys.argv[1:2]))
