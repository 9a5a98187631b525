from collections.abc import AsyncIterator
import logging
import os
import time

import httpx
from pydantic import ValidationError

from chatstream.catalog import ModelInfo, ModelList
from chatstream.config import ClientConfig
from chatstream.errors import (
    CompletionError,
    InvalidResponseError,
    MissingAPIKeyError,
    NetworkError,
    classify_response,
    classify_transport_error,
)
from chatstream.instrumentation import completion_span, record_error, record_usage
from chatstream.request import CompletionRequest
from chatstream.response import ChatCompletion

logger = logging.getLogger(__name__)


class ModelProvider:
    """Transport the stream engine talks to.

    ``stream_text`` yields decoded body text as it arrives and raises a
    :class:`~chatstream.errors.CompletionError` for any non-200 status
    or transport failure.  It knows nothing about frames.
    """

    name = "generic"

    def stream_text(self, request: CompletionRequest) -> AsyncIterator[str]:
        raise NotImplementedError

    async def complete(self, request: CompletionRequest) -> ChatCompletion:
        raise NotImplementedError

    async def fetch_models(self) -> list[ModelInfo]:
        raise NotImplementedError

    async def aclose(self) -> None:
        pass


class OpenAICompatibleProvider(ModelProvider):
    """Any endpoint speaking the OpenAI ``/chat/completions`` protocol.

    Args:
        api_key: Bearer token.  Falls back to ``config.api_key``, then
            the environment variable named by ``api_key_env``.
        base_url: API root, e.g. ``https://host/v1``.
        config: Timeouts and attribution headers.
        client: Pre-built ``httpx.AsyncClient`` (tests inject one with a
            ``MockTransport``).  A client passed in is not closed by
            :meth:`aclose`.
    """

    name = "openai_compatible"
    default_base_url: str | None = None
    api_key_env: str | None = None

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        *,
        config: ClientConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.config = config or ClientConfig()
        if not api_key:
            api_key = self.config.api_key
        if not api_key and self.api_key_env:
            api_key = os.getenv(self.api_key_env)
        if not api_key:
            raise MissingAPIKeyError()
        self.api_key = api_key

        base_url = base_url or self.config.base_url or self.default_base_url
        if not base_url:
            raise ValueError(f"{type(self).__name__} needs a base_url")
        self.base_url = base_url.rstrip("/")

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.request_timeout),
        )

    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def stream_text(self, request: CompletionRequest) -> AsyncIterator[str]:
        """POST the request with ``stream: true`` and yield body text.

        Multi-byte characters split across network reads are
        reassembled by ``httpx`` before they are yielded.
        """
        payload = request.to_payload(stream=True)
        deadline = time.monotonic() + self.config.stream_timeout
        try:
            async with self.client.stream(
                "POST",
                self.url("/chat/completions"),
                json=payload,
                headers=self.headers(),
            ) as response:
                if response.status_code != 200:
                    body = await response.aread()
                    logger.warning(
                        f"{self.name} stream for {request.model} "
                        f"failed with HTTP {response.status_code}"
                    )
                    raise classify_response(response.status_code, response.headers, body)
                async for text in response.aiter_text():
                    if time.monotonic() > deadline:
                        raise NetworkError(
                            "Request timed out. Please try again.",
                            details={"stream_timeout": self.config.stream_timeout},
                        )
                    if text:
                        yield text
        except httpx.HTTPError as e:
            logger.warning(f"{self.name} transport error: {e!r}")
            raise classify_transport_error(e) from e

    async def complete(self, request: CompletionRequest) -> ChatCompletion:
        """Non-streaming completion."""
        async with completion_span(self.name, request.model) as span:
            try:
                response = await self._send(
                    "POST", "/chat/completions", json=request.to_payload(stream=False),
                )
                try:
                    completion = ChatCompletion.model_validate_json(response.content)
                except ValidationError as e:
                    raise InvalidResponseError(
                        details={"body": response.text[:500]}
                    ) from e
            except CompletionError as e:
                record_error(span, e)
                raise
            first = completion.choices[0].finish_reason if completion.choices else None
            record_usage(span, completion.usage, first)
            return completion

    async def fetch_models(self) -> list[ModelInfo]:
        response = await self._send("GET", "/models")
        try:
            models = ModelList.model_validate_json(response.content)
        except ValidationError as e:
            raise InvalidResponseError(details={"body": response.text[:500]}) from e
        logger.info(f"Fetched {len(models.data)} models from {self.name}")
        return models.data

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(
                method, self.url(path), headers=self.headers(), **kwargs
            )
        except httpx.HTTPError as e:
            logger.warning(f"{self.name} transport error: {e!r}")
            raise classify_transport_error(e) from e
        if response.status_code != 200:
            logger.warning(f"{self.name} {method} {path} returned HTTP {response.status_code}")
            raise classify_response(response.status_code, response.headers, response.content)
        return response


class OpenRouter(OpenAICompatibleProvider):
    name = "openrouter"
    default_base_url = "https://openrouter.ai/api/v1"
    api_key_env = "OPENROUTER_API_KEY"

    def headers(self) -> dict[str, str]:
        headers = super().headers()
        if self.config.app_referer:
            headers["HTTP-Referer"] = self.config.app_referer
        if self.config.app_title:
            headers["X-Title"] = self.config.app_title
        return headers


class OpenAIProvider(OpenAICompatibleProvider):
    name = "openai"
    default_base_url = "https://api.openai.com/v1"
    api_key_env = "OPENAI_API_KEY"


class VLLMProvider(OpenAICompatibleProvider):
    """Local vLLM server; it ignores the bearer token."""

    name = "vllm"

    def __init__(self, url: str, port: int, **kwargs):
        kwargs.setdefault("api_key", "DUMMY")
        super().__init__(base_url=f"http://{url}:{port}/v1", **kwargs)
