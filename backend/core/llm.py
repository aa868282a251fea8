import asyncio
import logging
from typing import AsyncIterator, Optional

import httpx
from langsmith import traceable
from ollama import AsyncClient, RequestError, ResponseError

from backend.core.config import config
from backend.core.handoff.errors import UpstreamStreamFailure
from backend.core.tracing_config import get_metadata

logger = logging.getLogger("intake_llm")

UPSTREAM_ERRORS = (ResponseError, RequestError, ConnectionError, httpx.HTTPError)
# a chunk without message.content
MALFORMED_REPLY_ERRORS = (KeyError, TypeError)


class OllamaCloudLLM:
    """Upstream conversational engine. Streams the agent's raw reply text."""

    def __init__(
        self,
        model_name: Optional[str] = None,
        host: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        temperature: Optional[float] = None,
    ):
        self.model_name = model_name or config.INTAKE_MODEL
        self.timeout = timeout or config.UPSTREAM_TIMEOUT
        self.temperature = config.LLM_TEMPERATURE if temperature is None else temperature

        api_key = api_key or config.OLLAMA_API_KEY
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else None
        if not api_key:
            logger.warning("OLLAMA_API_KEY not set, calling %s without auth", host or config.OLLAMA_BASE_URL)

        self.client = AsyncClient(host=host or config.OLLAMA_BASE_URL, headers=headers, timeout=self.timeout)

    def _options(self) -> dict:
        return {"temperature": self.temperature}

    @traceable(run_type="llm", name="intake_stream_reply", metadata=get_metadata("intake_llm", stream=True))
    async def stream_reply(self, messages: list[dict], model: Optional[str] = None) -> AsyncIterator[str]:
        """Yields raw text fragments of one agent turn."""
        try:
            stream = await self.client.chat(
                model=model or self.model_name,
                messages=messages,
                stream=True,
                options=self._options(),
            )
            async for chunk in stream:
                content = chunk["message"]["content"]
                if content:
                    yield content
        except UPSTREAM_ERRORS as e:
            logger.error("Upstream stream failed: %s", e)
            raise UpstreamStreamFailure(str(e)) from e
        except MALFORMED_REPLY_ERRORS as e:
            logger.error("Upstream stream chunk malformed: %r", e)
            raise UpstreamStreamFailure(f"malformed chunk: {e!r}") from e

    @traceable(run_type="llm", name="intake_reply", metadata=get_metadata("intake_llm", stream=False))
    async def reply(self, messages: list[dict], model: Optional[str] = None) -> str:
        """Complete (non-streaming) agent turn, bounded by the upstream timeout."""
        try:
            response = await asyncio.wait_for(
                self.client.chat(model=model or self.model_name, messages=messages, options=self._options()),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamStreamFailure(f"upstream timed out after {self.timeout}s") from e
        except UPSTREAM_ERRORS as e:
            logger.error("Upstream call failed: %s", e)
            raise UpstreamStreamFailure(str(e)) from e
        try:
            return response["message"]["content"] or ""
        except MALFORMED_REPLY_ERRORS as e:
            raise UpstreamStreamFailure(f"malformed reply: {e!r}") from e
