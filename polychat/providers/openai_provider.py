import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from openai import AsyncOpenAI

from .base import ChatMessage, StreamChunk, estimate_tokens

logger = logging.getLogger(__name__)


class OpenAIProvider:
    """Chat completions streamed from the OpenAI API."""

    name = "openai"

    def __init__(
        self,
        api_key: Optional[str],
        config: Optional[Dict[str, Any]] = None,
        client: Optional[Any] = None,
    ):
        self.config = config or {}
        self.display_name = self.config.get("display_name", "OpenAI")
        self.models: List[str] = list(self.config.get("models", []))
        self._api_key = api_key
        self.client = client
        if self.client is None and api_key:
            self.client = AsyncOpenAI(api_key=api_key)

    def is_available(self) -> bool:
        return bool(self._api_key)

    async def stream_completion(
        self, history: List[ChatMessage], model: str
    ) -> AsyncIterator[StreamChunk]:
        if not self.is_available() or self.client is None:
            yield StreamChunk.failed("OpenAI API key not configured")
            return

        full_content = ""
        tokens_used = 0
        try:
            stream = await self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": m["role"], "content": m["content"]} for m in history
                ],
                stream=True,
                stream_options={"include_usage": True},
                **self.config.get("generation_params", {}),
            )
            async for chunk in stream:
                if chunk.choices:
                    delta = chunk.choices[0].delta
                    if delta is not None and delta.content:
                        full_content += delta.content
                        yield StreamChunk.token(delta.content)

                # Only the last chunk carries usage when include_usage is set
                usage = getattr(chunk, "usage", None)
                if usage is not None and usage.total_tokens:
                    tokens_used = usage.total_tokens
        except Exception as e:
            logger.error(f"OpenAI streaming error for model {model}: {str(e)}")
            yield StreamChunk.failed(str(e) or "OpenAI API error")
            return

        yield StreamChunk.done(tokens_used or estimate_tokens(full_content))
