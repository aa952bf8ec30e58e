import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from google import genai
from google.genai import types

from .base import ChatMessage, StreamChunk, estimate_tokens, split_system_instruction
from ..utils.message_utils import merge_consecutive_roles

logger = logging.getLogger(__name__)


def to_gemini_contents(turns: List[ChatMessage]) -> List[Dict[str, Any]]:
    """Map user/assistant turns to Gemini's user/model contents"""
    mapped = [
        {
            "role": "model" if m["role"] == "assistant" else "user",
            "content": m["content"],
        }
        for m in turns
    ]
    return [
        {"role": m["role"], "parts": [{"text": m["content"]}]}
        for m in merge_consecutive_roles(mapped)
    ]


class GeminiProvider:
    """Content generation streamed from the Gemini API.

    Gemini takes system prompts through ``system_instruction`` rather than
    as a message, so system entries are lifted out of the history.
    """

    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str],
        config: Optional[Dict[str, Any]] = None,
        client: Optional[Any] = None,
    ):
        self.config = config or {}
        self.display_name = self.config.get("display_name", "Google Gemini")
        self.models: List[str] = list(self.config.get("models", []))
        self.default_model = self.config.get("default_model", "gemini-2.5-flash")
        self._api_key = api_key
        self.client = client
        if self.client is None and api_key:
            self.client = genai.Client(api_key=api_key)

    def is_available(self) -> bool:
        return bool(self._api_key)

    def _build_config(self, system_instruction: Optional[str]):
        params = dict(self.config.get("generation_params", {}))
        if system_instruction:
            params["system_instruction"] = system_instruction
        return types.GenerateContentConfig(**params) if params else None

    async def stream_completion(
        self, history: List[ChatMessage], model: str
    ) -> AsyncIterator[StreamChunk]:
        if not self.is_available() or self.client is None:
            yield StreamChunk.failed("Gemini API key not configured")
            return

        system_instruction, turns = split_system_instruction(history)
        full_content = ""
        tokens_used = 0
        try:
            stream = await self.client.aio.models.generate_content_stream(
                model=model or self.default_model,
                contents=to_gemini_contents(turns),
                config=self._build_config(system_instruction),
            )
            async for chunk in stream:
                text = chunk.text
                if text:
                    full_content += text
                    yield StreamChunk.token(text)

                usage = getattr(chunk, "usage_metadata", None)
                if usage is not None and usage.total_token_count:
                    tokens_used = usage.total_token_count
        except Exception as e:
            logger.error(f"Gemini streaming error for model {model}: {str(e)}")
            yield StreamChunk.failed(str(e) or "Gemini API error")
            return

        yield StreamChunk.done(tokens_used or estimate_tokens(full_content))
