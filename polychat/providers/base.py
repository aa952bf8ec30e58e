import logging
import math
from dataclasses import dataclass
from typing import (
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
    Tuple,
    runtime_checkable,
)

from ..exceptions import ProviderError

logger = logging.getLogger(__name__)

# Characters per token when the vendor does not report usage
TOKEN_ESTIMATE_DIVISOR = 4

ChatMessage = Dict[str, str]


@dataclass(frozen=True)
class StreamChunk:
    """One item of a provider stream.

    ``token`` chunks carry ``content``; a stream ends with exactly one
    ``done`` chunk (with ``tokens_used``) or one ``error`` chunk.
    """

    type: str
    content: Optional[str] = None
    error: Optional[str] = None
    tokens_used: Optional[int] = None

    @classmethod
    def token(cls, content: str) -> "StreamChunk":
        return cls(type="token", content=content)

    @classmethod
    def done(cls, tokens_used: int) -> "StreamChunk":
        return cls(type="done", tokens_used=tokens_used)

    @classmethod
    def failed(cls, error: str) -> "StreamChunk":
        return cls(type="error", error=error)

    @property
    def is_terminal(self) -> bool:
        return self.type in ("done", "error")


@dataclass(frozen=True)
class ProviderResponse:
    content: str
    tokens_used: int
    model: str


@runtime_checkable
class ProviderAdapter(Protocol):
    """Capability every provider variant offers."""

    name: str
    display_name: str
    models: List[str]

    def is_available(self) -> bool:
        """True when the provider's credential is configured. Never raises."""
        ...

    def stream_completion(
        self, history: List[ChatMessage], model: str
    ) -> AsyncIterator[StreamChunk]:
        """Yield token chunks followed by one terminal chunk."""
        ...


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / TOKEN_ESTIMATE_DIVISOR)


def split_system_instruction(
    history: List[ChatMessage],
) -> Tuple[Optional[str], List[ChatMessage]]:
    """Separate system entries from the conversational turns"""
    system = [m["content"] for m in history if m["role"] == "system"]
    turns = [m for m in history if m["role"] != "system"]
    return ("\n".join(system) if system else None), turns


async def stream_chat(
    adapter: ProviderAdapter,
    history: List[ChatMessage],
    model: str,
    on_chunk: Callable[[StreamChunk], Awaitable[None]],
) -> ProviderResponse:
    """Drive a provider stream, forwarding every chunk to ``on_chunk``.

    Returns the full response once the provider reports ``done``. Raises
    ProviderError when the stream ends with ``error`` or without any
    terminal chunk, so an empty or broken stream is never a success.
    """
    if not history:
        raise ValueError("History must contain at least one message")

    content = ""
    async for chunk in adapter.stream_completion(history, model):
        await on_chunk(chunk)
        if chunk.type == "token" and chunk.content:
            content += chunk.content
        elif chunk.type == "error":
            raise ProviderError(chunk.error or f"{adapter.name} API error")
        elif chunk.type == "done":
            tokens_used = chunk.tokens_used or estimate_tokens(content)
            return ProviderResponse(
                content=content, tokens_used=tokens_used, model=model
            )

    logger.error(f"Provider {adapter.name} stream ended without a terminal chunk")
    raise ProviderError(f"{adapter.name} stream ended unexpectedly")
