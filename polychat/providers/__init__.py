from .base import ProviderAdapter, ProviderResponse, StreamChunk, stream_chat
from .registry import ProviderRegistry, build_registry

__all__ = [
    "ProviderAdapter",
    "ProviderResponse",
    "ProviderRegistry",
    "StreamChunk",
    "build_registry",
    "stream_chat",
]
