from .streaming import ChatStreamClient, StreamState

__all__ = ["ChatStreamClient", "StreamState"]
