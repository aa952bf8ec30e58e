from fastapi import Request

from .providers.registry import ProviderRegistry
from .services.chat_service import ChatService


def get_registry(request: Request) -> ProviderRegistry:
    return request.app.state.registry


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service
