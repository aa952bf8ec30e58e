from .chat_service import ChatService, ChatTurn
from .message_service import MessageService
from .session_service import SessionService
from .user_service import UserService

__all__ = [
    "ChatService",
    "ChatTurn",
    "MessageService",
    "SessionService",
    "UserService",
]
