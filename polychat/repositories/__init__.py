from .message import MessageRepository
from .session import SessionRepository
from .user import UserRepository

__all__ = ["MessageRepository", "SessionRepository", "UserRepository"]
