import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .message_service import MessageService
from .session_service import SessionService, derive_title
from ..exceptions import (
    NotFoundError,
    ProviderError,
    ProviderUnavailableError,
    SessionBusyError,
)
from ..models import Message, MessageRole
from ..providers.base import ChatMessage, ProviderAdapter, StreamChunk, stream_chat
from ..providers.registry import ProviderRegistry
from ..schemas import MessageResponse
from ..streaming.codec import done_event, error_event, message_event, token_event

logger = logging.getLogger(__name__)


def serialize_message(message: Message) -> Dict[str, Any]:
    response = MessageResponse.model_validate(message)
    return response.model_dump(mode="json", by_alias=True)


@dataclass
class ChatTurn:
    """One send: the user's persisted message and its generation in flight"""

    session_id: str
    content: str
    provider: str
    model: str
    adapter: ProviderAdapter
    history: List[ChatMessage]
    user_message: Dict[str, Any]
    is_first_exchange: bool
    queue: "asyncio.Queue[Optional[str]]" = field(default_factory=asyncio.Queue)
    task: Optional["asyncio.Task[None]"] = None


class ChatService:
    """Runs a chat turn from the incoming user message to the saved answer.

    A turn moves through: received (session and provider checked), user
    message persisted, generating (tokens relayed as they arrive),
    completing (assistant message saved, title derived on the first
    exchange) and ends either persisted or failed. Generation runs in its
    own task with its own database session and feeds encoded events to a
    queue that the HTTP response drains.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        session_factory: async_sessionmaker,
        title_max_length: int = 50,
        persist_on_disconnect: bool = True,
        session_lock_enabled: bool = False,
    ):
        self.registry = registry
        self.session_factory = session_factory
        self.title_max_length = title_max_length
        self.persist_on_disconnect = persist_on_disconnect
        self.session_lock_enabled = session_lock_enabled
        self._tasks: Set[asyncio.Task] = set()
        self._in_flight: Set[str] = set()

    async def begin_turn(
        self,
        db: AsyncSession,
        session_id: str,
        content: str,
        provider: str,
        model: str,
    ) -> ChatTurn:
        """Validate the request, persist the user message and start generating.

        Raises NotFoundError, ProviderUnavailableError or SessionBusyError
        before anything is written.
        """
        session = await SessionService(db).get_session(session_id)
        if session is None:
            raise NotFoundError("Session not found")

        adapter = self.registry.get(provider)
        if adapter is None:
            raise ProviderUnavailableError(provider)

        if self.session_lock_enabled:
            if session_id in self._in_flight:
                raise SessionBusyError(session_id)
            self._in_flight.add(session_id)

        try:
            message_service = MessageService(db)
            prior_messages = await message_service.get_session_messages(session_id)
            user_message = await message_service.create_message(
                session_id=session_id,
                role=MessageRole.USER,
                content=content,
                provider=provider,
                model=model,
            )
        except BaseException:
            self._in_flight.discard(session_id)
            raise

        history = MessageService.to_history(prior_messages)
        history.append({"role": MessageRole.USER.value, "content": content})

        turn = ChatTurn(
            session_id=session_id,
            content=content,
            provider=provider,
            model=model,
            adapter=adapter,
            history=history,
            user_message=serialize_message(user_message),
            is_first_exchange=not prior_messages,
        )
        turn.task = asyncio.create_task(self._generate(turn))
        self._tasks.add(turn.task)
        turn.task.add_done_callback(self._tasks.discard)
        logger.info(
            f"Generating response for session {session_id} with {provider}/{model}"
        )
        return turn

    async def stream_turn(self, turn: ChatTurn) -> AsyncIterator[str]:
        """Encoded events for the response body, user message first"""
        try:
            yield message_event(turn.user_message)
            while True:
                frame = await turn.queue.get()
                if frame is None:
                    break
                yield frame
        finally:
            if turn.task is not None and not turn.task.done():
                if self.persist_on_disconnect:
                    logger.info(
                        f"Client left session {turn.session_id}; generation continues"
                    )
                else:
                    logger.info(
                        f"Client left session {turn.session_id}; cancelling generation"
                    )
                    turn.task.cancel()

    async def drain(self) -> None:
        """Wait for generations still running, e.g. at shutdown"""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _generate(self, turn: ChatTurn) -> None:
        async def relay(chunk: StreamChunk) -> None:
            if chunk.type == "token" and chunk.content:
                await turn.queue.put(token_event(chunk.content))

        try:
            try:
                response = await stream_chat(
                    turn.adapter, turn.history, turn.model, relay
                )
            except ProviderError as e:
                logger.error(f"Streaming error in session {turn.session_id}: {str(e)}")
                await turn.queue.put(error_event(str(e)))
                return

            try:
                assistant_message = await self._complete(
                    turn, response.content, response.tokens_used
                )
            except NotFoundError as e:
                logger.warning(f"Not saving response: {str(e)}")
                await turn.queue.put(error_event(str(e)))
                return
            except SQLAlchemyError as e:
                logger.error(f"Failed to save response for {turn.session_id}: {str(e)}")
                await turn.queue.put(error_event("Failed to save response"))
                return

            await turn.queue.put(message_event(assistant_message))
            await turn.queue.put(done_event())
        except Exception as e:
            logger.exception(f"Unexpected error in session {turn.session_id}: {str(e)}")
            await turn.queue.put(error_event("Failed to generate response"))
        finally:
            self._in_flight.discard(turn.session_id)
            turn.queue.put_nowait(None)

    async def _complete(
        self, turn: ChatTurn, content: str, tokens_used: int
    ) -> Dict[str, Any]:
        """Persist the assistant message and derive the title if needed"""
        async with self.session_factory() as db:
            session_service = SessionService(db)
            # The session may have been deleted while we were generating
            if await session_service.get_session(turn.session_id) is None:
                raise NotFoundError("Session was deleted during generation")

            assistant_message = await MessageService(db).create_message(
                session_id=turn.session_id,
                role=MessageRole.ASSISTANT,
                content=content,
                provider=turn.provider,
                model=turn.model,
                tokens_used=tokens_used,
            )
            if turn.is_first_exchange:
                await session_service.update_session(
                    turn.session_id,
                    title=derive_title(turn.content, self.title_max_length),
                )
            return serialize_message(assistant_message)
