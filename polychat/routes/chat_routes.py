import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..dependencies import get_chat_service
from ..exceptions import NotFoundError, ProviderUnavailableError, SessionBusyError
from ..schemas import (
    DeleteResponse,
    MessageCreate,
    MessageResponse,
    SessionCreate,
    SessionResponse,
    SessionUpdate,
    SessionWithMessagesResponse,
)
from ..services.chat_service import ChatService
from ..services.message_service import MessageService
from ..services.session_service import SessionService
from ..services.user_service import UserService
from ..streaming.codec import EVENT_STREAM_HEADERS, MEDIA_TYPE

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/sessions",
    tags=["chat"],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=List[SessionResponse])
async def get_sessions(db: AsyncSession = Depends(get_db)):
    """Get all sessions for the current user, most recent first"""
    try:
        user = await UserService(db).get_or_create_default_user()
        return await SessionService(db).get_user_sessions(user.id)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching sessions: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch sessions")


@router.get("/{session_id}", response_model=SessionWithMessagesResponse)
async def get_session(session_id: str, db: AsyncSession = Depends(get_db)):
    try:
        session = await SessionService(db).get_session_with_messages(session_id)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching session: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch session")
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


@router.post("", response_model=SessionResponse)
async def create_session(payload: SessionCreate, db: AsyncSession = Depends(get_db)):
    try:
        user = await UserService(db).get_or_create_default_user()
        return await SessionService(db).create_session(
            user_id=user.id,
            title=payload.title,
            provider=payload.provider,
            model=payload.model,
        )
    except SQLAlchemyError as e:
        logger.error(f"Error creating session: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create session")


@router.patch("/{session_id}", response_model=SessionResponse)
async def update_session(
    session_id: str, payload: SessionUpdate, db: AsyncSession = Depends(get_db)
):
    """Update only the fields present in the body"""
    try:
        return await SessionService(db).update_session(
            session_id, **payload.model_dump(exclude_unset=True)
        )
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    except SQLAlchemyError as e:
        logger.error(f"Error updating session: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update session")


@router.delete("/{session_id}", response_model=DeleteResponse)
async def delete_session(session_id: str, db: AsyncSession = Depends(get_db)):
    """Delete a session and its messages"""
    try:
        deleted = await SessionService(db).delete_session(session_id)
    except SQLAlchemyError as e:
        logger.error(f"Error deleting session: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to delete session")
    if not deleted:
        raise HTTPException(status_code=404, detail="Session not found")
    return DeleteResponse(success=True)


@router.get("/{session_id}/messages", response_model=List[MessageResponse])
async def get_session_messages(session_id: str, db: AsyncSession = Depends(get_db)):
    """Get all messages for a session in creation order"""
    try:
        return await MessageService(db).get_session_messages(session_id)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching messages: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch messages")


@router.post("/{session_id}/messages")
async def send_message(
    session_id: str,
    payload: MessageCreate,
    db: AsyncSession = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service),
):
    """Send a message and stream the answer as server-sent events.

    Errors found before streaming starts are ordinary JSON responses; once
    the stream is open, failures arrive as an ``error`` event.
    """
    try:
        turn = await chat_service.begin_turn(
            db,
            session_id=session_id,
            content=payload.content,
            provider=payload.provider,
            model=payload.model,
        )
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    except ProviderUnavailableError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SQLAlchemyError as e:
        logger.error(f"Error in message endpoint: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to process message")

    return StreamingResponse(
        chat_service.stream_turn(turn),
        media_type=MEDIA_TYPE,
        headers=EVENT_STREAM_HEADERS,
    )
