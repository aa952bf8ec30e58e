import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..dependencies import get_registry
from ..providers.registry import ProviderRegistry
from ..schemas import HealthResponse, UserResponse
from ..services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["base"])


@router.get("/")
async def root():
    return {"message": "Welcome to Polychat API"}


@router.get("/api/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok")


@router.get("/api/providers")
async def get_providers(
    registry: ProviderRegistry = Depends(get_registry),
) -> Dict[str, Dict[str, Any]]:
    """Providers configured at startup, keyed by name"""
    return registry.describe()


@router.get("/api/user", response_model=UserResponse)
async def get_user(db: AsyncSession = Depends(get_db)):
    """Get the current (demo) user, creating it on first access"""
    try:
        return await UserService(db).get_or_create_default_user()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching user: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch user")
