from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import MessageRole


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class UserResponse(CamelModel):
    id: str
    username: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class SessionCreate(CamelModel):
    title: str = Field("New Chat", min_length=1, max_length=200)
    provider: str = Field(..., min_length=1, max_length=50)
    model: str = Field(..., min_length=1, max_length=100)


class SessionUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    provider: Optional[str] = Field(None, min_length=1, max_length=50)
    model: Optional[str] = Field(None, min_length=1, max_length=100)

    @field_validator("title", "provider", "model")
    @classmethod
    def not_null(cls, value: Optional[str]) -> str:
        # Omit a field to leave it unchanged; null is not a value for it
        if value is None:
            raise ValueError("must not be null")
        return value


class SessionResponse(CamelModel):
    id: str
    user_id: str
    title: str
    provider: str
    model: str
    created_at: datetime
    updated_at: datetime


class MessageCreate(CamelModel):
    content: str = Field(..., min_length=1, description="The message sent by the user")
    provider: str = Field(..., min_length=1, description="Name of the provider to use")
    model: str = Field(..., min_length=1, description="Model identifier")


class MessageResponse(CamelModel):
    id: str
    session_id: str
    role: MessageRole
    content: str
    provider: str
    model: str
    tokens_used: Optional[int] = None
    message_metadata: Optional[Dict[str, Any]] = Field(
        None, serialization_alias="metadata"
    )
    created_at: datetime


class SessionWithMessagesResponse(SessionResponse):
    messages: List[MessageResponse] = []


class ProviderInfo(CamelModel):
    name: str
    display_name: str
    models: List[str]


class DeleteResponse(BaseModel):
    success: bool


class HealthResponse(BaseModel):
    status: str
