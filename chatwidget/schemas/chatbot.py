from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class HomeScreenComponent(BaseModel):
    id: str
    type: Literal["header", "category_tabs", "topic_grid", "quick_actions", "footer"]
    props: Dict[str, Any] = Field(default_factory=dict)
    order: int
    visible: bool = True


class HomeScreenConfig(BaseModel):
    version: Literal["1.0"] = "1.0"
    components: List[HomeScreenComponent] = Field(default_factory=list)
    theme: Optional[Dict[str, Any]] = None
    settings: Optional[Dict[str, Any]] = None


class ChatbotBase(BaseModel):
    description: Optional[str] = None
    avatar_url: Optional[str] = None
    system_prompt: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[int] = Field(None, ge=0, le=10)
    max_tokens: Optional[int] = Field(None, ge=1, le=16000)
    is_active: Optional[bool] = None
    welcome_message: Optional[str] = None
    fallback_message: Optional[str] = None
    initial_messages: Optional[List[str]] = None
    background_image_url: Optional[str] = None
    form_recipient_email: Optional[EmailStr] = None
    form_recipient_name: Optional[str] = None
    sender_email: Optional[EmailStr] = None
    sender_name: Optional[str] = None
    form_confirmation_message: Optional[str] = None


class ChatbotCreate(ChatbotBase):
    name: str = Field(..., min_length=1, max_length=255)
    home_screen_config: Optional[HomeScreenConfig] = None


class ChatbotUpdate(ChatbotBase):
    name: Optional[str] = Field(None, min_length=1, max_length=255)

    @field_validator("name", "system_prompt", "temperature", "max_tokens", "is_active", "initial_messages", mode="before")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class ChatbotRead(BaseModel):
    id: int
    guid: str
    name: str
    description: Optional[str]
    avatar_url: Optional[str]
    system_prompt: str
    model: Optional[str]
    temperature: int
    max_tokens: int
    is_active: bool
    welcome_message: Optional[str]
    fallback_message: Optional[str]
    home_screen_config: Optional[Dict[str, Any]]
    initial_messages: List[str] = Field(default_factory=list)
    background_image_url: Optional[str]
    form_recipient_email: Optional[str]
    form_recipient_name: Optional[str]
    sender_email: Optional[str]
    sender_name: Optional[str]
    form_confirmation_message: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChatbotPublic(BaseModel):
    """Fields safe to expose to anonymous widget visitors."""

    id: int
    guid: str
    name: str
    description: Optional[str]
    avatar_url: Optional[str]
    welcome_message: Optional[str]
    home_screen_config: Optional[Dict[str, Any]]
    initial_messages: List[str] = Field(default_factory=list)
    background_image_url: Optional[str]
    is_active: bool
    has_contact_form: bool = False

    model_config = ConfigDict(from_attributes=True)
