from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class _WidgetPayload(BaseModel):
    """Widget-facing bodies use the camelCase keys the embed script sends."""

    model_config = ConfigDict(populate_by_name=True)


class SessionCreateRequest(_WidgetPayload):
    session_id: str = Field(..., alias="sessionId", min_length=1, max_length=255)
    chatbot_config_id: Optional[int] = Field(None, alias="chatbotConfigId")


class StreamMessageRequest(_WidgetPayload):
    content: str = Field(..., min_length=1)
    chatbot_config_id: Optional[int] = Field(None, alias="chatbotConfigId")
    internal_message: bool = Field(False, alias="internalMessage")


class SelectOptionRequest(_WidgetPayload):
    option_id: str = Field(..., alias="optionId")
    payload: Any = None
    option_text: Optional[str] = Field(None, alias="optionText")


class FormSubmissionRequest(_WidgetPayload):
    # Shape checked by the route so a non-list answers 400 instead of 422.
    form_data: Any = Field(None, alias="formData")
    form_title: Optional[str] = Field(None, alias="formTitle")


class ContactRequest(_WidgetPayload):
    contact_type: str = Field(..., alias="contactType", pattern="^(sales|support)$")
    name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    company: Optional[str] = None
    message: str = Field(..., min_length=10, max_length=5000)
