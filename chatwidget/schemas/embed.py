from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..enums import DesignType, WelcomeType


class CTAComponent(BaseModel):
    id: str
    type: str
    order: int = 0
    props: Dict[str, Any] = Field(default_factory=dict)
    style: Optional[Dict[str, Any]] = None
    visible: bool = True


class CTAConfig(BaseModel):
    version: str = "1.0"
    enabled: bool = False
    components: List[CTAComponent] = Field(default_factory=list)
    layout: Optional[Dict[str, Any]] = None
    theme: Optional[Dict[str, Any]] = None
    settings: Optional[Dict[str, Any]] = None


class EmbedDesignBase(BaseModel):
    description: Optional[str] = None
    design_type: Optional[DesignType] = None
    primary_color: Optional[str] = Field(None, max_length=32)
    background_color: Optional[str] = Field(None, max_length=32)
    text_color: Optional[str] = Field(None, max_length=32)
    welcome_message: Optional[str] = None
    welcome_type: Optional[WelcomeType] = None
    input_placeholder: Optional[str] = Field(None, max_length=255)
    show_avatar: Optional[bool] = None
    show_timestamp: Optional[bool] = None
    hide_branding: Optional[bool] = None
    custom_css: Optional[str] = None
    cta_config: Optional[CTAConfig] = None
    is_active: Optional[bool] = None


class EmbedDesignCreate(EmbedDesignBase):
    name: Optional[str] = Field(None, max_length=255)


class EmbedDesignUpdate(EmbedDesignBase):
    name: Optional[str] = Field(None, min_length=1, max_length=255)

    @field_validator(
        "name",
        "design_type",
        "primary_color",
        "background_color",
        "text_color",
        "welcome_type",
        "input_placeholder",
        "show_avatar",
        "show_timestamp",
        "hide_branding",
        "is_active",
        mode="before",
    )
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class EmbedComponentRead(BaseModel):
    component_name: str
    is_visible: bool
    display_order: int

    model_config = ConfigDict(from_attributes=True)


class EmbedDesignRead(BaseModel):
    id: int
    embed_id: str
    chatbot_config_id: int
    name: str
    description: Optional[str]
    design_type: DesignType
    primary_color: str
    background_color: str
    text_color: str
    welcome_message: Optional[str]
    welcome_type: WelcomeType
    input_placeholder: str
    show_avatar: bool
    show_timestamp: bool
    hide_branding: bool
    custom_css: Optional[str]
    cta_config: Optional[Dict[str, Any]]
    is_active: bool
    components: List[EmbedComponentRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ComponentVisibilityUpdate(BaseModel):
    is_visible: bool = Field(..., alias="isVisible")
    display_order: Optional[int] = Field(None, alias="displayOrder")

    model_config = ConfigDict(populate_by_name=True)
