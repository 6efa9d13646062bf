import logging
from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..enums import DesignType, WelcomeType
from ..models import ChatbotConfig, EmbedDesign, EmbedDesignComponent
from ..schemas.embed import EmbedDesignCreate, EmbedDesignUpdate

logger = logging.getLogger(__name__)

DEFAULT_COMPONENTS = (
    ("welcome_section", True),
    ("chat_messages", True),
    ("input_field", True),
    ("feedback_buttons", False),
    ("typing_indicator", True),
)

_DESIGN_DEFAULTS = {
    "design_type": DesignType.MINIMAL,
    "primary_color": "#2563eb",
    "background_color": "#ffffff",
    "text_color": "#1f2937",
    "welcome_type": WelcomeType.TEXT,
    "input_placeholder": "Type your message...",
    "show_avatar": True,
    "show_timestamp": False,
    "hide_branding": False,
    "is_active": True,
}


def _payload_values(payload: EmbedDesignCreate | EmbedDesignUpdate) -> Dict[str, Any]:
    values = payload.model_dump(exclude_unset=True)
    if payload.cta_config is not None:
        values["cta_config"] = payload.cta_config.model_dump(exclude_none=True)
    return values


def create_embed_design(db: Session, chatbot: ChatbotConfig, payload: EmbedDesignCreate) -> EmbedDesign:
    values = {**_DESIGN_DEFAULTS, **{k: v for k, v in _payload_values(payload).items() if v is not None}}
    values.setdefault("name", f"Embed {date.today().isoformat()}")
    design = EmbedDesign(chatbot_config_id=chatbot.id, **values)
    design.components = [
        EmbedDesignComponent(component_name=name, is_visible=visible, display_order=order)
        for order, (name, visible) in enumerate(DEFAULT_COMPONENTS)
    ]
    db.add(design)
    db.commit()
    logger.info("Embed design created | chatbot=%s embed=%s", chatbot.guid, design.embed_id)
    return design


def update_embed_design(db: Session, design: EmbedDesign, payload: EmbedDesignUpdate) -> EmbedDesign:
    for key, value in _payload_values(payload).items():
        setattr(design, key, value)
    db.commit()
    return design


def set_component_visibility(
    db: Session,
    design: EmbedDesign,
    component_name: str,
    is_visible: bool,
    display_order: Optional[int] = None,
) -> EmbedDesignComponent:
    """Upsert one component row of a design."""

    component = next((c for c in design.components if c.component_name == component_name), None)
    if component is None:
        component = EmbedDesignComponent(
            component_name=component_name,
            display_order=display_order if display_order is not None else len(design.components),
        )
        design.components.append(component)
    component.is_visible = is_visible
    if display_order is not None:
        component.display_order = display_order
    db.commit()
    return component


def get_public_design(db: Session, embed_id: str) -> Optional[EmbedDesign]:
    design = db.query(EmbedDesign).filter(EmbedDesign.embed_id == embed_id).first()
    if not design or not design.is_active or not design.chatbot or not design.chatbot.is_active:
        return None
    return design


def public_embed_config(design: EmbedDesign) -> Dict[str, Any]:
    """Everything the embedded widget needs to render, keyed the way the widget reads it."""

    chatbot = design.chatbot
    return {
        "embedId": design.embed_id,
        "designType": design.design_type.value,
        "theme": {
            "primaryColor": design.primary_color,
            "backgroundColor": design.background_color,
            "textColor": design.text_color,
        },
        "ui": {
            "welcomeMessage": design.welcome_message or chatbot.welcome_message,
            "welcomeType": design.welcome_type.value,
            "inputPlaceholder": design.input_placeholder,
            "showAvatar": design.show_avatar,
            "showTimestamp": design.show_timestamp,
            "hideBranding": design.hide_branding,
            "customCss": design.custom_css,
            "avatarUrl": chatbot.avatar_url,
            "chatbotName": chatbot.name,
        },
        "components": [
            {
                "name": component.component_name,
                "visible": component.is_visible,
                "order": component.display_order,
            }
            for component in sorted(design.components, key=lambda c: c.display_order)
        ],
        "chatbotConfigId": chatbot.id,
        "chatbotGuid": chatbot.guid,
        "chatbotName": chatbot.name,
        "ctaConfig": design.cta_config,
    }
