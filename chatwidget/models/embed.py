import uuid

from sqlalchemy import JSON, Boolean, Column, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ..enums import DesignType, WelcomeType
from .base import Base, TimestampMixin


class EmbedDesign(TimestampMixin, Base):
    __tablename__ = "embed_designs"

    id = Column(Integer, primary_key=True)
    embed_id = Column(String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    chatbot_config_id = Column(
        Integer, ForeignKey("chatbot_configs.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    design_type = Column(
        Enum(DesignType, native_enum=False),
        nullable=False,
        default=DesignType.MINIMAL,
        server_default=DesignType.MINIMAL.name,
    )
    primary_color = Column(String(32), nullable=False, default="#2563eb")
    background_color = Column(String(32), nullable=False, default="#ffffff")
    text_color = Column(String(32), nullable=False, default="#1f2937")
    welcome_message = Column(Text, nullable=True)
    welcome_type = Column(
        Enum(WelcomeType, native_enum=False),
        nullable=False,
        default=WelcomeType.TEXT,
        server_default=WelcomeType.TEXT.name,
    )
    input_placeholder = Column(String(255), nullable=False, default="Type your message...")
    show_avatar = Column(Boolean, nullable=False, default=True)
    show_timestamp = Column(Boolean, nullable=False, default=False)
    hide_branding = Column(Boolean, nullable=False, default=False)
    custom_css = Column(Text, nullable=True)
    cta_config = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    chatbot = relationship("ChatbotConfig", back_populates="embed_designs")
    components = relationship(
        "EmbedDesignComponent",
        back_populates="design",
        cascade="all,delete-orphan",
        order_by="EmbedDesignComponent.display_order",
    )


class EmbedDesignComponent(TimestampMixin, Base):
    __tablename__ = "embed_design_components"
    __table_args__ = (UniqueConstraint("embed_design_id", "component_name"),)

    id = Column(Integer, primary_key=True)
    embed_design_id = Column(
        Integer, ForeignKey("embed_designs.id", ondelete="CASCADE"), nullable=False
    )
    component_name = Column(String(64), nullable=False)
    is_visible = Column(Boolean, nullable=False, default=True)
    display_order = Column(Integer, nullable=False, default=0)
    config = Column(JSON, nullable=True)

    design = relationship("EmbedDesign", back_populates="components")
