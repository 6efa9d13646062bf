import uuid

from sqlalchemy import JSON, Boolean, Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import Base, TimestampMixin


def _new_guid() -> str:
    return str(uuid.uuid4())


class ChatbotConfig(TimestampMixin, Base):
    __tablename__ = "chatbot_configs"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    guid = Column(String(36), unique=True, nullable=False, default=_new_guid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    avatar_url = Column(String(1024), nullable=True)
    system_prompt = Column(Text, nullable=False, default="You are a helpful assistant.")
    model = Column(String(64), nullable=True)
    # Stored as tenths: 7 means a sampling temperature of 0.7.
    temperature = Column(Integer, nullable=False, default=7, server_default="7")
    max_tokens = Column(Integer, nullable=False, default=1000, server_default="1000")
    is_active = Column(Boolean, nullable=False, default=True, server_default="1")
    welcome_message = Column(Text, nullable=True)
    fallback_message = Column(Text, nullable=True)
    home_screen_config = Column(JSON, nullable=True)
    initial_messages = Column(JSON, nullable=False, default=list)
    background_image_url = Column(String(1024), nullable=True)
    form_recipient_email = Column(String(255), nullable=True)
    form_recipient_name = Column(String(255), nullable=True)
    sender_email = Column(String(255), nullable=True)
    sender_name = Column(String(255), nullable=True)
    form_confirmation_message = Column(Text, nullable=True)

    owner = relationship("User", back_populates="chatbots")
    chat_sessions = relationship(
        "ChatSession",
        back_populates="chatbot",
        cascade="all,delete",
    )
    surveys = relationship("Survey", back_populates="chatbot", cascade="all,delete")
    website_sources = relationship(
        "WebsiteSource", back_populates="chatbot", cascade="all,delete"
    )
    embed_designs = relationship("EmbedDesign", back_populates="chatbot", cascade="all,delete")
