from sqlalchemy import JSON, Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import Base, TimestampMixin


class ChatSession(TimestampMixin, Base):
    __tablename__ = "chat_sessions"

    id = Column(Integer, primary_key=True)
    session_id = Column(String(255), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    chatbot_config_id = Column(
        Integer, ForeignKey("chatbot_configs.id", ondelete="CASCADE"), nullable=True
    )
    active_survey_id = Column(
        Integer, ForeignKey("surveys.id", ondelete="SET NULL"), nullable=True
    )

    chatbot = relationship("ChatbotConfig", back_populates="chat_sessions")
    messages = relationship(
        "Message",
        back_populates="chat_session",
        cascade="all,delete",
        order_by="Message.id",
    )
    survey_sessions = relationship(
        "SurveySession", back_populates="chat_session", cascade="all,delete"
    )


class Message(TimestampMixin, Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True)
    session_id = Column(
        String(255),
        ForeignKey("chat_sessions.session_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content = Column(Text, nullable=False, default="")
    sender = Column(String(16), nullable=False)
    message_type = Column(String(32), nullable=False, default="text")
    metadata_json = Column("metadata", JSON, nullable=False, default=dict)

    chat_session = relationship("ChatSession", back_populates="messages")
