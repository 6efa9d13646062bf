from sqlalchemy import JSON, Boolean, Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from ..enums import SurveySessionStatus, SurveyStatus
from .base import Base, TimestampMixin


class Survey(TimestampMixin, Base):
    __tablename__ = "surveys"

    id = Column(Integer, primary_key=True)
    chatbot_config_id = Column(
        Integer, ForeignKey("chatbot_configs.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    survey_config = Column(JSON, nullable=False, default=dict)
    status = Column(
        Enum(SurveyStatus, native_enum=False),
        nullable=False,
        default=SurveyStatus.DRAFT,
        server_default=SurveyStatus.DRAFT.name,
    )

    chatbot = relationship("ChatbotConfig", back_populates="surveys")
    sessions = relationship("SurveySession", back_populates="survey", cascade="all,delete")

    @property
    def questions(self) -> list:
        return list((self.survey_config or {}).get("questions") or [])


class SurveySession(TimestampMixin, Base):
    __tablename__ = "survey_sessions"

    id = Column(Integer, primary_key=True)
    survey_id = Column(Integer, ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False)
    session_id = Column(
        String(255),
        ForeignKey("chat_sessions.session_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    current_question_index = Column(Integer, nullable=False, default=0, server_default="0")
    responses = Column(JSON, nullable=False, default=dict)
    status = Column(
        Enum(SurveySessionStatus, native_enum=False),
        nullable=False,
        default=SurveySessionStatus.ACTIVE,
        server_default=SurveySessionStatus.ACTIVE.name,
    )
    completion_handled = Column(Boolean, nullable=False, default=False, server_default="0")
    completed_at = Column(DateTime(timezone=True), nullable=True)

    survey = relationship("Survey", back_populates="sessions")
    chat_session = relationship("ChatSession", back_populates="survey_sessions")
