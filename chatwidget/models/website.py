from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from ..enums import SourceStatus, SourceType
from .base import Base, TimestampMixin


class WebsiteSource(TimestampMixin, Base):
    __tablename__ = "website_sources"

    id = Column(Integer, primary_key=True)
    chatbot_config_id = Column(
        Integer, ForeignKey("chatbot_configs.id", ondelete="CASCADE"), nullable=False
    )
    source_type = Column(
        Enum(SourceType, native_enum=False),
        nullable=False,
        default=SourceType.WEBSITE,
        server_default=SourceType.WEBSITE.name,
    )
    url = Column(String(2048), nullable=True)
    title = Column(String(512), nullable=True)
    description = Column(Text, nullable=True)
    text_content = Column(Text, nullable=True)
    sitemap_url = Column(String(2048), nullable=True)
    max_pages = Column(Integer, nullable=False, default=50, server_default="50")
    total_pages = Column(Integer, nullable=False, default=0, server_default="0")
    status = Column(
        Enum(SourceStatus, native_enum=False),
        nullable=False,
        default=SourceStatus.PENDING,
        server_default=SourceStatus.PENDING.name,
    )
    error_message = Column(Text, nullable=True)
    last_scanned = Column(DateTime(timezone=True), nullable=True)

    chatbot = relationship("ChatbotConfig", back_populates="website_sources")
    contents = relationship(
        "WebsiteContent", back_populates="source", cascade="all,delete-orphan"
    )


class WebsiteContent(TimestampMixin, Base):
    __tablename__ = "website_content"

    id = Column(Integer, primary_key=True)
    website_source_id = Column(
        Integer, ForeignKey("website_sources.id", ondelete="CASCADE"), nullable=False
    )
    url = Column(String(2048), nullable=True)
    title = Column(String(512), nullable=True)
    content = Column(Text, nullable=False)
    content_type = Column(String(32), nullable=False, default="page")
    word_count = Column(Integer, nullable=False, default=0)
    embedding = Column(JSON, nullable=True)

    source = relationship("WebsiteSource", back_populates="contents")
