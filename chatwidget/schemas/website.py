from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..enums import SourceStatus, SourceType


class WebsiteSourceCreate(BaseModel):
    source_type: SourceType = SourceType.WEBSITE
    url: Optional[str] = Field(None, max_length=2048)
    title: Optional[str] = Field(None, max_length=512)
    description: Optional[str] = None
    text_content: Optional[str] = None
    max_pages: int = Field(50, ge=1, le=500)

    @model_validator(mode="after")
    def require_payload(self) -> "WebsiteSourceCreate":
        if self.source_type == SourceType.WEBSITE and not (self.url or "").strip():
            raise ValueError("url is required for website sources")
        if self.source_type == SourceType.TEXT and not (self.text_content or "").strip():
            raise ValueError("text_content is required for text sources")
        return self


class WebsiteSourceRead(BaseModel):
    id: int
    chatbot_config_id: int
    source_type: SourceType
    url: Optional[str]
    title: Optional[str]
    description: Optional[str]
    sitemap_url: Optional[str]
    max_pages: int
    total_pages: int
    status: SourceStatus
    error_message: Optional[str]
    last_scanned: Optional[datetime]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
