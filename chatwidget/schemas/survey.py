from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..enums import SurveySessionStatus, SurveyStatus


class SurveyOption(BaseModel):
    id: str
    text: str
    follow_up: Optional[str] = Field(None, alias="followUp")
    value: Any = None

    model_config = ConfigDict(populate_by_name=True)


class SurveyQuestion(BaseModel):
    id: str
    text: str
    type: Literal["single_choice", "multiple_choice", "text", "rating", "conditional"]
    options: Optional[List[SurveyOption]] = None
    required: bool = True
    allow_free_choice: bool = Field(False, alias="allowFreeChoice")
    metadata: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class SurveyConfig(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    questions: List[SurveyQuestion]
    conditional_flow: Optional[Dict[str, Any]] = Field(None, alias="conditionalFlow")
    completion_message: Optional[str] = Field(None, alias="completionMessage")
    ai_instructions: Optional[str] = Field(None, alias="aiInstructions")
    settings: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(populate_by_name=True)


class SurveyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    survey_config: SurveyConfig
    status: SurveyStatus = SurveyStatus.DRAFT


class SurveyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    survey_config: Optional[SurveyConfig] = None
    status: Optional[SurveyStatus] = None

    @field_validator("name", "survey_config", "status", mode="before")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class SurveyRead(BaseModel):
    id: int
    chatbot_config_id: int
    name: str
    description: Optional[str]
    survey_config: Dict[str, Any]
    status: SurveyStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SurveySessionRead(BaseModel):
    id: int
    survey_id: int
    session_id: str
    current_question_index: int
    responses: Dict[str, Any]
    status: SurveySessionStatus
    completion_handled: bool
    completed_at: Optional[datetime]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StartSurveyRequest(BaseModel):
    session_id: str = Field(..., alias="sessionId")
    survey_id: int = Field(..., alias="surveyId")

    model_config = ConfigDict(populate_by_name=True)


class SurveyAnswerRequest(BaseModel):
    session_id: str = Field(..., alias="sessionId")
    question_id: str = Field(..., alias="questionId")
    response: Any

    model_config = ConfigDict(populate_by_name=True)
