from .auth import LoginRequest, SignupRequest, UserRead
from .bubbles import AIResponse, Bubble, MULTI_BUBBLE_RESPONSE_SCHEMA
from .chat import (
    ContactRequest,
    FormSubmissionRequest,
    SelectOptionRequest,
    SessionCreateRequest,
    StreamMessageRequest,
)
from .chatbot import ChatbotCreate, ChatbotPublic, ChatbotRead, ChatbotUpdate, HomeScreenConfig
from .embed import (
    CTAConfig,
    ComponentVisibilityUpdate,
    EmbedDesignCreate,
    EmbedDesignRead,
    EmbedDesignUpdate,
)
from .subscription import PlanRead, SubscriptionRead
from .survey import (
    StartSurveyRequest,
    SurveyAnswerRequest,
    SurveyConfig,
    SurveyCreate,
    SurveyRead,
    SurveySessionRead,
    SurveyUpdate,
)
from .website import WebsiteSourceCreate, WebsiteSourceRead

__all__ = [
    "LoginRequest",
    "SignupRequest",
    "UserRead",
    "AIResponse",
    "Bubble",
    "MULTI_BUBBLE_RESPONSE_SCHEMA",
    "ContactRequest",
    "FormSubmissionRequest",
    "SelectOptionRequest",
    "SessionCreateRequest",
    "StreamMessageRequest",
    "ChatbotCreate",
    "ChatbotPublic",
    "ChatbotRead",
    "ChatbotUpdate",
    "HomeScreenConfig",
    "CTAConfig",
    "ComponentVisibilityUpdate",
    "EmbedDesignCreate",
    "EmbedDesignRead",
    "EmbedDesignUpdate",
    "PlanRead",
    "SubscriptionRead",
    "StartSurveyRequest",
    "SurveyAnswerRequest",
    "SurveyConfig",
    "SurveyCreate",
    "SurveyRead",
    "SurveySessionRead",
    "SurveyUpdate",
    "WebsiteSourceCreate",
    "WebsiteSourceRead",
]
