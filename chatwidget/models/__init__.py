from .base import Base
from .user import User
from .chatbot import ChatbotConfig
from .chat import ChatSession, Message
from .survey import Survey, SurveySession
from .website import WebsiteContent, WebsiteSource
from .embed import EmbedDesign, EmbedDesignComponent
from .subscription import Subscription, SubscriptionPlan

__all__ = [
    "Base",
    "User",
    "ChatbotConfig",
    "ChatSession",
    "Message",
    "Survey",
    "SurveySession",
    "WebsiteSource",
    "WebsiteContent",
    "EmbedDesign",
    "EmbedDesignComponent",
    "SubscriptionPlan",
    "Subscription",
]
