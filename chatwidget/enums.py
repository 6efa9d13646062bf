import enum


class MessageSender(str, enum.Enum):
    USER = "user"
    BOT = "bot"


class BubbleType(str, enum.Enum):
    TEXT = "text"
    CARD = "card"
    MENU = "menu"
    MULTISELECT_MENU = "multiselect_menu"
    RATING = "rating"
    IMAGE = "image"
    QUICK_REPLIES = "quickReplies"
    FORM = "form"
    FORM_SUBMISSION = "form_submission"
    SYSTEM = "system"


class SurveyStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class SurveySessionStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    INACTIVE = "inactive"
    ABANDONED = "abandoned"


class SourceType(str, enum.Enum):
    WEBSITE = "website"
    TEXT = "text"


class SourceStatus(str, enum.Enum):
    PENDING = "pending"
    SCANNING = "scanning"
    COMPLETED = "completed"
    ERROR = "error"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"


class DesignType(str, enum.Enum):
    MINIMAL = "minimal"
    COMPACT = "compact"
    FULL = "full"


class WelcomeType(str, enum.Enum):
    TEXT = "text"
    BUBBLE = "bubble"
