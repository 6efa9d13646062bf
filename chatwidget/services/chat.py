import logging
from typing import Any, Dict, Generator, Optional

from sqlalchemy.orm import Session

from ..client.frames import encode_event
from ..config import get_settings
from ..db import SessionLocal
from ..enums import MessageSender
from ..models import ChatbotConfig, ChatSession, Message
from . import quotas
from .streaming import build_history, generate_bubble_stream
from .surveys import handle_survey_trigger

logger = logging.getLogger(__name__)
_settings = get_settings()

SERVICE_UNAVAILABLE = "Chat service is temporarily unavailable. Please try again later."
HIGH_USAGE_MESSAGE = (
    "I'm temporarily unavailable due to high usage. Please try again later or leave your "
    "contact details and we'll reach out to you."
)
INTERNAL_ERROR = "Internal server error"
MESSAGE_PAGE_SIZE = 50


def resolve_default_chatbot(db: Session) -> Optional[ChatbotConfig]:
    guid = _settings.default_site_chatbot_guid
    if not guid:
        return None
    return db.query(ChatbotConfig).filter(ChatbotConfig.guid == guid).first()


def get_or_create_session(
    db: Session,
    session_id: str,
    chatbot_config_id: Optional[int] = None,
) -> ChatSession:
    """Load a chat session, creating it or re-pointing it at another chatbot as needed."""

    chat_session = db.query(ChatSession).filter(ChatSession.session_id == session_id).first()
    if chat_session is None:
        chat_session = ChatSession(session_id=session_id, chatbot_config_id=chatbot_config_id)
        db.add(chat_session)
        logger.info("Chat session created | session=%s chatbot=%s", session_id, chatbot_config_id)
    elif chatbot_config_id and chat_session.chatbot_config_id != chatbot_config_id:
        logger.info(
            "Chat session moved | session=%s chatbot=%s -> %s",
            session_id,
            chat_session.chatbot_config_id,
            chatbot_config_id,
        )
        chat_session.chatbot_config_id = chatbot_config_id

    if chat_session.chatbot_config_id is None:
        default_chatbot = resolve_default_chatbot(db)
        if default_chatbot:
            chat_session.chatbot_config_id = default_chatbot.id
    db.commit()
    return chat_session


def save_message(
    db: Session,
    session_id: str,
    content: str,
    sender: MessageSender,
    message_type: str = "text",
    metadata: Optional[Dict[str, Any]] = None,
) -> Message:
    message = Message(
        session_id=session_id,
        content=content or "",
        sender=sender.value,
        message_type=message_type,
        metadata_json=metadata or {},
    )
    db.add(message)
    db.commit()
    return message


def message_payload(message: Message) -> Dict[str, Any]:
    return {
        "id": message.id,
        "sessionId": message.session_id,
        "content": message.content,
        "sender": message.sender,
        "messageType": message.message_type,
        "metadata": message.metadata_json or {},
        "createdAt": message.created_at.isoformat() if message.created_at else None,
    }


def recent_messages(db: Session, session_id: str, limit: int = MESSAGE_PAGE_SIZE):
    rows = (
        db.query(Message)
        .filter(Message.session_id == session_id)
        .order_by(Message.id.desc())
        .limit(limit)
        .all()
    )
    return list(reversed(rows))


def save_bubble(db: Session, session_id: str, bubble: Dict[str, Any]) -> Message:
    metadata = dict(bubble.get("metadata") or {})
    metadata["originalContent"] = bubble
    return save_message(
        db,
        session_id,
        bubble.get("content") or "",
        MessageSender.BOT,
        bubble.get("messageType") or "text",
        metadata,
    )


def _limit_event(chatbot: Optional[ChatbotConfig]) -> str:
    if chatbot is None:
        return encode_event(
            "limit_exceeded",
            message=SERVICE_UNAVAILABLE,
            readOnlyMode=True,
            showContactForm=False,
        )
    return encode_event(
        "limit_exceeded",
        message=chatbot.fallback_message or HIGH_USAGE_MESSAGE,
        readOnlyMode=True,
        showContactForm=bool(chatbot.form_recipient_email),
        chatbotConfig={"name": chatbot.name, "fallbackMessage": chatbot.fallback_message},
    )


def stream_chat_events(
    session_id: str,
    content: str,
    chatbot_config_id: Optional[int] = None,
    internal_message: bool = False,
) -> Generator[str, None, None]:
    """Run one chat turn and yield its event-stream frames.

    Uses its own database session since the response body outlives the request scope.
    """

    with SessionLocal() as db:
        try:
            chat_session = get_or_create_session(db, session_id, chatbot_config_id)
            user_message = None
            if not internal_message:
                user_message = save_message(db, session_id, content, MessageSender.USER)
                yield encode_event("user_message", message=message_payload(user_message))

            chatbot = chat_session.chatbot
            if chatbot is None or not quotas.check_message_limit(db, chatbot.user_id):
                logger.warning(
                    "Message limit reached | session=%s chatbot=%s",
                    session_id,
                    chatbot.guid if chatbot else None,
                )
                yield _limit_event(chatbot)
                return
            quotas.increment_message_usage(db, chatbot.user_id)

            handle_survey_trigger(db, chat_session, content)
            history = build_history(
                db,
                session_id,
                exclude_message_id=user_message.id if user_message else None,
            )
            for chunk in generate_bubble_stream(db, chatbot, session_id, content, history):
                if chunk.type == "bubble" and chunk.bubble:
                    stored = save_bubble(db, session_id, chunk.bubble)
                    yield encode_event("bubble", message=message_payload(stored))
                elif chunk.type == "complete":
                    yield encode_event("complete", message="Stream finished")
        except Exception as exc:  # noqa: BLE001
            db.rollback()
            logger.exception("Chat stream failed | session=%s: %s", session_id, exc)
            yield encode_event("error", message=INTERNAL_ERROR)
