import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...dependencies import get_current_user, get_db, get_owned_chatbot
from ...models import ChatbotConfig, ChatSession, Message
from ...schemas import ChatbotCreate, ChatbotRead, ChatbotUpdate, HomeScreenConfig
from ...services.quotas import check_bot_limit

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=list[ChatbotRead])
def list_chatbots(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return (
        db.query(ChatbotConfig)
        .filter(ChatbotConfig.user_id == current_user.id)
        .order_by(ChatbotConfig.created_at.desc(), ChatbotConfig.id.desc())
        .all()
    )


@router.get("/guid/{guid}", response_model=ChatbotRead)
def get_chatbot(guid: str, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return get_owned_chatbot(db, current_user.id, guid)


@router.post("", response_model=ChatbotRead, status_code=201)
def create_chatbot(
    payload: ChatbotCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    if not check_bot_limit(db, current_user.id):
        raise HTTPException(status_code=403, detail="Bot limit reached")
    values = payload.model_dump(exclude_none=True, exclude={"home_screen_config"})
    chatbot = ChatbotConfig(user_id=current_user.id, **values)
    if payload.home_screen_config:
        chatbot.home_screen_config = payload.home_screen_config.model_dump()
    db.add(chatbot)
    db.commit()
    db.refresh(chatbot)
    logger.info("Chatbot created | user=%s chatbot=%s", current_user.id, chatbot.guid)
    return chatbot


@router.put("/{guid}", response_model=ChatbotRead)
def update_chatbot(
    guid: str,
    payload: ChatbotUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    chatbot = get_owned_chatbot(db, current_user.id, guid)
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(chatbot, key, value)
    db.commit()
    db.refresh(chatbot)
    return chatbot


@router.delete("/{guid}")
def delete_chatbot(guid: str, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    chatbot = get_owned_chatbot(db, current_user.id, guid)
    db.delete(chatbot)
    db.commit()
    logger.info("Chatbot deleted | user=%s chatbot=%s", current_user.id, guid)
    return {"success": True}


@router.put("/{guid}/home-screen", response_model=ChatbotRead)
def update_home_screen(
    guid: str,
    payload: HomeScreenConfig,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    chatbot = get_owned_chatbot(db, current_user.id, guid)
    chatbot.home_screen_config = payload.model_dump()
    db.commit()
    db.refresh(chatbot)
    return chatbot


@router.get("/{guid}/sessions")
def list_sessions(guid: str, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    chatbot = get_owned_chatbot(db, current_user.id, guid)
    rows = (
        db.query(
            ChatSession,
            func.count(Message.id).label("message_count"),
            func.max(Message.created_at).label("last_message_at"),
        )
        .outerjoin(Message, Message.session_id == ChatSession.session_id)
        .filter(ChatSession.chatbot_config_id == chatbot.id)
        .group_by(ChatSession.id)
        .order_by(ChatSession.created_at.desc())
        .all()
    )
    sessions = [
        {
            "id": chat_session.id,
            "sessionId": chat_session.session_id,
            "createdAt": chat_session.created_at,
            "updatedAt": chat_session.updated_at,
            "messageCount": message_count,
            "lastMessageAt": last_message_at,
        }
        for chat_session, message_count, last_message_at in rows
    ]
    return {"sessions": sessions, "chatbotName": chatbot.name}


@router.delete("/{guid}/sessions")
def delete_sessions(guid: str, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    chatbot = get_owned_chatbot(db, current_user.id, guid)
    sessions = db.query(ChatSession).filter(ChatSession.chatbot_config_id == chatbot.id).all()
    for chat_session in sessions:
        db.delete(chat_session)
    db.commit()
    logger.info("Deleted %s sessions | chatbot=%s", len(sessions), guid)
    return {"success": True, "deletedCount": len(sessions)}
