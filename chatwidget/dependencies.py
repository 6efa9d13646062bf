from typing import Generator, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from . import security
from .db import SessionLocal
from .models.chatbot import ChatbotConfig
from .models.user import User


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    session_token = request.cookies.get(security.SESSION_COOKIE_NAME)
    if not session_token:
        return None
    user_id = security.decode_session_token(session_token)
    if not user_id:
        return None
    return db.query(User).filter(User.id == user_id).first()


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user


def get_owned_chatbot(db: Session, owner_id: int, chatbot_ref: str) -> ChatbotConfig:
    """Resolve a chatbot by numeric id or guid, 404 unless ``owner_id`` owns it."""

    query = db.query(ChatbotConfig).filter(ChatbotConfig.user_id == owner_id)
    if chatbot_ref.isdigit():
        query = query.filter(or_(ChatbotConfig.id == int(chatbot_ref), ChatbotConfig.guid == chatbot_ref))
    else:
        query = query.filter(ChatbotConfig.guid == chatbot_ref)
    chatbot = query.first()
    if not chatbot:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chatbot not found")
    return chatbot
