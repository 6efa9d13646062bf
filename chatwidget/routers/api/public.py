from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...dependencies import get_db
from ...enums import SurveyStatus
from ...models import ChatbotConfig, Survey
from ...schemas import ChatbotPublic, SurveyRead
from ...services.chat import resolve_default_chatbot
from ...services.embeds import get_public_design, public_embed_config

router = APIRouter()


def _public_chatbot(chatbot: ChatbotConfig) -> ChatbotPublic:
    public = ChatbotPublic.model_validate(chatbot)
    public.has_contact_form = bool(chatbot.form_recipient_email)
    return public


@router.get("/default-chatbot", response_model=ChatbotPublic)
def default_chatbot(db: Session = Depends(get_db)):
    chatbot = resolve_default_chatbot(db)
    if not chatbot:
        raise HTTPException(
            status_code=404,
            detail="Default chatbot not configured. Set DEFAULT_SITE_CHATBOT_GUID to an existing chatbot.",
        )
    return _public_chatbot(chatbot)


@router.get("/chatbots/{guid}", response_model=ChatbotPublic)
def public_chatbot(guid: str, db: Session = Depends(get_db)):
    chatbot = db.query(ChatbotConfig).filter(ChatbotConfig.guid == guid).first()
    if not chatbot or not chatbot.is_active:
        raise HTTPException(status_code=404, detail="Chatbot not found")
    return _public_chatbot(chatbot)


@router.get("/surveys", response_model=list[SurveyRead])
def public_surveys(
    chatbot_guid: Optional[str] = Query(None, alias="chatbotGuid"),
    db: Session = Depends(get_db),
):
    if chatbot_guid:
        chatbot = db.query(ChatbotConfig).filter(ChatbotConfig.guid == chatbot_guid).first()
    else:
        chatbot = resolve_default_chatbot(db)
    if not chatbot:
        raise HTTPException(status_code=404, detail="Chatbot not found")
    return (
        db.query(Survey)
        .filter(Survey.chatbot_config_id == chatbot.id, Survey.status == SurveyStatus.ACTIVE)
        .order_by(Survey.id.asc())
        .all()
    )


@router.get("/embed/{embed_id}")
def public_embed(embed_id: str, db: Session = Depends(get_db)):
    design = get_public_design(db, embed_id)
    if not design:
        raise HTTPException(status_code=404, detail="Embed not found or inactive")
    return public_embed_config(design)
