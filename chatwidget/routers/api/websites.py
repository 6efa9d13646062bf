import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from ...dependencies import get_current_user, get_db, get_owned_chatbot
from ...enums import SourceStatus
from ...models import ChatbotConfig, WebsiteSource
from ...schemas import WebsiteSourceCreate, WebsiteSourceRead
from ...services.scanner import run_source_scan

logger = logging.getLogger(__name__)
router = APIRouter()


def _normalize_url(value: str) -> str:
    value = value.strip()
    if not value.startswith(("http://", "https://")):
        value = f"https://{value}"
    return value


def _owned_source(db: Session, chatbot: ChatbotConfig, source_id: int) -> WebsiteSource:
    source = (
        db.query(WebsiteSource)
        .filter(WebsiteSource.id == source_id, WebsiteSource.chatbot_config_id == chatbot.id)
        .first()
    )
    if not source:
        raise HTTPException(status_code=404, detail="Website source not found")
    return source


@router.get("/{chatbot_id}/website-sources", response_model=list[WebsiteSourceRead])
def list_sources(chatbot_id: str, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    chatbot = get_owned_chatbot(db, current_user.id, chatbot_id)
    return (
        db.query(WebsiteSource)
        .filter(WebsiteSource.chatbot_config_id == chatbot.id)
        .order_by(WebsiteSource.created_at.desc(), WebsiteSource.id.desc())
        .all()
    )


@router.post("/{chatbot_id}/website-sources", response_model=WebsiteSourceRead, status_code=201)
def create_source(
    chatbot_id: str,
    payload: WebsiteSourceCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    chatbot = get_owned_chatbot(db, current_user.id, chatbot_id)
    source = WebsiteSource(
        chatbot_config_id=chatbot.id,
        source_type=payload.source_type,
        url=_normalize_url(payload.url) if payload.url else None,
        title=payload.title,
        description=payload.description,
        text_content=payload.text_content,
        max_pages=payload.max_pages,
        status=SourceStatus.PENDING,
    )
    db.add(source)
    db.commit()
    db.refresh(source)
    background_tasks.add_task(run_source_scan, source.id)
    logger.info("Website source queued | chatbot=%s source=%s", chatbot.guid, source.id)
    return source


@router.post("/{chatbot_id}/website-sources/{source_id}/rescan", response_model=WebsiteSourceRead)
def rescan_source(
    chatbot_id: str,
    source_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    chatbot = get_owned_chatbot(db, current_user.id, chatbot_id)
    source = _owned_source(db, chatbot, source_id)
    if source.status == SourceStatus.SCANNING:
        raise HTTPException(status_code=400, detail="Scan already running")
    source.status = SourceStatus.PENDING
    source.error_message = None
    db.commit()
    db.refresh(source)
    background_tasks.add_task(run_source_scan, source.id)
    return source


@router.delete("/{chatbot_id}/website-sources/{source_id}")
def delete_source(
    chatbot_id: str,
    source_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    chatbot = get_owned_chatbot(db, current_user.id, chatbot_id)
    db.delete(_owned_source(db, chatbot, source_id))
    db.commit()
    return {"success": True}
