import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ...dependencies import get_current_user, get_db
from ...enums import MessageSender
from ...models import ChatbotConfig, ChatSession
from ...schemas import (
    FormSubmissionRequest,
    SelectOptionRequest,
    SessionCreateRequest,
    StreamMessageRequest,
)
from ...services import forms
from ...services.chat import (
    get_or_create_session,
    message_payload,
    recent_messages,
    save_message,
    stream_chat_events,
)
from ...services.rate_limit import RateLimitExceeded, rate_limiter
from ...services.surveys import record_option_selection

logger = logging.getLogger(__name__)
router = APIRouter()

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post("/session")
def ensure_session(payload: SessionCreateRequest, db: Session = Depends(get_db)):
    chat_session = get_or_create_session(db, payload.session_id, payload.chatbot_config_id)
    return {
        "sessionId": chat_session.session_id,
        "chatbotConfigId": chat_session.chatbot_config_id,
        "activeSurveyId": chat_session.active_survey_id,
        "createdAt": chat_session.created_at,
    }


@router.get("/conversations/count")
def conversations_count(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    count = (
        db.query(ChatSession)
        .join(ChatbotConfig, ChatbotConfig.id == ChatSession.chatbot_config_id)
        .filter(ChatbotConfig.user_id == current_user.id)
        .count()
    )
    return {"count": count}


@router.get("/{session_id}/messages")
def get_messages(session_id: str, db: Session = Depends(get_db)):
    messages = recent_messages(db, session_id)
    return {"messages": [message_payload(m) for m in messages], "sessionId": session_id}


@router.post("/{session_id}/messages/stream")
def stream_message(session_id: str, payload: StreamMessageRequest, request: Request):
    rate_key = f"stream:{session_id}:{request.client.host if request.client else 'unknown'}"
    try:
        rate_limiter.check(rate_key, limit=20, window_seconds=30)
    except RateLimitExceeded as exc:
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(exc.retry_after)},
        )

    events = stream_chat_events(
        session_id,
        payload.content,
        chatbot_config_id=payload.chatbot_config_id,
        internal_message=payload.internal_message,
    )
    return StreamingResponse(events, media_type="text/event-stream", headers=STREAM_HEADERS)


@router.post("/{session_id}/select-option")
def select_option(session_id: str, payload: SelectOptionRequest, db: Session = Depends(get_db)):
    recorded = record_option_selection(db, session_id, payload.option_id, payload.payload)
    logger.info(
        "Option selected | session=%s option=%s survey_recorded=%s",
        session_id,
        payload.option_id,
        recorded,
    )
    return {
        "success": True,
        "optionId": payload.option_id,
        "payload": payload.payload,
        "optionText": payload.option_text,
        "surveyResponseRecorded": recorded,
        "message": "Option selected successfully",
    }


@router.post("/{session_id}/submit-form")
def submit_form(session_id: str, payload: FormSubmissionRequest, db: Session = Depends(get_db)):
    if not isinstance(payload.form_data, list):
        raise HTTPException(status_code=400, detail="formData must be a list of fields")
    chat_session = db.query(ChatSession).filter(ChatSession.session_id == session_id).first()
    if not chat_session or not chat_session.chatbot:
        raise HTTPException(status_code=404, detail="Chat session not found")
    chatbot = chat_session.chatbot
    if not chatbot.form_recipient_email:
        raise HTTPException(
            status_code=400,
            detail="Contact form is not available - no recipient email configured",
        )

    submission = save_message(
        db,
        session_id,
        f"Form submitted with {len(payload.form_data)} fields",
        MessageSender.USER,
        "form_submission",
        {
            "formData": payload.form_data,
            "formTitle": payload.form_title,
            "submittedAt": datetime.now(timezone.utc).isoformat(),
        },
    )

    if not forms.send_form_submission(chatbot, session_id, payload.form_data, payload.form_title):
        save_message(db, session_id, forms.DELIVERY_FAILED, MessageSender.BOT)
        raise HTTPException(status_code=500, detail="Failed to send form submission")

    confirmation = save_message(
        db,
        session_id,
        chatbot.form_confirmation_message or forms.DEFAULT_CONFIRMATION,
        MessageSender.BOT,
    )
    return {
        "success": True,
        "submission": message_payload(submission),
        "confirmation": message_payload(confirmation),
    }


@router.delete("/{session_id}")
def delete_session(session_id: str, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    chat_session = db.query(ChatSession).filter(ChatSession.session_id == session_id).first()
    if not chat_session:
        raise HTTPException(status_code=404, detail="Chat session not found")
    if not chat_session.chatbot or chat_session.chatbot.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Not allowed to delete this session")
    db.delete(chat_session)
    db.commit()
    logger.info("Chat session deleted | session=%s user=%s", session_id, current_user.id)
    return {"success": True}
