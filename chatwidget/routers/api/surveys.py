import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...dependencies import get_current_user, get_db, get_owned_chatbot
from ...enums import SurveySessionStatus
from ...models import ChatbotConfig, ChatSession, Survey, SurveySession
from ...schemas import (
    StartSurveyRequest,
    SurveyAnswerRequest,
    SurveyCreate,
    SurveyRead,
    SurveySessionRead,
    SurveyUpdate,
)
from ...services.chat import get_or_create_session
from ...services.surveys import (
    SurveyConfigError,
    get_active_survey_session,
    record_answer,
    start_survey_session,
    survey_analytics,
    validate_survey_config,
)

logger = logging.getLogger(__name__)
router = APIRouter()
sessions_router = APIRouter()


def _owned_survey(db: Session, chatbot: ChatbotConfig, survey_id: int) -> Survey:
    survey = (
        db.query(Survey)
        .filter(Survey.id == survey_id, Survey.chatbot_config_id == chatbot.id)
        .first()
    )
    if not survey:
        raise HTTPException(status_code=404, detail="Survey not found")
    return survey


def _apply_update(survey: Survey, payload: SurveyUpdate) -> None:
    values = payload.model_dump(exclude_unset=True, exclude={"survey_config"})
    for key, value in values.items():
        setattr(survey, key, value)
    if payload.survey_config is not None:
        try:
            survey.survey_config = validate_survey_config(payload.survey_config.model_dump(by_alias=True))
        except SurveyConfigError as exc:
            raise HTTPException(status_code=400, detail=str(exc))


def _detach_survey(db: Session, survey: Survey) -> None:
    db.query(ChatSession).filter(ChatSession.active_survey_id == survey.id).update(
        {ChatSession.active_survey_id: None}, synchronize_session="fetch"
    )


@router.get("/chatbots/{chatbot_id}/surveys", response_model=list[SurveyRead])
def list_surveys(chatbot_id: str, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    chatbot = get_owned_chatbot(db, current_user.id, chatbot_id)
    return db.query(Survey).filter(Survey.chatbot_config_id == chatbot.id).order_by(Survey.created_at.desc()).all()


@router.post("/chatbots/{chatbot_id}/surveys", response_model=SurveyRead, status_code=201)
def create_survey(
    chatbot_id: str,
    payload: SurveyCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    chatbot = get_owned_chatbot(db, current_user.id, chatbot_id)
    try:
        config = validate_survey_config(payload.survey_config.model_dump(by_alias=True))
    except SurveyConfigError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    survey = Survey(
        chatbot_config_id=chatbot.id,
        name=payload.name,
        description=payload.description,
        survey_config=config,
        status=payload.status,
    )
    db.add(survey)
    db.commit()
    db.refresh(survey)
    logger.info("Survey created | chatbot=%s survey=%s", chatbot.guid, survey.id)
    return survey


@router.get("/chatbots/{chatbot_id}/surveys/analytics")
def get_analytics(chatbot_id: str, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    chatbot = get_owned_chatbot(db, current_user.id, chatbot_id)
    return survey_analytics(db, chatbot)


@router.delete("/chatbots/{chatbot_id}/surveys/history")
def clear_history(chatbot_id: str, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    chatbot = get_owned_chatbot(db, current_user.id, chatbot_id)
    survey_ids = [survey.id for survey in chatbot.surveys]
    deleted = 0
    if survey_ids:
        deleted = (
            db.query(SurveySession)
            .filter(SurveySession.survey_id.in_(survey_ids))
            .delete(synchronize_session="fetch")
        )
    db.commit()
    logger.info("Survey history cleared | chatbot=%s sessions=%s", chatbot.guid, deleted)
    return {"success": True, "deletedCount": deleted}


@router.put("/chatbots/{chatbot_id}/surveys/{survey_id}", response_model=SurveyRead)
def update_survey(
    chatbot_id: str,
    survey_id: int,
    payload: SurveyUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    chatbot = get_owned_chatbot(db, current_user.id, chatbot_id)
    survey = _owned_survey(db, chatbot, survey_id)
    _apply_update(survey, payload)
    db.commit()
    db.refresh(survey)
    return survey


@router.delete("/chatbots/{chatbot_id}/surveys/{survey_id}")
def delete_survey(
    chatbot_id: str,
    survey_id: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    chatbot = get_owned_chatbot(db, current_user.id, chatbot_id)
    survey = _owned_survey(db, chatbot, survey_id)
    _detach_survey(db, survey)
    db.delete(survey)
    db.commit()
    return {"success": True}


@router.patch("/surveys/{survey_id}", response_model=SurveyRead)
def patch_survey(
    survey_id: int,
    payload: SurveyUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    survey = db.get(Survey, survey_id)
    if not survey:
        raise HTTPException(status_code=404, detail="Survey not found")
    if survey.chatbot.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Not allowed to modify this survey")
    _apply_update(survey, payload)
    db.commit()
    db.refresh(survey)
    return survey


@sessions_router.post("/start-survey", response_model=SurveySessionRead)
def start_survey(payload: StartSurveyRequest, db: Session = Depends(get_db)):
    survey = db.get(Survey, payload.survey_id)
    if not survey:
        raise HTTPException(status_code=404, detail="Survey not found")
    chat_session = get_or_create_session(db, payload.session_id, survey.chatbot_config_id)
    return start_survey_session(db, chat_session, survey)


@sessions_router.post("/response", response_model=SurveySessionRead)
def submit_response(payload: SurveyAnswerRequest, db: Session = Depends(get_db)):
    survey_session = get_active_survey_session(db, payload.session_id)
    if not survey_session or survey_session.status != SurveySessionStatus.ACTIVE:
        raise HTTPException(status_code=404, detail="Active survey session not found")
    return record_answer(db, survey_session, payload.question_id, payload.response)


@sessions_router.get("/{session_id}/status")
def survey_status(session_id: str, db: Session = Depends(get_db)):
    survey_session = get_active_survey_session(db, session_id)
    if not survey_session:
        return {"hasSurvey": False, "surveySession": None}
    return {
        "hasSurvey": True,
        "surveySession": SurveySessionRead.model_validate(survey_session).model_dump(mode="json"),
    }
