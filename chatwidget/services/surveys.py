import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..enums import SurveySessionStatus, SurveyStatus
from ..models import ChatSession, ChatbotConfig, Survey, SurveySession
from ..schemas.bubbles import AIResponse
from ..schemas.survey import SurveyConfig

logger = logging.getLogger(__name__)

SURVEY_TRIGGER_KEYWORDS = ("assessment", "survey", "arviointi")
_SURVEY_ID_RE = re.compile(r"surveyId:\s*(\d+)", re.IGNORECASE)
_RATING_TYPES = {"stars", "numbers", "scale"}


class SurveyConfigError(ValueError):
    """Raised when a survey definition does not match the expected structure."""


def validate_survey_config(raw: Any) -> Dict[str, Any]:
    try:
        config = SurveyConfig.model_validate(raw)
    except ValidationError as exc:
        raise SurveyConfigError(f"Invalid survey configuration: {exc.errors()[0]['msg']}") from exc
    return config.model_dump(by_alias=True, exclude_none=True)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_survey_request(text: str) -> bool:
    lowered = (text or "").lower()
    return any(keyword in lowered for keyword in SURVEY_TRIGGER_KEYWORDS)


def current_question(survey: Survey, survey_session: SurveySession) -> Optional[Dict[str, Any]]:
    questions = survey.questions
    index = survey_session.current_question_index or 0
    if 0 <= index < len(questions):
        return questions[index]
    return None


def get_active_survey_session(db: Session, session_id: str) -> Optional[SurveySession]:
    """Survey session for the survey currently attached to a chat session."""

    chat_session = db.query(ChatSession).filter(ChatSession.session_id == session_id).first()
    if not chat_session or not chat_session.active_survey_id:
        return None
    return (
        db.query(SurveySession)
        .filter(
            SurveySession.survey_id == chat_session.active_survey_id,
            SurveySession.session_id == session_id,
        )
        .order_by(SurveySession.id.desc())
        .first()
    )


def deactivate_active_sessions(db: Session, session_id: str) -> int:
    updated = (
        db.query(SurveySession)
        .filter(
            SurveySession.session_id == session_id,
            SurveySession.status == SurveySessionStatus.ACTIVE,
        )
        .update({SurveySession.status: SurveySessionStatus.INACTIVE}, synchronize_session="fetch")
    )
    if updated:
        logger.info("Deactivated %s survey session(s) | session=%s", updated, session_id)
    return updated


def start_survey_session(db: Session, chat_session: ChatSession, survey: Survey) -> SurveySession:
    """Attach ``survey`` to the chat session, restarting a finished run if needed."""

    deactivate_active_sessions(db, chat_session.session_id)
    survey_session = (
        db.query(SurveySession)
        .filter(
            SurveySession.survey_id == survey.id,
            SurveySession.session_id == chat_session.session_id,
        )
        .order_by(SurveySession.id.desc())
        .first()
    )
    if survey_session is None:
        survey_session = SurveySession(
            survey_id=survey.id,
            session_id=chat_session.session_id,
            user_id=chat_session.user_id,
            current_question_index=0,
            responses={},
            status=SurveySessionStatus.ACTIVE,
        )
        db.add(survey_session)
        action = "created"
    elif survey_session.status == SurveySessionStatus.COMPLETED:
        survey_session.current_question_index = 0
        survey_session.responses = {}
        survey_session.status = SurveySessionStatus.ACTIVE
        survey_session.completion_handled = False
        survey_session.completed_at = None
        action = "reset"
    else:
        survey_session.status = SurveySessionStatus.ACTIVE
        action = "reactivated"

    chat_session.active_survey_id = survey.id
    db.commit()
    logger.info(
        "Survey session %s | survey=%s session=%s", action, survey.id, chat_session.session_id
    )
    return survey_session


def _pick_triggered_survey(db: Session, chatbot_config_id: int, text: str) -> Optional[Survey]:
    query = db.query(Survey).filter(
        Survey.chatbot_config_id == chatbot_config_id,
        Survey.status == SurveyStatus.ACTIVE,
    )
    match = _SURVEY_ID_RE.search(text)
    if match:
        targeted = query.filter(Survey.id == int(match.group(1))).first()
        if targeted:
            return targeted
    return query.order_by(Survey.id.asc()).first()


def handle_survey_trigger(db: Session, chat_session: ChatSession, text: str) -> Optional[SurveySession]:
    """Start a survey when the visitor asks for one in free text."""

    if not chat_session.chatbot_config_id or not is_survey_request(text):
        return None
    survey = _pick_triggered_survey(db, chat_session.chatbot_config_id, text)
    if not survey:
        logger.info("Survey requested but none active | chatbot=%s", chat_session.chatbot_config_id)
        return None
    return start_survey_session(db, chat_session, survey)


def record_answer(db: Session, survey_session: SurveySession, key: str, value: Any) -> SurveySession:
    """Store one answer and move to the next question, completing at the end."""

    responses = dict(survey_session.responses or {})
    responses[key] = value
    survey_session.responses = responses
    next_index = (survey_session.current_question_index or 0) + 1
    survey_session.current_question_index = next_index
    if next_index >= len(survey_session.survey.questions):
        survey_session.status = SurveySessionStatus.COMPLETED
        survey_session.completed_at = _utcnow()
        logger.info("Survey completed | survey=%s session=%s", survey_session.survey_id, survey_session.session_id)
    db.commit()
    return survey_session


def record_option_selection(db: Session, session_id: str, option_id: str, payload: Any) -> bool:
    survey_session = get_active_survey_session(db, session_id)
    if not survey_session or survey_session.status != SurveySessionStatus.ACTIVE:
        return False
    if current_question(survey_session.survey, survey_session) is None:
        return False
    key = f"q{survey_session.current_question_index or 0}"
    record_answer(db, survey_session, key, payload if payload is not None else option_id)
    return True


def cleanup_completed_survey_session(db: Session, session_id: str) -> None:
    survey_session = get_active_survey_session(db, session_id)
    if survey_session and survey_session.status == SurveySessionStatus.COMPLETED:
        survey_session.status = SurveySessionStatus.INACTIVE
        db.commit()
        logger.info("Completed survey session archived | session=%s", session_id)


def build_survey_context(db: Session, session_id: str) -> Optional[str]:
    """Prompt section describing where the visitor is in the active survey."""

    survey_session = get_active_survey_session(db, session_id)
    if not survey_session:
        return None
    survey = survey_session.survey
    config = survey.survey_config or {}
    questions = survey.questions

    if survey_session.status == SurveySessionStatus.COMPLETED:
        if survey_session.completion_handled:
            return None
        survey_session.completion_handled = True
        db.commit()
        completion = config.get("completionMessage") or "Thank you for completing the survey!"
        return (
            f"SURVEY COMPLETED: The user has just answered every question of \"{survey.name}\".\n"
            f"Thank them using this completion message: {completion}\n"
            "Do not ask further survey questions."
        )

    if survey_session.status != SurveySessionStatus.ACTIVE:
        return None
    question = current_question(survey, survey_session)
    if question is None:
        return None

    index = survey_session.current_question_index or 0
    lines = [
        f"ACTIVE SURVEY: \"{config.get('title') or survey.name}\"",
        f"Question {index + 1} of {len(questions)}: {question.get('text')}",
        f"Question type: {question.get('type')}",
    ]
    options = question.get("options") or []
    if options:
        lines.append("Options (present each one exactly, in this order):")
        lines.extend(f"- id={option.get('id')} text={option.get('text')}" for option in options)
    expected = expected_bubble_type(question)
    if expected:
        lines.append(f"Present this question as a {expected} bubble.")
    if config.get("aiInstructions"):
        lines.append(f"Survey instructions: {config['aiInstructions']}")
    return "\n".join(lines)


def expected_bubble_type(question: Dict[str, Any]) -> Optional[str]:
    if question.get("type") == "rating":
        return "rating"
    if not question.get("options"):
        return None
    if question.get("type") == "multiple_choice":
        return "multiselect_menu"
    return "menu"


@dataclass
class SurveyValidation:
    is_valid: bool
    expected_message_type: Optional[str] = None
    question_index: Optional[int] = None
    errors: List[str] = field(default_factory=list)

    @property
    def needs_regeneration(self) -> bool:
        return not self.is_valid


def _menu_errors(bubble: Dict[str, Any], question: Dict[str, Any], expected: str) -> List[str]:
    errors: List[str] = []
    metadata = bubble.get("metadata") or {}
    options = metadata.get("options")
    if not isinstance(options, list):
        return ["Menu bubble missing options array in metadata"]
    expected_options = question.get("options") or []
    if len(options) != len(expected_options):
        errors.append(f"Expected {len(expected_options)} options but got {len(options)}")
    for position, option in enumerate(options, start=1):
        for key in ("id", "text", "action"):
            if not option.get(key):
                errors.append(f"Option {position} missing {key} field")
    actual_texts = [str(option.get("text") or "").lower().strip() for option in options]
    missing = []
    for item in expected_options:
        wanted = str(item.get("text", "")).lower().strip()
        if not any(wanted in actual or actual in wanted for actual in actual_texts if actual):
            missing.append(wanted)
    if missing:
        errors.append(f"Missing or modified option texts: {', '.join(missing)}")
    if expected == "multiselect_menu":
        if metadata.get("allowMultiple") is not True:
            errors.append("Multiselect menu missing allowMultiple: true")
        for key in ("minSelections", "maxSelections"):
            if not isinstance(metadata.get(key), (int, float)):
                errors.append(f"Multiselect menu missing {key} number")
    return errors


def _rating_errors(bubble: Dict[str, Any], question: Dict[str, Any]) -> List[str]:
    errors: List[str] = []
    metadata = bubble.get("metadata") or {}
    expected_min = question.get("minValue") or 1
    expected_max = question.get("maxValue") or 5
    if not isinstance(metadata.get("minValue"), (int, float)):
        errors.append("Rating bubble missing minValue number")
    elif metadata["minValue"] != expected_min:
        errors.append(f"Expected minValue {expected_min} but got {metadata['minValue']}")
    if not isinstance(metadata.get("maxValue"), (int, float)):
        errors.append("Rating bubble missing maxValue number")
    elif metadata["maxValue"] != expected_max:
        errors.append(f"Expected maxValue {expected_max} but got {metadata['maxValue']}")
    rating_type = metadata.get("ratingType")
    if rating_type not in _RATING_TYPES:
        errors.append(f"Invalid ratingType {rating_type!r}")
    return errors


def validate_survey_menu(db: Session, session_id: str, response: AIResponse) -> SurveyValidation:
    """Check the final answer offers the interactive element the current question needs."""

    survey_session = get_active_survey_session(db, session_id)
    if not survey_session or survey_session.status != SurveySessionStatus.ACTIVE:
        return SurveyValidation(is_valid=True)
    question = current_question(survey_session.survey, survey_session)
    expected = expected_bubble_type(question) if question else None
    if not expected:
        return SurveyValidation(is_valid=True)

    index = survey_session.current_question_index or 0
    bubbles = [bubble.model_dump(by_alias=True, exclude_none=True) for bubble in response.bubbles]
    candidates = [bubble for bubble in bubbles if bubble.get("messageType") == expected]
    if not candidates:
        error = f"Missing {expected} bubble for survey question {index + 1}"
        logger.error("Survey validation failed | session=%s %s", session_id, error)
        return SurveyValidation(False, expected, index, [error])

    if expected == "rating":
        errors = _rating_errors(candidates[0], question)
    else:
        errors = _menu_errors(candidates[0], question, expected)
    if errors:
        logger.error("Survey validation failed | session=%s errors=%s", session_id, errors)
    return SurveyValidation(not errors, expected, index, errors)


def _question_keys(question: Dict[str, Any], index: int) -> List[str]:
    keys = [f"q{index}", f"question_{index}", f"q_{index + 1}"]
    if question.get("id"):
        keys.insert(0, str(question["id"]))
    return keys


def _unwrap_answer(value: Any) -> Any:
    if isinstance(value, dict):
        if "rating" in value:
            return value["rating"]
        if "selected_options" in value:
            return value["selected_options"]
    return value


def _counts_as_completed(survey_session: SurveySession, question_total: int) -> bool:
    if survey_session.status == SurveySessionStatus.COMPLETED:
        return True
    if survey_session.status == SurveySessionStatus.INACTIVE:
        answered = len(survey_session.responses or {})
        return question_total > 0 and answered >= math.ceil(question_total * 0.5)
    return False


def _completion_seconds(survey_session: SurveySession) -> Optional[float]:
    finished = _as_utc(survey_session.completed_at or survey_session.updated_at)
    started = _as_utc(survey_session.created_at)
    if not finished or not started:
        return None
    return max((finished - started).total_seconds(), 0.0)


def survey_analytics(db: Session, chatbot: ChatbotConfig) -> Dict[str, Any]:
    """Completion and per-question answer statistics for every survey of a chatbot."""

    surveys = (
        db.query(Survey)
        .filter(Survey.chatbot_config_id == chatbot.id)
        .order_by(Survey.id.asc())
        .all()
    )
    breakdown: List[Dict[str, Any]] = []
    all_sessions = 0
    all_completed = 0
    durations: List[float] = []

    for survey in surveys:
        questions = survey.questions
        sessions = survey.sessions
        completed = [s for s in sessions if _counts_as_completed(s, len(questions))]
        survey_durations: List[float] = []
        for survey_session in sessions:
            finished = survey_session.status == SurveySessionStatus.COMPLETED or (
                survey_session.status == SurveySessionStatus.INACTIVE and survey_session.responses
            )
            seconds = _completion_seconds(survey_session) if finished else None
            if seconds is not None:
                survey_durations.append(seconds)

        question_analytics = []
        for index, question in enumerate(questions):
            distribution: Dict[str, int] = {}
            response_count = 0
            for survey_session in sessions:
                responses = survey_session.responses or {}
                key = next((k for k in _question_keys(question, index) if k in responses), None)
                if key is None:
                    continue
                response_count += 1
                answer = _unwrap_answer(responses[key])
                values = answer if isinstance(answer, list) else [answer]
                for value in values:
                    label = str(value)
                    distribution[label] = distribution.get(label, 0) + 1
            question_analytics.append(
                {
                    "questionId": question.get("id") or f"q{index}",
                    "questionText": question.get("text"),
                    "questionType": question.get("type"),
                    "responseCount": response_count,
                    "responseDistribution": distribution,
                }
            )

        total = len(sessions)
        breakdown.append(
            {
                "surveyId": survey.id,
                "surveyName": survey.name,
                "totalSessions": total,
                "completedSessions": len(completed),
                "abandonedSessions": total - len(completed),
                "completionRate": round(len(completed) / total * 100, 2) if total else 0,
                "avgCompletionTime": round(sum(survey_durations) / len(survey_durations), 2)
                if survey_durations
                else 0,
                "questionAnalytics": question_analytics,
            }
        )
        all_sessions += total
        all_completed += len(completed)
        durations.extend(survey_durations)

    return {
        "totalSurveys": len(surveys),
        "totalResponses": all_sessions,
        "completionRate": round(all_completed / all_sessions * 100, 2) if all_sessions else 0,
        "averageCompletionTime": round(sum(durations) / len(durations), 2) if durations else 0,
        "surveyBreakdown": breakdown,
    }
