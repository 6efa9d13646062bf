import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Generator, List, Optional, Tuple

from openai import OpenAI
from sqlalchemy.orm import Session

from ..config import get_settings
from ..models import ChatbotConfig, Message
from ..schemas.bubbles import MULTI_BUBBLE_RESPONSE_SCHEMA, AIResponse, dump_bubble
from .bubbles import (
    detect_json_boundary,
    fallback_response,
    is_bubble_complete,
    parse_ai_response,
    parse_streaming_content,
    textual_representation,
)
from .knowledge import build_website_context
from .surveys import (
    SurveyValidation,
    build_survey_context,
    cleanup_completed_survey_session,
    current_question,
    get_active_survey_session,
    validate_survey_menu,
)

logger = logging.getLogger(__name__)
_settings = get_settings()
_client = OpenAI(api_key=_settings.openai_api_key.get_secret_value())

RETRY_DELAY_SECONDS = 1.0
DEFAULT_TEMPERATURE = 0.7
DEFERRED_TYPES = {"menu", "multiselect_menu"}

BUBBLE_FORMAT_INSTRUCTIONS = """
RESPONSE FORMAT:
Always answer with a JSON object {"bubbles": [...]}. Each bubble is
{"messageType": ..., "content": ..., "metadata": {...}}.
- text: plain conversational text in content.
- card: metadata.title, optional metadata.description, metadata.imageUrl and metadata.buttons [{id, text, action, payload}].
- menu: a single-choice list, metadata.options [{id, text, action, payload}].
- multiselect_menu: like menu plus metadata.allowMultiple true, metadata.minSelections and metadata.maxSelections.
- rating: metadata.minValue, metadata.maxValue, metadata.ratingType (stars, numbers or scale).
- quickReplies: metadata.quickReplies as a list of short strings.
- form: metadata.formFields [{id, label, type (text, email or textarea), placeholder, required}] and metadata.submitButton.
- image: metadata.imageUrl with a caption in content.
Split long answers into several short bubbles. Never wrap the JSON in markdown.
""".strip()


@dataclass
class StreamChunk:
    type: str
    bubble: Optional[Dict[str, Any]] = None
    content: Optional[str] = None


class ChatError(Exception):
    """Raised when the language model cannot be reached."""


def chatbot_temperature(chatbot: ChatbotConfig) -> float:
    if not chatbot.temperature:
        return DEFAULT_TEMPERATURE
    return chatbot.temperature / 10


def build_system_prompt(db: Session, chatbot: ChatbotConfig, session_id: str, query: str) -> str:
    """Chatbot persona plus bubble format, survey progress and website knowledge."""

    sections = [chatbot.system_prompt or "You are a helpful assistant.", BUBBLE_FORMAT_INSTRUCTIONS]
    survey_context = build_survey_context(db, session_id)
    if survey_context:
        sections.append(survey_context)
    website_context = build_website_context(db, chatbot.id, query)
    if website_context:
        sections.append(
            "RELEVANT CONTEXT FROM WEBSITE:\n"
            f"{website_context}\n\n"
            "Use this context when it is relevant to the visitor's question."
        )
    return "\n\n".join(sections)


def build_history(
    db: Session,
    session_id: str,
    limit: Optional[int] = None,
    exclude_message_id: Optional[int] = None,
) -> List[Dict[str, str]]:
    """Recent conversation turns in chat-completions format, oldest first."""

    limit = limit or _settings.chat_history_limit
    query = db.query(Message).filter(Message.session_id == session_id)
    if exclude_message_id is not None:
        query = query.filter(Message.id != exclude_message_id)
    rows = query.order_by(Message.id.desc()).limit(limit).all()

    history: List[Dict[str, str]] = []
    for row in reversed(rows):
        if row.sender == "user":
            history.append({"role": "user", "content": row.content})
            continue
        content = textual_representation(row.content, row.metadata_json)
        if content and content.strip():
            history.append({"role": "assistant", "content": content})
    return history


def _completion_kwargs(chatbot: ChatbotConfig, messages: List[Dict[str, str]]) -> Dict[str, Any]:
    return {
        "model": chatbot.model or _settings.default_model,
        "messages": messages,
        "temperature": chatbot_temperature(chatbot),
        "max_tokens": chatbot.max_tokens or 1000,
        "response_format": {"type": "json_schema", "json_schema": MULTI_BUBBLE_RESPONSE_SCHEMA},
    }


def _open_stream(chatbot: ChatbotConfig, messages: List[Dict[str, str]]):
    kwargs = _completion_kwargs(chatbot, messages)
    try:
        return _client.chat.completions.create(stream=True, **kwargs)
    except Exception as exc:  # noqa: BLE001
        logger.warning("OpenAI stream request failed, retrying once: %s", exc)
    time.sleep(RETRY_DELAY_SECONDS)
    try:
        return _client.chat.completions.create(stream=True, **kwargs)
    except Exception as exc:  # noqa: BLE001
        raise ChatError("Language model request failed") from exc


def _regeneration_prompt(system_prompt: str, validation: SurveyValidation, question: Dict[str, Any]) -> str:
    expected = validation.expected_message_type
    number = (validation.question_index or 0) + 1
    lines = ["", "CRITICAL VALIDATION REQUIREMENTS:"]
    if expected in DEFERRED_TYPES:
        options = question.get("options") or []
        lines.append(f'- Question {number} requires a bubble with messageType "{expected}"')
        lines.append(f"- Include exactly {len(options)} options in metadata.options")
        lines.append('- Each option needs {id, text, action: "send_message"}')
        lines.append("- Expected option texts: " + ", ".join(f'"{o.get("text")}"' for o in options))
        if expected == "multiselect_menu":
            lines.append("- Set metadata.allowMultiple true with numeric minSelections and maxSelections")
    elif expected == "rating":
        lines.append(f'- Question {number} requires a bubble with messageType "rating"')
        lines.append(f"- metadata.minValue: {question.get('minValue') or 1}")
        lines.append(f"- metadata.maxValue: {question.get('maxValue') or 5}")
        lines.append(f"- metadata.ratingType: \"{question.get('ratingType') or 'stars'}\"")
    lines.append("PREVIOUS ERRORS TO FIX:")
    lines.extend(f"- {error}" for error in validation.errors)
    return system_prompt + "\n".join(lines)


def _regenerate(
    db: Session,
    chatbot: ChatbotConfig,
    session_id: str,
    messages: List[Dict[str, str]],
    validation: SurveyValidation,
) -> Optional[AIResponse]:
    """One non-streaming retry with the survey requirements spelled out."""

    survey_session = get_active_survey_session(db, session_id)
    question = current_question(survey_session.survey, survey_session) if survey_session else None
    if not question:
        return None
    retry_messages = [
        {"role": "system", "content": _regeneration_prompt(messages[0]["content"], validation, question)},
        *messages[1:],
    ]
    try:
        completion = _client.chat.completions.create(stream=False, **_completion_kwargs(chatbot, retry_messages))
        content = completion.choices[0].message.content
    except Exception as exc:  # noqa: BLE001
        logger.exception("Survey regeneration failed: %s", exc)
        return None
    if not content:
        return None
    regenerated = parse_ai_response(content)
    if validate_survey_menu(db, session_id, regenerated).is_valid:
        logger.info("Using regenerated response | session=%s bubbles=%s", session_id, len(regenerated.bubbles))
        return regenerated
    logger.warning("Regenerated response still invalid | session=%s", session_id)
    return None


def _bubble_key(bubble: Dict[str, Any]) -> Tuple[Any, Any]:
    return bubble.get("messageType"), bubble.get("content")


def _prepare_bubble(bubble: Dict[str, Any], is_last: bool) -> Dict[str, Any]:
    prepared = dict(bubble)
    if not prepared.get("sender") or prepared["sender"] == "bot":
        prepared["sender"] = "assistant"
    metadata = dict(prepared.get("metadata") or {})
    if is_last:
        metadata.pop("isFollowUp", None)
    else:
        metadata["isFollowUp"] = True
    prepared["metadata"] = metadata
    return prepared


class _Pacer:
    """Keeps a minimum gap between consecutive bubbles."""

    def __init__(self, delay_ms: int):
        self._delay = max(delay_ms, 0) / 1000
        self._last: Optional[float] = None

    def wait(self) -> None:
        if self._last is not None and self._delay:
            remaining = self._delay - (time.monotonic() - self._last)
            if remaining > 0:
                time.sleep(remaining)
        self._last = time.monotonic()


def generate_bubble_stream(
    db: Session,
    chatbot: ChatbotConfig,
    session_id: str,
    user_message: str,
    history: List[Dict[str, str]],
) -> Generator[StreamChunk, None, None]:
    """Stream the model's multi-bubble answer, yielding each bubble once it is renderable."""

    pacer = _Pacer(_settings.bubble_delay_ms)
    streamed: Dict[int, Tuple[Any, Any]] = {}
    finished = False
    try:
        system_prompt = build_system_prompt(db, chatbot, session_id, user_message)
        messages = [{"role": "system", "content": system_prompt}, *history, {"role": "user", "content": user_message}]
        logger.info(
            "OpenAI request | chatbot=%s session=%s model=%s history=%s",
            chatbot.guid,
            session_id,
            chatbot.model or _settings.default_model,
            len(history),
        )
        stream = _open_stream(chatbot, messages)

        accumulated = ""
        for chunk in stream:
            delta = chunk.choices[0].delta.content if chunk.choices else None
            if not delta:
                continue
            accumulated += delta
            if not detect_json_boundary(delta, accumulated):
                continue
            bubbles = parse_streaming_content(accumulated)
            for index, bubble in enumerate(bubbles):
                if index in streamed or bubble.get("messageType") in DEFERRED_TYPES:
                    continue
                if not is_bubble_complete(bubble):
                    continue
                pacer.wait()
                streamed[index] = _bubble_key(bubble)
                yield StreamChunk("bubble", bubble=_prepare_bubble(bubble, index == len(bubbles) - 1))

        logger.info("OpenAI response | session=%s chars=%s streamed=%s", session_id, len(accumulated), len(streamed))
        response = parse_ai_response(accumulated)
        validation = validate_survey_menu(db, session_id, response)
        if validation.needs_regeneration:
            response = _regenerate(db, chatbot, session_id, messages, validation) or response

        # A regenerated or salvaged answer may differ from what was already streamed.
        final = [dump_bubble(bubble) for bubble in response.bubbles]
        pending = [
            bubble for index, bubble in enumerate(final) if streamed.get(index) != _bubble_key(bubble)
        ]
        for position, bubble in enumerate(pending):
            pacer.wait()
            yield StreamChunk("bubble", bubble=_prepare_bubble(bubble, position == len(pending) - 1))

        finished = True
        yield StreamChunk("complete", content="streaming_complete")
        cleanup_completed_survey_session(db, session_id)
    except Exception as exc:  # noqa: BLE001
        if finished:
            logger.exception("Survey cleanup failed | session=%s: %s", session_id, exc)
            return
        logger.exception("Bubble stream failed | session=%s: %s", session_id, exc)
        fallback = dump_bubble(fallback_response().bubbles[0])
        yield StreamChunk("bubble", bubble=_prepare_bubble(fallback, True))
        yield StreamChunk("complete", content="streaming_complete")
