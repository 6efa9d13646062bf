"""Parsing helpers for the multi-bubble JSON the chat model streams back.

The model answers with ``{"bubbles": [{"messageType": ..., "content": ...,
"metadata": {...}}, ...]}``. While the answer is still streaming the document
is incomplete, so everything here tolerates partial input and only reports
bubbles that are already usable by a widget.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from pydantic_core import from_json

from ..schemas.bubbles import AIResponse, Bubble

logger = logging.getLogger(__name__)

FALLBACK_TEXT = (
    "I apologize, but I'm having trouble generating a response right now. Please try again."
)

VALID_TYPES = {
    "text",
    "card",
    "menu",
    "multiselect_menu",
    "rating",
    "image",
    "quickReplies",
    "form",
    "form_submission",
    "system",
}

_TYPE_ALIASES = {
    "multiSelect_menu": "multiselect_menu",
    "multiselectMenu": "multiselect_menu",
    "multi_select_menu": "multiselect_menu",
    "MultiSelect_Menu": "multiselect_menu",
    "quickreplies": "quickReplies",
    "quick_replies": "quickReplies",
    "QuickReplies": "quickReplies",
    "formSubmission": "form_submission",
    "formsubmission": "form_submission",
}

_LOWERCASE_ALIASES = {
    "multiselect_menu": "multiselect_menu",
    "multiselectmenu": "multiselect_menu",
    "multi_select_menu": "multiselect_menu",
    "quickreplies": "quickReplies",
    "quick_replies": "quickReplies",
    "form_submission": "form_submission",
    "formsubmission": "form_submission",
    "form-submission": "form_submission",
}

_BOUNDARY_MARKERS = ("},{", "},\n{", "}, {")
_FIELD_CLOSERS = ('"}', '"}]', '"]}')
_SALVAGE_RE = re.compile(r"\{[^{}]*\"messageType\"[^{}]*\"content\"[^{}]*\}", re.DOTALL)


def normalize_message_type(message_type: Any) -> Any:
    """Map the spelling variants models produce onto the canonical bubble types."""

    if not isinstance(message_type, str):
        return message_type
    if message_type in VALID_TYPES:
        return message_type
    if message_type in _TYPE_ALIASES:
        return _TYPE_ALIASES[message_type]
    lowered = message_type.lower()
    if lowered in _LOWERCASE_ALIASES:
        return _LOWERCASE_ALIASES[lowered]
    if lowered in VALID_TYPES:
        return lowered
    return message_type


def normalize_bubbles(bubbles: List[Any]) -> List[Dict[str, Any]]:
    normalized: List[Dict[str, Any]] = []
    for bubble in bubbles:
        if not isinstance(bubble, dict):
            continue
        if "messageType" in bubble:
            bubble = {**bubble, "messageType": normalize_message_type(bubble["messageType"])}
        normalized.append(bubble)
    return normalized


def parse_streaming_content(accumulated: str) -> List[Dict[str, Any]]:
    """Best-effort parse of a possibly truncated ``{"bubbles": [...]}`` document.

    Incomplete trailing strings are dropped, so a bubble whose content is still
    being written shows up without that key. Returns ``[]`` when nothing usable
    has arrived yet.
    """

    if not accumulated.strip():
        return []
    try:
        document = from_json(accumulated, allow_partial=True)
    except ValueError:
        return []
    if not isinstance(document, dict):
        return []
    bubbles = document.get("bubbles")
    if not isinstance(bubbles, list):
        return []
    return normalize_bubbles(bubbles)


def _all_have(items: Any, keys: tuple) -> bool:
    if not isinstance(items, list) or not items:
        return False
    return all(isinstance(item, dict) and all(item.get(key) for key in keys) for item in items)


def is_bubble_complete(bubble: Any) -> bool:
    """Return True when a partially parsed bubble carries everything it needs to render."""

    if not isinstance(bubble, dict) or not bubble.get("messageType") or "content" not in bubble:
        return False

    message_type = bubble["messageType"]
    metadata = bubble.get("metadata") or {}

    if message_type == "menu":
        return _all_have(metadata.get("options"), ("id", "text", "action"))
    if message_type == "multiselect_menu":
        return (
            _all_have(metadata.get("options"), ("id", "text", "action"))
            and metadata.get("allowMultiple") is not None
            and isinstance(metadata.get("minSelections"), (int, float))
            and isinstance(metadata.get("maxSelections"), (int, float))
        )
    if message_type == "form":
        return _all_have(metadata.get("formFields"), ("id", "label", "type"))
    if message_type == "text":
        content = bubble.get("content")
        return isinstance(content, str) and bool(content.strip())
    if message_type == "card":
        buttons = metadata.get("buttons")
        if buttons:
            return _all_have(buttons, ("id", "text", "action"))
        return True
    return True


def detect_json_boundary(delta: str, accumulated: str) -> bool:
    """Cheap check for "a bubble object may just have closed" before reparsing."""

    if any(marker in delta for marker in _BOUNDARY_MARKERS):
        return True
    if '"messageType":' in accumulated and '"content":' in accumulated:
        return any(closer in delta for closer in _FIELD_CLOSERS)
    return False


def fallback_response() -> AIResponse:
    return AIResponse(bubbles=[Bubble(messageType="text", content=FALLBACK_TEXT)])


def attempt_salvage(accumulated: str) -> Optional[AIResponse]:
    """Recover a lone ``{messageType, content}`` object from a broken document."""

    fragments = [accumulated] + [match.group(0) for match in _SALVAGE_RE.finditer(accumulated)]
    for fragment in fragments:
        try:
            candidate = json.loads(fragment)
        except json.JSONDecodeError:
            continue
        if not isinstance(candidate, dict) or not isinstance(candidate.get("content"), str):
            continue
        candidate["messageType"] = normalize_message_type(candidate.get("messageType"))
        try:
            bubble = Bubble.model_validate(candidate)
        except ValidationError:
            continue
        logger.info("Salvaged single bubble from malformed model output")
        return AIResponse(bubbles=[bubble])
    return None


def parse_ai_response(accumulated: str) -> AIResponse:
    """Strictly parse and validate the final model output.

    Falls back to salvaging a single bubble, then to the canned apology bubble.
    Never raises.
    """

    try:
        document = json.loads(accumulated)
        if not isinstance(document, dict) or not isinstance(document.get("bubbles"), list):
            raise ValueError("Response is missing the bubbles array")
        document["bubbles"] = normalize_bubbles(document["bubbles"])
        response = AIResponse.model_validate(document)
        if not response.bubbles:
            raise ValueError("Response contains no bubbles")
        return response
    except (ValueError, ValidationError) as exc:
        logger.warning("Model response failed validation: %s", exc)

    salvaged = attempt_salvage(accumulated)
    if salvaged:
        return salvaged
    logger.error("Unable to salvage model response (%s chars); using fallback", len(accumulated))
    return fallback_response()


def textual_representation(content: str, metadata: Optional[Dict[str, Any]]) -> str:
    """Flatten a stored interactive bubble into text the model can read back as history."""

    original = (metadata or {}).get("originalContent")
    if not isinstance(original, dict):
        return content

    message_type = original.get("messageType")
    bubble_meta = original.get("metadata") or {}
    if message_type in {"menu", "multiselect_menu"} and bubble_meta.get("options"):
        texts = ", ".join(str(option.get("text", "")) for option in bubble_meta["options"])
        return f"[MENU] Presented options: {texts}"
    if message_type == "quickReplies" and bubble_meta.get("quickReplies"):
        return f"[QUICKREPLIES] Suggested replies: {', '.join(bubble_meta['quickReplies'])}"
    if message_type == "form" and bubble_meta.get("formFields"):
        labels = ", ".join(str(field.get("label", "")) for field in bubble_meta["formFields"])
        return f"[FORM] Form with fields: {labels}"
    if message_type == "card":
        return f"[CARD] {bubble_meta.get('title') or original.get('content') or content}"
    return original.get("content") or content
