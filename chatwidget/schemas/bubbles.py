"""Structured chat bubble format shared by the model, the stream and stored messages."""

from typing import Any, List, Literal, Optional, Union, get_args

from pydantic import BaseModel, ConfigDict, Field

BubbleMessageType = Literal[
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
]


class BubbleButton(BaseModel):
    id: str
    text: str
    action: str
    payload: Any = None


class BubbleOption(BaseModel):
    id: str
    text: str
    icon: Optional[str] = None
    action: str
    payload: Any = None


class FormField(BaseModel):
    id: str
    label: str
    type: Literal["text", "email", "textarea"]
    placeholder: Optional[str] = None
    required: Optional[bool] = None
    value: Optional[str] = None


class BubbleMetadata(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, alias="imageUrl")
    buttons: Optional[List[BubbleButton]] = None
    options: Optional[List[BubbleOption]] = None
    quick_replies: Optional[List[str]] = Field(None, alias="quickReplies")
    form_fields: Optional[List[FormField]] = Field(None, alias="formFields")
    submit_button: Optional[BubbleButton] = Field(None, alias="submitButton")
    min_value: Optional[Union[int, float]] = Field(None, alias="minValue")
    max_value: Optional[Union[int, float]] = Field(None, alias="maxValue")
    step: Optional[Union[int, float]] = None
    rating_type: Optional[Literal["stars", "numbers", "scale"]] = Field(None, alias="ratingType")
    allow_multiple: Optional[bool] = Field(None, alias="allowMultiple")
    min_selections: Optional[int] = Field(None, alias="minSelections")
    max_selections: Optional[int] = Field(None, alias="maxSelections")


class Bubble(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    message_type: BubbleMessageType = Field(alias="messageType")
    content: str
    metadata: Optional[BubbleMetadata] = None


class AIResponse(BaseModel):
    bubbles: List[Bubble]


def dump_bubble(bubble: Bubble) -> dict:
    """Wire representation of a validated bubble (camelCase, unset keys dropped)."""

    return bubble.model_dump(by_alias=True, exclude_none=True)


_ACTION_ITEM = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "text": {"type": "string"},
        "action": {"type": "string"},
        "payload": {},
    },
    "required": ["id", "text", "action"],
}

MULTI_BUBBLE_RESPONSE_SCHEMA = {
    "name": "multi_bubble_response",
    "schema": {
        "type": "object",
        "properties": {
            "bubbles": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "messageType": {
                            "type": "string",
                            "enum": list(get_args(BubbleMessageType)),
                        },
                        "content": {"type": "string"},
                        "metadata": {
                            "type": "object",
                            "properties": {
                                "title": {"type": "string"},
                                "description": {"type": "string"},
                                "imageUrl": {"type": "string"},
                                "buttons": {"type": "array", "items": _ACTION_ITEM},
                                "options": {
                                    "type": "array",
                                    "items": {
                                        "type": "object",
                                        "properties": {
                                            "id": {"type": "string"},
                                            "text": {"type": "string"},
                                            "icon": {"type": "string"},
                                            "action": {"type": "string"},
                                            "payload": {},
                                        },
                                        "required": ["id", "text", "action"],
                                    },
                                },
                                "quickReplies": {"type": "array", "items": {"type": "string"}},
                                "formFields": {
                                    "type": "array",
                                    "items": {
                                        "type": "object",
                                        "properties": {
                                            "id": {"type": "string"},
                                            "label": {"type": "string"},
                                            "type": {
                                                "type": "string",
                                                "enum": ["text", "email", "textarea"],
                                            },
                                            "placeholder": {"type": "string"},
                                            "required": {"type": "boolean"},
                                            "value": {"type": "string"},
                                        },
                                        "required": ["id", "label", "type"],
                                    },
                                },
                                "submitButton": _ACTION_ITEM,
                                "minValue": {"type": "number"},
                                "maxValue": {"type": "number"},
                                "step": {"type": "number"},
                                "ratingType": {
                                    "type": "string",
                                    "enum": ["stars", "numbers", "scale"],
                                },
                                "allowMultiple": {"type": "boolean"},
                                "minSelections": {"type": "number"},
                                "maxSelections": {"type": "number"},
                            },
                        },
                    },
                    "required": ["messageType", "content"],
                },
            }
        },
        "required": ["bubbles"],
    },
}
