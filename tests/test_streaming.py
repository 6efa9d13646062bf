import copy

import pytest

from conftest import SURVEY_CONFIG

from chatwidget.enums import SurveyStatus
from chatwidget.models import ChatSession, Message, Survey
from chatwidget.services import streaming
from chatwidget.services.bubbles import FALLBACK_TEXT
from chatwidget.services.streaming import build_history, chatbot_temperature, generate_bubble_stream
from chatwidget.services.surveys import start_survey_session

MENU_OPTIONS = [
    {"id": "dev", "text": "Developer", "action": "send_message"},
    {"id": "pm", "text": "Product manager", "action": "send_message"},
]


def _run(db, chatbot, session_id="s1", message="Hello", history=None):
    return list(generate_bubble_stream(db, chatbot, session_id, message, history or []))


def _chat_session(db, chatbot, session_id="s1"):
    chat_session = ChatSession(session_id=session_id, chatbot_config_id=chatbot.id)
    db.add(chat_session)
    db.commit()
    return chat_session


def test_bubbles_stream_in_order_with_menus_deferred(db, chatbot, fake_openai):
    _chat_session(db, chatbot)
    fake_openai.queue_bubbles(
        [
            {"messageType": "text", "content": "Hi there!"},
            {"messageType": "menu", "content": "Pick one", "metadata": {"options": MENU_OPTIONS}},
            {"messageType": "card", "content": "Plans", "metadata": {"title": "Our plans"}},
        ]
    )

    chunks = _run(db, chatbot)

    assert [c.type for c in chunks] == ["bubble", "bubble", "bubble", "complete"]
    bubbles = [c.bubble for c in chunks[:3]]
    assert [b["messageType"] for b in bubbles] == ["text", "card", "menu"]
    assert all(b["sender"] == "assistant" for b in bubbles)
    assert bubbles[0]["metadata"]["isFollowUp"] is True
    assert "isFollowUp" not in bubbles[2]["metadata"]
    assert chunks[-1].content == "streaming_complete"


def test_small_deltas_yield_each_bubble_once(db, chatbot, fake_openai):
    _chat_session(db, chatbot)
    fake_openai.queue_bubbles(
        [
            {"messageType": "text", "content": "First answer."},
            {"messageType": "text", "content": "Second answer."},
            {"messageType": "quickReplies", "content": "Anything else?", "metadata": {"quickReplies": ["Yes", "No"]}},
        ],
        chunk_size=7,
    )

    chunks = _run(db, chatbot)

    contents = [c.bubble["content"] for c in chunks if c.type == "bubble"]
    assert contents == ["First answer.", "Second answer.", "Anything else?"]
    assert chunks[-1].type == "complete"



def test_bubbles_are_paced_by_configured_delay(db, chatbot, fake_openai, settings, monkeypatch):
    _chat_session(db, chatbot)
    monkeypatch.setattr(settings, "bubble_delay_ms", 500)
    clock = [100.0]
    events = []

    def _sleep(seconds):
        events.append(("sleep", seconds))
        clock[0] += seconds

    monkeypatch.setattr(streaming.time, "monotonic", lambda: clock[0])
    monkeypatch.setattr(streaming.time, "sleep", _sleep)
    fake_openai.queue_bubbles(
        [
            {"messageType": "text", "content": "One"},
            {"messageType": "text", "content": "Two"},
            {"messageType": "text", "content": "Three"},
        ]
    )

    for chunk in generate_bubble_stream(db, chatbot, "s1", "Hello", []):
        if chunk.type == "bubble":
            events.append(("bubble", chunk.bubble["content"]))
            clock[0] += 0.2

    assert events == [
        ("bubble", "One"),
        ("sleep", pytest.approx(0.3)),
        ("bubble", "Two"),
        ("sleep", pytest.approx(0.3)),
        ("bubble", "Three"),
    ]

def test_request_uses_chatbot_settings_and_json_schema(db, chatbot, fake_openai):
    _chat_session(db, chatbot)
    chatbot.temperature = 3
    chatbot.max_tokens = 250
    db.commit()
    fake_openai.queue_bubbles([{"messageType": "text", "content": "Ok"}])

    _run(db, chatbot, history=[{"role": "user", "content": "Earlier"}])

    call = fake_openai.calls[0]
    assert call["stream"] is True
    assert call["temperature"] == 0.3
    assert call["max_tokens"] == 250
    assert call["response_format"]["type"] == "json_schema"
    assert call["messages"][0]["role"] == "system"
    assert call["messages"][0]["content"].startswith("You help shoppers.")
    assert call["messages"][1:] == [{"role": "user", "content": "Earlier"}, {"role": "user", "content": "Hello"}]


def test_temperature_defaults_when_unset(chatbot):
    chatbot.temperature = 0
    assert chatbot_temperature(chatbot) == 0.7


def test_failed_request_is_retried_once(db, chatbot, fake_openai):
    _chat_session(db, chatbot)
    fake_openai.queue_error(RuntimeError("connection reset"))
    fake_openai.queue_bubbles([{"messageType": "text", "content": "Recovered"}])

    chunks = _run(db, chatbot)

    assert len(fake_openai.calls) == 2
    assert chunks[0].bubble["content"] == "Recovered"


def test_second_failure_yields_fallback_then_complete(db, chatbot, fake_openai):
    _chat_session(db, chatbot)
    fake_openai.queue_error(RuntimeError("down"))
    fake_openai.queue_error(RuntimeError("still down"))

    chunks = _run(db, chatbot)

    assert [c.type for c in chunks] == ["bubble", "complete"]
    assert chunks[0].bubble["content"] == FALLBACK_TEXT
    assert chunks[0].bubble["sender"] == "assistant"


def test_malformed_output_becomes_fallback_bubble(db, chatbot, fake_openai):
    _chat_session(db, chatbot)
    fake_openai.queue_raw("I cannot answer in JSON today")

    chunks = _run(db, chatbot)

    assert [c.type for c in chunks] == ["bubble", "complete"]
    assert chunks[0].bubble["content"] == FALLBACK_TEXT


def _active_survey(db, chatbot, chat_session):
    survey = Survey(
        chatbot_config_id=chatbot.id,
        name="Onboarding",
        survey_config=copy.deepcopy(SURVEY_CONFIG),
        status=SurveyStatus.ACTIVE,
    )
    db.add(survey)
    db.commit()
    return start_survey_session(db, chat_session, survey)


def test_invalid_survey_answer_is_regenerated(db, chatbot, fake_openai):
    chat_session = _chat_session(db, chatbot)
    _active_survey(db, chatbot, chat_session)
    fake_openai.queue_bubbles([{"messageType": "text", "content": "What is your role?"}])
    fake_openai.queue_reply(
        [{"messageType": "menu", "content": "What is your role?", "metadata": {"options": MENU_OPTIONS}}]
    )

    chunks = _run(db, chatbot)

    bubbles = [c.bubble for c in chunks if c.type == "bubble"]
    assert [b["messageType"] for b in bubbles] == ["text", "menu"]
    assert len(bubbles[1]["metadata"]["options"]) == 2
    retry_call = fake_openai.calls[1]
    assert retry_call["stream"] is False
    assert "CRITICAL VALIDATION REQUIREMENTS" in retry_call["messages"][0]["content"]
    assert "ACTIVE SURVEY" in fake_openai.calls[0]["messages"][0]["content"]


def test_regeneration_that_stays_invalid_keeps_original(db, chatbot, fake_openai):
    chat_session = _chat_session(db, chatbot)
    _active_survey(db, chatbot, chat_session)
    fake_openai.queue_bubbles([{"messageType": "text", "content": "Tell me your role"}])
    fake_openai.queue_reply([{"messageType": "text", "content": "Still text"}])

    chunks = _run(db, chatbot)

    contents = [c.bubble["content"] for c in chunks if c.type == "bubble"]
    assert contents == ["Tell me your role"]
    assert chunks[-1].type == "complete"


def test_build_history_flattens_bot_messages(db, chatbot):
    _chat_session(db, chatbot)
    rows = [
        Message(session_id="s1", content="Hi", sender="user"),
        Message(
            session_id="s1",
            content="Choose",
            sender="bot",
            message_type="menu",
            metadata_json={
                "originalContent": {
                    "messageType": "menu",
                    "content": "Choose",
                    "metadata": {"options": [{"text": "Pricing"}, {"text": "Support"}]},
                }
            },
        ),
        Message(session_id="s1", content="", sender="bot"),
        Message(session_id="s1", content="Pricing", sender="user"),
    ]
    db.add_all(rows)
    db.commit()

    history = build_history(db, "s1", exclude_message_id=rows[-1].id)

    assert history == [
        {"role": "user", "content": "Hi"},
        {"role": "assistant", "content": "[MENU] Presented options: Pricing, Support"},
    ]
    assert len(build_history(db, "s1", limit=1)) == 1
