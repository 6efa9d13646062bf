import copy

import pytest
from fastapi.testclient import TestClient

from conftest import SURVEY_CONFIG, create_chatbot, signup

from chatwidget.enums import SurveySessionStatus, SurveyStatus
from chatwidget.main import app
from chatwidget.models import ChatSession, Survey, SurveySession
from chatwidget.schemas.bubbles import AIResponse
from chatwidget.services.surveys import (
    SurveyConfigError,
    build_survey_context,
    get_active_survey_session,
    handle_survey_trigger,
    record_option_selection,
    start_survey_session,
    survey_analytics,
    validate_survey_config,
    validate_survey_menu,
)


def _survey(db, chatbot, name="Onboarding", status=SurveyStatus.ACTIVE):
    survey = Survey(
        chatbot_config_id=chatbot.id,
        name=name,
        survey_config=copy.deepcopy(SURVEY_CONFIG),
        status=status,
    )
    db.add(survey)
    db.commit()
    return survey


def _chat_session(db, chatbot, session_id="s1"):
    chat_session = ChatSession(session_id=session_id, chatbot_config_id=chatbot.id)
    db.add(chat_session)
    db.commit()
    return chat_session


def test_validate_survey_config_rejects_bad_question_type():
    config = copy.deepcopy(SURVEY_CONFIG)
    config["questions"][0]["type"] = "essay"
    with pytest.raises(SurveyConfigError):
        validate_survey_config(config)
    assert validate_survey_config(SURVEY_CONFIG)["completionMessage"] == "Thanks for sharing!"


def test_trigger_keyword_starts_first_active_survey(db, chatbot):
    _survey(db, chatbot, name="Draft", status=SurveyStatus.DRAFT)
    first = _survey(db, chatbot, name="First")
    _survey(db, chatbot, name="Second")
    chat_session = _chat_session(db, chatbot)

    assert handle_survey_trigger(db, chat_session, "what's the weather") is None
    survey_session = handle_survey_trigger(db, chat_session, "I'd like to take the Survey")

    assert survey_session.survey_id == first.id
    assert survey_session.status == SurveySessionStatus.ACTIVE
    assert chat_session.active_survey_id == first.id


def test_trigger_can_target_a_survey_by_id(db, chatbot):
    _survey(db, chatbot, name="First")
    second = _survey(db, chatbot, name="Second")
    chat_session = _chat_session(db, chatbot)

    survey_session = handle_survey_trigger(db, chat_session, f"start assessment surveyId: {second.id}")

    assert survey_session.survey_id == second.id


def test_starting_another_survey_deactivates_the_previous_one(db, chatbot):
    first = _survey(db, chatbot, name="First")
    second = _survey(db, chatbot, name="Second")
    chat_session = _chat_session(db, chatbot)

    earlier = start_survey_session(db, chat_session, first)
    start_survey_session(db, chat_session, second)
    db.refresh(earlier)

    assert earlier.status == SurveySessionStatus.INACTIVE
    assert get_active_survey_session(db, "s1").survey_id == second.id


def test_option_selection_advances_and_completes(db, chatbot):
    survey = _survey(db, chatbot)
    chat_session = _chat_session(db, chatbot)
    start_survey_session(db, chat_session, survey)

    assert record_option_selection(db, "s1", "dev", None) is True
    survey_session = get_active_survey_session(db, "s1")
    assert survey_session.current_question_index == 1
    assert survey_session.responses == {"q0": "dev"}

    assert record_option_selection(db, "s1", "rating", {"rating": 4}) is True
    survey_session = get_active_survey_session(db, "s1")
    assert survey_session.status == SurveySessionStatus.COMPLETED
    assert survey_session.completed_at is not None
    assert record_option_selection(db, "s1", "dev", None) is False


def test_option_selection_without_survey_is_not_recorded(db, chatbot):
    _chat_session(db, chatbot)
    assert record_option_selection(db, "s1", "dev", None) is False
    assert record_option_selection(db, "unknown", "dev", None) is False


def test_completed_survey_context_is_emitted_once(db, chatbot):
    survey = _survey(db, chatbot)
    chat_session = _chat_session(db, chatbot)
    start_survey_session(db, chat_session, survey)

    context = build_survey_context(db, "s1")
    assert "ACTIVE SURVEY" in context
    assert "Question 1 of 2: What is your role?" in context
    assert "id=dev text=Developer" in context
    assert "menu bubble" in context

    record_option_selection(db, "s1", "dev", None)
    assert "rating bubble" in build_survey_context(db, "s1")
    record_option_selection(db, "s1", "5", 5)

    completed = build_survey_context(db, "s1")
    assert "SURVEY COMPLETED" in completed
    assert "Thanks for sharing!" in completed
    assert build_survey_context(db, "s1") is None


def _response(*bubbles):
    return AIResponse.model_validate({"bubbles": list(bubbles)})


def test_validate_survey_menu(db, chatbot):
    survey = _survey(db, chatbot)
    chat_session = _chat_session(db, chatbot)

    text_only = _response({"messageType": "text", "content": "What is your role?"})
    assert validate_survey_menu(db, "s1", text_only).is_valid

    start_survey_session(db, chat_session, survey)
    result = validate_survey_menu(db, "s1", text_only)
    assert result.needs_regeneration
    assert result.expected_message_type == "menu"
    assert result.errors == ["Missing menu bubble for survey question 1"]

    partial = _response(
        {
            "messageType": "menu",
            "content": "Role?",
            "metadata": {"options": [{"id": "dev", "text": "Developer", "action": "send_message"}]},
        }
    )
    errors = validate_survey_menu(db, "s1", partial).errors
    assert "Expected 2 options but got 1" in errors
    assert "Missing or modified option texts: product manager" in errors

    complete = _response(
        {
            "messageType": "menu",
            "content": "Role?",
            "metadata": {
                "options": [
                    {"id": "dev", "text": "Developer", "action": "send_message"},
                    {"id": "pm", "text": "Product manager", "action": "send_message"},
                ]
            },
        }
    )
    assert validate_survey_menu(db, "s1", complete).is_valid


def test_rating_question_validation(db, chatbot):
    survey = _survey(db, chatbot)
    start_survey_session(db, _chat_session(db, chatbot), survey)
    record_option_selection(db, "s1", "dev", None)

    bad = _response({"messageType": "rating", "content": "Rate us", "metadata": {"minValue": 0, "maxValue": 5}})
    errors = validate_survey_menu(db, "s1", bad).errors
    assert "Expected minValue 1 but got 0" in errors
    assert "Invalid ratingType None" in errors

    good = _response(
        {"messageType": "rating", "content": "Rate us", "metadata": {"minValue": 1, "maxValue": 5, "ratingType": "stars"}}
    )
    assert validate_survey_menu(db, "s1", good).is_valid


def test_analytics_counts_answers_per_question(db, chatbot):
    survey = _survey(db, chatbot)
    start_survey_session(db, _chat_session(db, chatbot, "a"), survey)
    record_option_selection(db, "a", "dev", None)
    record_option_selection(db, "a", "5", 5)
    start_survey_session(db, _chat_session(db, chatbot, "b"), survey)
    record_option_selection(db, "b", "pm", None)

    analytics = survey_analytics(db, chatbot)

    assert analytics["totalSurveys"] == 1
    assert analytics["totalResponses"] == 2
    assert analytics["completionRate"] == 50.0
    breakdown = analytics["surveyBreakdown"][0]
    assert breakdown["completedSessions"] == 1
    assert breakdown["abandonedSessions"] == 1
    first, second = breakdown["questionAnalytics"]
    assert first["questionId"] == "q_role"
    assert first["responseDistribution"] == {"dev": 1, "pm": 1}
    assert second["responseCount"] == 1
    assert second["responseDistribution"] == {"5": 1}


def test_inactive_session_with_half_the_answers_counts_as_completed(db, chatbot):
    survey = _survey(db, chatbot)
    db.add(
        SurveySession(
            survey_id=survey.id,
            session_id=_chat_session(db, chatbot).session_id,
            responses={"q0": "dev"},
            status=SurveySessionStatus.INACTIVE,
        )
    )
    db.commit()

    assert survey_analytics(db, chatbot)["surveyBreakdown"][0]["completedSessions"] == 1


def _create_survey(client, bot, **fields):
    payload = {"name": "Onboarding", "survey_config": SURVEY_CONFIG, "status": "active", **fields}
    response = client.post(f"/api/chatbots/{bot['guid']}/surveys", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_survey_api_lifecycle(auth_client):
    bot = create_chatbot(auth_client)
    survey = _create_survey(auth_client, bot)
    assert survey["status"] == "active"
    assert survey["survey_config"]["questions"][0]["id"] == "q_role"

    status = auth_client.get("/api/survey-sessions/visitor/status").json()
    assert status == {"hasSurvey": False, "surveySession": None}

    started = auth_client.post("/api/survey-sessions/start-survey", json={"sessionId": "visitor", "surveyId": survey["id"]})
    assert started.status_code == 200
    assert started.json()["current_question_index"] == 0

    select = auth_client.post("/api/chat/visitor/select-option", json={"optionId": "pm", "optionText": "Product manager"})
    assert select.json()["surveyResponseRecorded"] is True

    answer = auth_client.post(
        "/api/survey-sessions/response",
        json={"sessionId": "visitor", "questionId": "q_score", "response": 9},
    ).json()
    assert answer["status"] == "completed"
    assert answer["responses"] == {"q0": "pm", "q_score": 9}

    missing = auth_client.post(
        "/api/survey-sessions/response",
        json={"sessionId": "visitor", "questionId": "q_score", "response": 9},
    )
    assert missing.status_code == 404

    status = auth_client.get("/api/survey-sessions/visitor/status").json()
    assert status["hasSurvey"] is True
    assert status["surveySession"]["status"] == "completed"

    analytics = auth_client.get(f"/api/chatbots/{bot['guid']}/surveys/analytics").json()
    assert analytics["totalResponses"] == 1

    cleared = auth_client.delete(f"/api/chatbots/{bot['guid']}/surveys/history").json()
    assert cleared == {"success": True, "deletedCount": 1}


def test_invalid_survey_config_is_rejected(auth_client):
    bot = create_chatbot(auth_client)
    payload = {"name": "Broken", "survey_config": {"id": "x", "title": "X"}}
    assert auth_client.post(f"/api/chatbots/{bot['guid']}/surveys", json=payload).status_code == 422


def test_survey_update_and_patch_ownership(auth_client):
    bot = create_chatbot(auth_client)
    survey = _create_survey(auth_client, bot)

    updated = auth_client.put(
        f"/api/chatbots/{bot['guid']}/surveys/{survey['id']}", json={"name": "Renamed", "status": "archived"}
    ).json()
    assert updated["name"] == "Renamed"
    assert updated["status"] == "archived"

    stranger = TestClient(app)
    signup(stranger, email="stranger@example.com")
    assert stranger.patch(f"/api/surveys/{survey['id']}", json={"name": "Mine"}).status_code == 403
    assert auth_client.patch(f"/api/surveys/{survey['id']}", json={"status": "active"}).json()["status"] == "active"
    assert auth_client.patch("/api/surveys/9999", json={"name": "Nope"}).status_code == 404



def test_survey_update_rejects_null_for_required_fields(auth_client):
    bot = create_chatbot(auth_client)
    survey = _create_survey(auth_client, bot, description="First week")
    url = f"/api/chatbots/{bot['guid']}/surveys/{survey['id']}"

    for field in ("name", "status", "survey_config"):
        assert auth_client.put(url, json={field: None}).status_code == 422, field
    assert auth_client.patch(f"/api/surveys/{survey['id']}", json={"name": None}).status_code == 422

    cleared = auth_client.put(url, json={"description": None}).json()
    assert cleared["description"] is None
    assert cleared["name"] == "Onboarding"

def test_deleting_a_survey_detaches_chat_sessions(auth_client, db):
    bot = create_chatbot(auth_client)
    survey = _create_survey(auth_client, bot)
    auth_client.post("/api/survey-sessions/start-survey", json={"sessionId": "visitor", "surveyId": survey["id"]})

    assert auth_client.delete(f"/api/chatbots/{bot['guid']}/surveys/{survey['id']}").json() == {"success": True}

    chat_session = db.query(ChatSession).filter(ChatSession.session_id == "visitor").first()
    assert chat_session.active_survey_id is None
    assert db.query(SurveySession).count() == 0


def test_public_surveys_lists_active_only(auth_client, settings, monkeypatch):
    bot = create_chatbot(auth_client)
    active = _create_survey(auth_client, bot)
    _create_survey(auth_client, bot, name="Draft", status="draft")

    listed = auth_client.get("/api/public/surveys", params={"chatbotGuid": bot["guid"]}).json()
    assert [s["id"] for s in listed] == [active["id"]]

    assert auth_client.get("/api/public/surveys").status_code == 404
    monkeypatch.setattr(settings, "default_site_chatbot_guid", bot["guid"])
    assert len(auth_client.get("/api/public/surveys").json()) == 1
