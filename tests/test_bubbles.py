import json

from chatwidget.services.bubbles import (
    FALLBACK_TEXT,
    detect_json_boundary,
    is_bubble_complete,
    normalize_message_type,
    parse_ai_response,
    parse_streaming_content,
    textual_representation,
)


def test_normalize_message_type_variants():
    assert normalize_message_type("multiSelect_menu") == "multiselect_menu"
    assert normalize_message_type("MultiSelect_Menu") == "multiselect_menu"
    assert normalize_message_type("quick_replies") == "quickReplies"
    assert normalize_message_type("QUICKREPLIES") == "quickReplies"
    assert normalize_message_type("form-submission") == "form_submission"
    assert normalize_message_type("TEXT") == "text"
    assert normalize_message_type("carousel") == "carousel"


def test_parse_streaming_content_drops_unfinished_strings():
    partial = '{"bubbles":[{"messageType":"text","content":"Hello"},{"messageType":"menu","content":"Pi'
    bubbles = parse_streaming_content(partial)
    assert bubbles[0] == {"messageType": "text", "content": "Hello"}
    assert bubbles[1]["messageType"] == "menu"
    assert "content" not in bubbles[1]


def test_parse_streaming_content_tolerates_noise():
    assert parse_streaming_content("") == []
    assert parse_streaming_content("not json") == []
    assert parse_streaming_content('{"other": 1}') == []
    bubbles = parse_streaming_content('{"bubbles":[{"messageType":"quick_replies","content":"x"}]}')
    assert bubbles[0]["messageType"] == "quickReplies"


def test_is_bubble_complete_rules():
    assert not is_bubble_complete({"messageType": "text"})
    assert not is_bubble_complete({"messageType": "text", "content": "  "})
    assert is_bubble_complete({"messageType": "text", "content": "Hi"})

    option = {"id": "a", "text": "A", "action": "send_message"}
    assert not is_bubble_complete({"messageType": "menu", "content": "", "metadata": {"options": []}})
    assert is_bubble_complete({"messageType": "menu", "content": "", "metadata": {"options": [option]}})
    assert not is_bubble_complete(
        {"messageType": "menu", "content": "", "metadata": {"options": [{"id": "a", "text": "A"}]}}
    )

    multiselect = {"options": [option], "allowMultiple": True, "minSelections": 1}
    assert not is_bubble_complete({"messageType": "multiselect_menu", "content": "", "metadata": multiselect})
    multiselect["maxSelections"] = 2
    assert is_bubble_complete({"messageType": "multiselect_menu", "content": "", "metadata": multiselect})

    field = {"id": "email", "label": "Email", "type": "email"}
    assert is_bubble_complete({"messageType": "form", "content": "", "metadata": {"formFields": [field]}})
    assert not is_bubble_complete({"messageType": "form", "content": "", "metadata": {}})

    assert is_bubble_complete({"messageType": "card", "content": "", "metadata": {"title": "T"}})
    assert not is_bubble_complete(
        {"messageType": "card", "content": "", "metadata": {"buttons": [{"id": "b", "text": "Go"}]}}
    )
    assert is_bubble_complete({"messageType": "rating", "content": "Rate us"})


def test_detect_json_boundary():
    assert detect_json_boundary('"},{"', "anything")
    assert detect_json_boundary("}, {", "anything")
    assert not detect_json_boundary('"}', '{"bubbles":[{"messageType":"text"')
    assert detect_json_boundary('"}', '{"bubbles":[{"messageType":"text","content":"Hi"}')
    assert not detect_json_boundary("Hel", '{"bubbles":[{"messageType":"text","content":"Hel')


def test_parse_ai_response_valid_document():
    text = json.dumps(
        {
            "bubbles": [
                {"messageType": "text", "content": "Hi"},
                {"messageType": "quickreplies", "content": "Pick", "metadata": {"quickReplies": ["A", "B"]}},
            ]
        }
    )
    response = parse_ai_response(text)
    assert [b.message_type for b in response.bubbles] == ["text", "quickReplies"]
    assert response.bubbles[1].metadata.quick_replies == ["A", "B"]


def test_parse_ai_response_salvages_single_bubble():
    response = parse_ai_response('Sure! {"messageType": "text", "content": "Salvaged"} trailing')
    assert len(response.bubbles) == 1
    assert response.bubbles[0].content == "Salvaged"


def test_parse_ai_response_falls_back():
    for broken in ("", "plain words", '{"bubbles": []}', '{"bubbles": [{"messageType": "video", "content": "x"}]}'):
        response = parse_ai_response(broken)
        assert len(response.bubbles) == 1
        assert response.bubbles[0].content == FALLBACK_TEXT


def test_textual_representation():
    menu = {
        "originalContent": {
            "messageType": "menu",
            "content": "Choose",
            "metadata": {"options": [{"text": "Pricing"}, {"text": "Support"}]},
        }
    }
    assert textual_representation("Choose", menu) == "[MENU] Presented options: Pricing, Support"

    replies = {"originalContent": {"messageType": "quickReplies", "metadata": {"quickReplies": ["Yes", "No"]}}}
    assert textual_representation("", replies) == "[QUICKREPLIES] Suggested replies: Yes, No"

    form = {"originalContent": {"messageType": "form", "metadata": {"formFields": [{"label": "Name"}, {"label": "Email"}]}}}
    assert textual_representation("", form) == "[FORM] Form with fields: Name, Email"

    card = {"originalContent": {"messageType": "card", "content": "Body", "metadata": {"title": "Plans"}}}
    assert textual_representation("Body", card) == "[CARD] Plans"

    assert textual_representation("plain", {}) == "plain"
    assert textual_representation("plain", None) == "plain"
