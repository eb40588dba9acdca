from __future__ import annotations

import pytest

from synapse_core.core.config import DirectiveSettings
from synapse_core.directives.message import MessageParser, build_ui_element, parse_message
from synapse_core.directives.scanner import ActionDirective, ButtonDirective, FileUploadDirective
from synapse_core.models import CanonicalAction, UIElement

SCENARIO = "Sure! ACTION:navigate_course|slug:new-course BUTTON:b1|label:Go|action:navigate"


def test_scenario_message_is_split_into_text_widgets_and_actions() -> None:
    parsed = parse_message(SCENARIO, final=True)

    assert parsed.cleaned_text == "Sure!"
    assert parsed.ui_elements == [UIElement(type="button", id="b1", label="Go", action="navigate")]
    assert parsed.actions == [CanonicalAction(name="navigate_course", params={"slug": "new-course"})]


def test_streaming_parse_hides_pending_directive() -> None:
    parsed = parse_message(SCENARIO, final=False)

    assert parsed.cleaned_text == "Sure!"
    assert parsed.ui_elements == []
    assert [action.name for action in parsed.actions] == ["navigate_course"]


def test_every_stream_prefix_parses_without_error() -> None:
    for cut in range(len(SCENARIO) + 1):
        parsed = parse_message(SCENARIO[:cut])
        assert "ACTION:" not in parsed.cleaned_text
        assert "BUTTON:" not in parsed.cleaned_text


def test_button_defaults() -> None:
    element = build_ui_element(ButtonDirective(name="b2", raw_params={"topic": "Graphs"}))

    assert element == UIElement(type="button", id="b2", label="Button", action=None, params={"topic": "Graphs"})


def test_file_upload_defaults() -> None:
    element = build_ui_element(FileUploadDirective(name="up", raw_params={"language": "sv"}))

    assert element.message == "Upload files"
    assert element.action == "generate_course"
    assert element.params == {"language": "sv", "buttonLabel": "Generate"}


def test_file_upload_keeps_explicit_values() -> None:
    element = build_ui_element(
        FileUploadDirective(
            name="exam",
            raw_params={"message": "Drop old exams", "action": "start_exam_snipe", "buttonLabel": "Snipe"},
        )
    )

    assert element.message == "Drop old exams"
    assert element.action == "start_exam_snipe"
    assert element.params == {"buttonLabel": "Snipe"}


def test_action_directive_is_not_a_widget() -> None:
    with pytest.raises(ValueError):
        build_ui_element(ActionDirective(name="navigate"))


def test_repeated_widget_id_keeps_latest_copy() -> None:
    text = "BUTTON:b1|label:Go\nBUTTON:b1|label:Go to course|action:navigate_course|slug:algebra\n"

    parsed = MessageParser().parse(text, final=True)

    assert len(parsed.ui_elements) == 1
    assert parsed.ui_elements[0].label == "Go to course"
    assert parsed.ui_elements[0].params == {"slug": "algebra"}


def test_parser_honours_configured_long_form_keys() -> None:
    parser = MessageParser(DirectiveSettings(long_form_keys="note"))

    parsed = parser.parse("ACTION:remember|note:two words\n", final=True)

    assert parsed.action("remember").params == {"note": "two words"}
    assert parsed.has_action("remember")
    assert not parsed.has_action("navigate")
