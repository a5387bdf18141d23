"""Tests for the pydantic data contracts."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.datasight.models.conversation import ImagePart, Message, Role, TextPart, non_system_messages
from src.datasight.models.dataset import DatasetFingerprint, FileRecord
from src.datasight.models.suggestion import Suggestion, SuggestionCategory, SuggestionSet
from src.datasight.models.visualization import VisualizationSpec


def test_multipart_message_serializes_to_wire_format() -> None:
    message = Message.user([TextPart(text="Analyze"), ImagePart.from_data_url("data:image/png;base64,AA==")])

    assert message.to_payload() == {
        "role": "user",
        "content": [
            {"type": "text", "text": "Analyze"},
            {"type": "image_url", "image_url": {"url": "data:image/png;base64,AA=="}},
        ],
    }
    assert message.display_text() == "Analyze"


def test_message_parses_discriminated_parts() -> None:
    message = Message.model_validate(
        {
            "role": "user",
            "content": [{"type": "image_url", "image_url": {"url": "data:x"}}, {"type": "text", "text": "hi"}],
        }
    )

    assert isinstance(message.content[0], ImagePart)
    assert message.display_text() == "hi"


def test_image_only_message_has_no_display_text() -> None:
    assert Message.user([ImagePart.from_data_url("data:x")]).display_text() == ""


def test_role_helpers() -> None:
    assert Message.system("rules").is_system
    assert Message.assistant("hello").role is Role.ASSISTANT
    with pytest.raises(ValidationError):
        Message.model_validate({"role": "tool", "content": "x"})


def test_file_record_accepts_alias_and_field_name() -> None:
    by_alias = FileRecord.model_validate({"name": "a.csv", "type": "text/csv", "size": 1, "dataUrl": "data:x"})
    by_name = FileRecord(name="a.csv", type="text/csv", size=1, data_url="data:x")

    assert by_alias == by_name
    assert by_alias.model_dump(by_alias=True)["dataUrl"] == "data:x"
    with pytest.raises(ValidationError):
        FileRecord(name="a.csv", type="text/csv", size=-1, data_url="data:x")


def test_fingerprint_keeps_metadata_only(file_record_factory) -> None:
    files = [file_record_factory(name="a.csv"), file_record_factory(name="b.png", type="image/png")]

    fingerprint = DatasetFingerprint.from_files(files)

    assert fingerprint.file_count == 2
    assert fingerprint.file_names == ["a.csv", "b.png"]
    assert fingerprint.file_types == ["text/csv", "image/png"]
    assert "dataUrl" not in fingerprint.model_dump(by_alias=True)


def test_suggestion_category_coercion() -> None:
    assert Suggestion.model_validate({"title": "t", "description": "d", "icon": "Chart"}).category is SuggestionCategory.CHART
    assert Suggestion.model_validate({"title": "t", "description": "d", "icon": "rocket"}).category is SuggestionCategory.QUESTION
    assert Suggestion(title="t", description="d").category is SuggestionCategory.QUESTION


def test_suggestion_set_requires_items() -> None:
    with pytest.raises(ValidationError):
        SuggestionSet.model_validate({"suggestions": []})


def test_visualization_spec_requires_all_charts() -> None:
    chart = {"title": "c", "labels": ["a"], "datasets": [{"label": "x", "data": [1]}]}

    with pytest.raises(ValidationError):
        VisualizationSpec.model_validate({"pieChart": chart, "lineChart": chart})

    spec = VisualizationSpec.model_validate({"pieChart": chart, "lineChart": chart, "barChart": chart})
    assert set(spec.charts()) == {"pie", "line", "bar"}
    assert "timestamp" not in spec.to_payload()


def test_non_system_messages_leaves_out_persona() -> None:
    history = [Message.system("persona"), Message.user("q0"), Message.assistant("a0")]

    assert [message.content for message in non_system_messages(history)] == ["q0", "a0"]
