import json

import pytest

from prompt_studio.content import (
    ModulizedContent,
    StandardContent,
    StructuredContent,
    content_from_dict,
    content_to_dict,
    parse_content,
)
from prompt_studio.errors import ContentValidationError

STANDARD_OUTPUT = json.dumps(
    {
        "structure_type": "standard",
        "segments": [
            {"type": "system", "content": "You are a careful reviewer."},
            {"type": "user", "content": "Review this pull request."},
        ],
    }
)


def test_standard_output_is_parsed_in_order():
    content = parse_content(STANDARD_OUTPUT, "standard")

    assert isinstance(content, StandardContent)
    assert [s.type for s in content.segments] == ["system", "user"]
    assert [s.order for s in content.segments] == [0, 1]
    assert all(s.id for s in content.segments)


def test_structured_request_accepts_structured_output():
    raw = json.dumps(
        {
            "structure_type": "structured",
            "sections": [{"title": "Role", "description": "Who", "content": "A tutor"}],
        }
    )
    content = parse_content(raw, "structured")

    assert isinstance(content, StructuredContent)
    assert content.sections[0].title == "Role"
    assert content.sections[0].description == "Who"


def test_mismatched_structure_type_is_rejected():
    with pytest.raises(ContentValidationError, match="mismatch"):
        parse_content(STANDARD_OUTPUT, "structured")


def test_missing_tag_is_rejected():
    raw = json.dumps({"segments": [{"type": "system", "content": "x"}]})
    with pytest.raises(ContentValidationError):
        parse_content(raw, "standard")


def test_invalid_json_is_rejected():
    with pytest.raises(ContentValidationError):
        parse_content("Sure! Here is your prompt: {", "standard")


def test_single_code_fence_is_tolerated():
    content = parse_content(f"```json\n{STANDARD_OUTPUT}\n```", "standard")
    assert len(content.segments) == 2


def test_unknown_segment_type_is_rejected():
    raw = json.dumps({"structure_type": "standard", "segments": [{"type": "narrator", "content": "x"}]})
    with pytest.raises(ContentValidationError):
        parse_content(raw, "standard")


def test_module_wrapper_id_becomes_wrapper_list():
    raw = json.dumps(
        {
            "structure_type": "modulized",
            "modules": [{"title": "Tone", "content": "Be concise", "wrapper_id": "tone-wrapper"}],
        }
    )
    content = parse_content(raw, "modulized")

    assert isinstance(content, ModulizedContent)
    assert content.modules[0].wrappers == ["tone-wrapper"]


def test_stored_ids_survive_reload():
    raw = json.dumps(
        {
            "structure_type": "advanced",
            "blocks": [
                {
                    "title": "Setup",
                    "modules": [{"title": "Context", "content": "Project background"}],
                }
            ],
        }
    )
    content = parse_content(raw, "advanced")
    reloaded = content_from_dict(content_to_dict(content), "advanced")

    assert reloaded.blocks[0].id == content.blocks[0].id
    assert reloaded.blocks[0].modules[0].id == content.blocks[0].modules[0].id


def test_unknown_expected_structure_type_raises_value_error():
    with pytest.raises(ValueError):
        content_from_dict({"structure_type": "poem"}, "poem")
