"""
Tests for message normalization.
"""

from chat_relay.normalizer import normalize_message, normalize_messages


def test_text_preferred_over_content():
    message = normalize_message({"id": "m1", "role": "assistant", "text": "from text", "content": "from content"})

    assert message.content == "from text"


def test_content_used_when_text_missing_or_empty():
    assert normalize_message({"content": "body"}).content == "body"
    assert normalize_message({"text": "", "content": "body"}).content == "body"


def test_missing_text_fields_give_empty_string():
    message = normalize_message({"id": "m1", "role": "user", "text": None})

    assert message.content == ""
    assert message.files == []
    assert message.created_at is None


def test_created_at_accepts_both_spellings():
    assert normalize_message({"createdAt": "2025-01-15T10:00:00Z"}).created_at == "2025-01-15T10:00:00Z"
    assert normalize_message({"created_at": "2025-01-15T10:00:00Z"}).created_at == "2025-01-15T10:00:00Z"


def test_files_passed_through():
    files = [{"name": "app/page.tsx", "meta": {"lang": "tsx"}}, {"source": "v0"}]

    assert normalize_message({"files": files}).files == files


def test_non_mapping_record_maps_to_defaults():
    message = normalize_message("garbage")

    assert message.model_dump() == {"id": "", "role": "", "content": "", "created_at": None, "files": []}


def test_order_and_length_preserved():
    raw = [{"id": str(i), "content": f"message {i}"} for i in range(5)] + [None, 42]

    normalized = normalize_messages(raw)

    assert len(normalized) == len(raw)
    assert [m.id for m in normalized[:5]] == ["0", "1", "2", "3", "4"]
    assert all(isinstance(m.content, str) for m in normalized)


def test_none_and_empty_input():
    assert normalize_messages(None) == []
    assert normalize_messages([]) == []


def test_non_sequence_input_yields_empty_list():
    assert normalize_messages(5) == []
    assert normalize_messages("abc") == []
    assert normalize_messages({"a": 1}) == []
