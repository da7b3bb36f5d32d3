"""Tests for message/session helpers and the persona registry."""

from models.expert_record import ExpertRecord
from models.session_models import (
    NEW_CHAT_TITLE,
    ChatMessage,
    SessionRecord,
    parts_text,
    session_patch_for,
    submission_preview,
)
from services.personas import DEFAULT_SYSTEM_PROMPT, SYSTEM_PRESETS, expert_seeds, resolve_system_prompt


def _text(message_id: str, role: str, text: str) -> ChatMessage:
    return ChatMessage(id=message_id, role=role, parts=[{"type": "text", "text": text}])


def test_parts_text_joins_text_parts_with_blank_line():
    parts = [
        {"type": "text", "text": "first"},
        {"type": "file", "mediaType": "image/png", "url": "/a.png"},
        {"type": "text", "text": "second"},
    ]
    assert parts_text(parts) == "first\n\nsecond"
    assert parts_text([], fallback="stored") == "stored"


def test_message_from_dict_falls_back_to_content():
    message = ChatMessage.from_dict({"id": "m1", "role": "assistant", "content": "hi"})
    assert message.parts == [{"type": "text", "text": "hi"}]
    assert message.text == "hi"


def test_message_to_dict_omits_missing_timestamp():
    assert _text("m1", "user", "x").to_dict() == {
        "id": "m1",
        "role": "user",
        "parts": [{"type": "text", "text": "x"}],
    }


def test_session_from_dict_defaults_title():
    session = SessionRecord.from_dict({"id": "s1", "expert_id": "e1", "title": None})
    assert session.title == NEW_CHAT_TITLE


def test_expert_record_round_trips_through_dict():
    record = ExpertRecord(id="e1", slug="kate", name="Kate", agent_name="Kate", system_prompt="p", sort_order=2)
    assert ExpertRecord.from_dict(record.to_dict()) == record


def test_submission_preview_summarizes_attachments():
    assert submission_preview("  hello  ", ["a.png"]) == "hello"
    assert submission_preview("", ["a.png"]) == "Attachment: a.png"
    assert submission_preview("", ["a.png", "b.pdf", "c.txt"]) == "Attachments: a.png +2"
    assert submission_preview("", []) == ""
    assert len(submission_preview("x" * 900, [])) == 500


def test_session_patch_derives_title_only_from_placeholder():
    batch = [_text("m1", "user", "Plan a week in Kyoto " * 5), _text("m2", "assistant", "Sure!")]

    patch = session_patch_for(batch, NEW_CHAT_TITLE)
    assert patch["last_message"] == "Sure!"
    assert len(patch["title"]) == 60
    assert patch["title"].startswith("Plan a week in Kyoto")

    assert "title" not in session_patch_for(batch, "Already named")


def test_session_patch_skips_empty_preview():
    batch = [ChatMessage(id="m1", role="user", parts=[{"type": "file", "mediaType": "image/png", "url": "/x"}])]
    assert session_patch_for(batch, "Named") == {}


def test_resolve_system_prompt_uses_preset_or_default():
    for key, prompt in SYSTEM_PRESETS.items():
        assert resolve_system_prompt(key) == prompt
    assert resolve_system_prompt("unknown") == DEFAULT_SYSTEM_PROMPT
    assert resolve_system_prompt(None) == DEFAULT_SYSTEM_PROMPT


def test_expert_seeds_are_unique_and_ordered():
    seeds = expert_seeds()
    assert len(seeds) == 4
    assert len({s.slug for s in seeds}) == 4
    assert [s.sort_order for s in seeds] == [0, 1, 2, 3]
    assert all(s.system_prompt and s.agent_name for s in seeds)
