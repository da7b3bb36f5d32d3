"""Tests for the OpenAI-backed completion and expert generation services."""

from types import SimpleNamespace

import pytest

from conftest import FakeOpenAI, function_call_response, text_delta
from models.attachment import AttachmentFile
from models.session_models import ChatMessage
from services.openai.chat_completion import DEFAULT_MODEL, ChatCompletionStreamer, resolve_model
from services.openai.expert_generator import ExpertFieldGenerator
from services.openai.expert_schema import FUNCTION_NAME
from services.openai.media_inputs import build_history_inputs, inline_stored_files, to_data_url
from services.openai.response_parser import parse_function_call


def test_history_inputs_map_text_and_files():
    messages = [
        ChatMessage(
            id="u1",
            role="user",
            parts=[
                {"type": "text", "text": "What is in these?"},
                {"type": "file", "mediaType": "image/png", "url": "https://x/a.png"},
                {"type": "file", "mediaType": "application/pdf", "filename": "b.pdf", "url": "https://x/b.pdf"},
            ],
        ),
        ChatMessage(id="a1", role="assistant", parts=[{"type": "text", "text": "A cat and a memo."}]),
        ChatMessage(id="a2", role="assistant", parts=[]),
    ]
    inputs = build_history_inputs(messages)

    assert len(inputs) == 2
    assert inputs[0]["content"] == [
        {"type": "input_text", "text": "What is in these?"},
        {"type": "input_image", "image_url": "https://x/a.png"},
        {"type": "input_file", "file_url": "https://x/b.pdf", "filename": "b.pdf"},
    ]
    assert inputs[1] == {
        "type": "message",
        "role": "assistant",
        "content": [{"type": "output_text", "text": "A cat and a memo."}],
    }


def test_relative_attachment_urls_are_not_sent():
    message = ChatMessage(
        id="u1",
        role="user",
        parts=[
            {"type": "text", "text": "Describe this"},
            {"type": "file", "mediaType": "image/png", "url": "/attachments/sessions/s1/1-k-a.png"},
        ],
    )
    assert build_history_inputs([message])[0]["content"] == [{"type": "input_text", "text": "Describe this"}]


def test_data_url_files_are_sent_inline():
    url = to_data_url(b"%PDF", "application/pdf")
    assert url == "data:application/pdf;base64,JVBERg=="
    message = ChatMessage(
        id="u1",
        role="user",
        parts=[{"type": "file", "mediaType": "application/pdf", "filename": "memo.pdf", "url": url}],
    )
    assert build_history_inputs([message])[0]["content"] == [
        {"type": "input_file", "file_data": url, "filename": "memo.pdf"},
    ]


@pytest.mark.asyncio
async def test_inline_stored_files_reads_from_the_store(attachment_store):
    [part] = await attachment_store.save_files("s1", [AttachmentFile("a.png", "image/png", b"PNG")])
    foreign = {"type": "file", "mediaType": "image/png", "url": "https://cdn.example.com/b.png"}
    missing = {"type": "file", "mediaType": "image/png", "url": "/attachments/sessions/s1/gone.png"}
    message = ChatMessage(id="u1", role="user", parts=[part, foreign, missing])

    [inlined] = await inline_stored_files([message], attachment_store)

    assert inlined.parts[0]["url"] == to_data_url(b"PNG", "image/png")
    assert inlined.parts[1] == foreign
    assert inlined.parts[2] == missing
    assert message.parts[0]["url"] == part["url"]
    assert [c["type"] for c in build_history_inputs([inlined])[0]["content"]] == ["input_image", "input_image"]


def test_resolve_model_reads_environment(monkeypatch):
    monkeypatch.delenv("OPENAI_MODEL", raising=False)
    assert resolve_model() == DEFAULT_MODEL
    monkeypatch.setenv("OPENAI_MODEL", "gpt-test")
    assert resolve_model() == "gpt-test"


@pytest.mark.asyncio
async def test_stream_text_yields_deltas():
    client = FakeOpenAI()
    client.responses.events = [
        SimpleNamespace(type="response.created"),
        text_delta("Hel"),
        text_delta("lo"),
        SimpleNamespace(type="response.completed"),
    ]
    streamer = ChatCompletionStreamer(client)
    messages = [ChatMessage(id="u1", role="user", parts=[{"type": "text", "text": "Hi"}])]

    deltas = [d async for d in streamer.stream_text(messages=messages, system_prompt="Be brief.")]

    assert deltas == ["Hel", "lo"]
    [call] = client.responses.calls
    assert call["stream"] is True
    assert call["instructions"] == "Be brief."


@pytest.mark.asyncio
async def test_stream_text_raises_on_failed_event():
    client = FakeOpenAI()
    client.responses.events = [text_delta("x"), SimpleNamespace(type="error", message="rate limited")]
    streamer = ChatCompletionStreamer(client)
    messages = [ChatMessage(id="u1", role="user", parts=[{"type": "text", "text": "Hi"}])]

    with pytest.raises(RuntimeError, match="rate limited"):
        async for _ in streamer.stream_text(messages=messages, system_prompt="p"):
            pass


@pytest.mark.asyncio
async def test_stream_text_reports_failed_response_detail():
    client = FakeOpenAI()
    failed = SimpleNamespace(
        type="response.failed",
        response=SimpleNamespace(error=SimpleNamespace(code="server_error", message="model crashed")),
    )
    client.responses.events = [failed]
    streamer = ChatCompletionStreamer(client)
    messages = [ChatMessage(id="u1", role="user", parts=[{"type": "text", "text": "Hi"}])]

    with pytest.raises(RuntimeError, match="model crashed"):
        async for _ in streamer.stream_text(messages=messages, system_prompt="p"):
            pass


@pytest.mark.asyncio
async def test_stream_text_rejects_empty_history():
    streamer = ChatCompletionStreamer(FakeOpenAI())
    with pytest.raises(ValueError):
        async for _ in streamer.stream_text(messages=[], system_prompt="p"):
            pass


def test_parse_function_call_errors():
    with pytest.raises(RuntimeError):
        parse_function_call(SimpleNamespace(output=[]), tool_name=FUNCTION_NAME)
    bad = SimpleNamespace(output=[SimpleNamespace(type="function_call", name=FUNCTION_NAME, arguments="{nope")])
    with pytest.raises(ValueError):
        parse_function_call(bad, tool_name=FUNCTION_NAME)


@pytest.mark.asyncio
async def test_expert_generator_forces_tool_call():
    client = FakeOpenAI()
    client.responses.response = function_call_response(
        FUNCTION_NAME,
        {"system_prompt": "You are Kate.", "suggestion_question": "Where to next?"},
    )
    result = await ExpertFieldGenerator(client).generate("Kate", language_hint="en")

    assert result["system_prompt"] == "You are Kate."
    assert result["suggestion_question"] == "Where to next?"
    assert result["usage"] == {"input_tokens": 12, "output_tokens": 34}
    [call] = client.responses.calls
    assert call["tool_choice"] == {"type": "function", "name": FUNCTION_NAME}


@pytest.mark.asyncio
async def test_expert_generator_rejects_blank_fields():
    client = FakeOpenAI()
    client.responses.response = function_call_response(
        FUNCTION_NAME, {"system_prompt": " ", "suggestion_question": "q"}
    )
    with pytest.raises(ValueError):
        await ExpertFieldGenerator(client).generate("Kate")
