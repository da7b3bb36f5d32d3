"""
Shared pytest fixtures for the expert chat test suite.

Provides fixtures for:
- An isolated SQLite store and attachment bucket per test
- A fake AsyncOpenAI client with scripted Responses API output
- A FastAPI app/TestClient wired to those fakes
"""

import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from main import create_app
from services.attachment_store import AttachmentStore
from utils.database_init import AsyncDatabaseInitializer


async def _aiter(items):
    for item in items:
        yield item


def text_delta(delta: str) -> SimpleNamespace:
    return SimpleNamespace(type="response.output_text.delta", delta=delta)


def function_call_response(name: str, arguments: Dict[str, Any]) -> SimpleNamespace:
    return SimpleNamespace(
        output=[SimpleNamespace(type="function_call", name=name, arguments=json.dumps(arguments))],
        usage=SimpleNamespace(input_tokens=12, output_tokens=34),
    )


class FakeResponses:
    """Stand-in for `AsyncOpenAI().responses` that records every call."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.events: List[Any] = [text_delta("Hello"), text_delta(", world")]
        self.response: Any = None
        self.error: Optional[Exception] = None

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        if kwargs.get("stream"):
            return _aiter(list(self.events))
        return self.response


class FakeOpenAI:
    def __init__(self) -> None:
        self.responses = FakeResponses()
        self.closed = False

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def db_initializer(tmp_path) -> AsyncDatabaseInitializer:
    return AsyncDatabaseInitializer(tmp_path / "db")


@pytest.fixture
def attachment_store(tmp_path) -> AttachmentStore:
    return AttachmentStore(tmp_path / "bucket", public_base_url="")


@pytest.fixture
def fake_openai() -> FakeOpenAI:
    return FakeOpenAI()


@pytest.fixture
def app(db_initializer, attachment_store, fake_openai):
    """App with shared clients attached directly (the lifespan is not run)."""
    application = create_app()
    application.state.db_initializer = db_initializer
    application.state.attachment_store = attachment_store
    application.state.openai_client = fake_openai
    return application


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def seeded_client(client) -> TestClient:
    resp = client.post("/api/experts/seed")
    assert resp.status_code == 200
    return client
