"""Pytest configuration and shared fixtures for all tests.

This module provides:
- Message, run and thread factories
- A mocked `AssistantClient` for orchestrator and route tests
- An `AssistantClient` wired to an `httpx.MockTransport`
"""

from typing import Any, Callable, Dict, List, Optional
from unittest.mock import AsyncMock

import httpx
import pytest
from _pytest.config import Config

from models.assistant_models import Message, MessageContent, MessageText, Run, Thread
from services.conversation.message_log import InMemoryMessageLog
from services.openai.assistant_client import AssistantClient, build_openai_client

THREAD_ID = "thread_1"
ASSISTANT_ID = "asst_1"
TEST_BASE_URL = "https://api.test/v1"

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config: Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")
    config.addinivalue_line("markers", "asyncio: Async tests")


# ============================================================================
# FACTORIES
# ============================================================================


def _message(
    message_id: str,
    role: str = "assistant",
    created_at: int = 100,
    text: str = "hello",
    thread_id: str = THREAD_ID,
) -> Message:
    return Message(
        id=message_id,
        created_at=created_at,
        thread_id=thread_id,
        role=role,
        content=[MessageContent(type="text", text=MessageText(value=text))],
    )


def _run(status: str, run_id: str = "run_1", thread_id: str = THREAD_ID, error: Optional[str] = None) -> Run:
    payload: Dict[str, Any] = {"id": run_id, "thread_id": thread_id, "status": status}
    if error is not None:
        payload["last_error"] = {"code": "server_error", "message": error}
    return Run.model_validate(payload)


@pytest.fixture
def make_message() -> Callable[..., Message]:
    """Provide a factory for text messages."""
    return _message


@pytest.fixture
def make_run() -> Callable[..., Run]:
    """Provide a factory for runs in a given status."""
    return _run


# ============================================================================
# CLIENT FIXTURES
# ============================================================================


@pytest.fixture
def message_log() -> InMemoryMessageLog:
    """Provide an empty in-memory message log."""
    return InMemoryMessageLog()


@pytest.fixture
def assistant_client() -> AsyncMock:
    """Provide a mocked AssistantClient whose happy path completes a run immediately."""
    client = AsyncMock(spec=AssistantClient)
    client.create_thread.return_value = Thread(id=THREAD_ID)
    client.retrieve_thread.return_value = Thread(id=THREAD_ID)
    client.post_message.return_value = None
    client.start_run.return_value = _run("queued")
    client.get_run_status.return_value = _run("completed")
    client.list_messages.return_value = []
    return client


class RecordingTransport:
    """Collect requests and answer them with a scripted handler."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.handler = handler
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture
def http_assistant_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], tuple]:
    """Build an AssistantClient whose HTTP traffic goes to `handler`.

    Returns a factory yielding `(client, transport)`; `transport.requests`
    holds every request the SDK sent.
    """

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> tuple:
        transport = RecordingTransport(handler)
        openai_client = build_openai_client(
            api_key="test-key",
            base_url=TEST_BASE_URL,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(transport)),
        )
        return AssistantClient(openai_client), transport

    return factory
