"""Typed async client for the Assistants API thread/run/message endpoints."""

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from openai import AsyncOpenAI
from pydantic import BaseModel

from models.assistant_models import Message, MessageList, Run, Thread
from services.openai.error_classifier import InvalidRequestError, classify

LOGGER = logging.getLogger(__name__)

ASSISTANTS_BETA_HEADERS = {"OpenAI-Beta": "assistants=v2"}

ModelT = TypeVar("ModelT", bound=BaseModel)


class AssistantClient:
    """Thin wrapper over the remote assistant operations.

    The client never retries: the injected `AsyncOpenAI` instance should be
    built with `max_retries=0` (see `build_openai_client`), and every failure
    is raised as an `AssistantServiceError` subclass chosen by
    `error_classifier.classify`. Retry policy belongs to the caller.
    """

    def __init__(self, client: AsyncOpenAI) -> None:
        if client is None:
            raise ValueError("AsyncOpenAI client is required.")
        self.client = client

    async def create_thread(self) -> Thread:
        """Create a new conversation thread."""
        response = await self._request("POST", "/threads")
        thread = self._decode(response, Thread)
        LOGGER.info("Created thread %s", thread.id)
        return thread

    async def retrieve_thread(self, thread_id: str) -> Thread:
        """Fetch an existing thread, confirming it is still usable."""
        _require(thread_id=thread_id)
        response = await self._request("GET", f"/threads/{thread_id}")
        return self._decode(response, Thread)

    async def post_message(self, thread_id: str, message: Message) -> None:
        """Add a message to the thread. Success means accepted, not processed."""
        _require(thread_id=thread_id)
        await self._request("POST", f"/threads/{thread_id}/messages", body=message.to_request())
        LOGGER.info("Posted message %s to thread %s", message.id, thread_id)

    async def start_run(self, thread_id: str, assistant_id: str) -> Run:
        """Start an assistant run on the thread; the returned run is not yet terminal."""
        _require(thread_id=thread_id, assistant_id=assistant_id)
        response = await self._request(
            "POST", f"/threads/{thread_id}/runs", body={"assistant_id": assistant_id}
        )
        run = self._decode(response, Run)
        LOGGER.info("Started run %s on thread %s (status=%s)", run.id, thread_id, run.status)
        return run

    async def get_run_status(self, thread_id: str, run_id: str) -> Run:
        """Fetch the current state of a run."""
        _require(thread_id=thread_id, run_id=run_id)
        response = await self._request("GET", f"/threads/{thread_id}/runs/{run_id}")
        return self._decode(response, Run)

    async def list_messages(self, thread_id: str) -> List[Message]:
        """Return the messages the service currently holds for the thread."""
        _require(thread_id=thread_id)
        response = await self._request("GET", f"/threads/{thread_id}/messages")
        return self._decode(response, MessageList).data

    async def close(self) -> None:
        await self.client.close()

    async def _request(
        self, method: str, path: str, body: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        """Issue one request and return the raw 2xx response.

        Non-2xx statuses surface from the SDK as `openai.APIStatusError` and
        transport failures as `openai.APIConnectionError`; both are classified.
        """
        options = {"headers": dict(ASSISTANTS_BETA_HEADERS)}
        try:
            if method == "GET":
                return await self.client.get(path, cast_to=httpx.Response, options=options)
            return await self.client.post(path, cast_to=httpx.Response, body=body, options=options)
        except Exception as exc:
            error = classify(exc)
            LOGGER.error("%s %s failed: %s", method, path, error.message)
            raise error from exc

    @staticmethod
    def _decode(response: httpx.Response, model: Type[ModelT]) -> ModelT:
        """Parse a success body into `model`, raising `DecodeError` when it does not fit."""
        try:
            return model.model_validate(response.json())
        except Exception as exc:
            error = classify(exc)
            LOGGER.error("Could not decode %s from %s: %s", model.__name__, response.url, error.message)
            raise error from exc


def build_openai_client(api_key: Optional[str] = None, base_url: Optional[str] = None, **kwargs: Any) -> AsyncOpenAI:
    """Create an `AsyncOpenAI` instance with SDK-level retries disabled."""
    kwargs.setdefault("max_retries", 0)
    return AsyncOpenAI(api_key=api_key, base_url=base_url, **kwargs)


def _require(**values: str) -> None:
    for name, value in values.items():
        if not value or not str(value).strip():
            raise InvalidRequestError(f"{name} is required")
