"""Conversation lifecycle helpers for the HTTP surface."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request

from models.assistant_models import Message
from services.conversation.conversation_store import ConversationStore
from services.conversation.orchestrator import ConversationOrchestrator
from services.openai.error_classifier import ConversationBusyError


def _store(request: Request) -> ConversationStore:
	store = getattr(request.app.state, "conversation_store", None)
	if store is None:
		raise HTTPException(status_code=500, detail="Conversation store unavailable")
	return store


def _get(request: Request, conversation_id: str) -> ConversationOrchestrator:
	try:
		return _store(request).get(conversation_id)
	except KeyError as exc:
		raise HTTPException(status_code=404, detail=str(exc)) from exc


def describe(conversation_id: str, orchestrator: ConversationOrchestrator) -> Dict[str, Any]:
	"""Return the presentation view of a conversation's state."""
	state = orchestrator.state
	return {
		"conversation_id": conversation_id,
		"thread_id": orchestrator.thread_id,
		"assistant_id": orchestrator.assistant_id,
		"state": state.loading_state.name.lower(),
		"step": state.loading_state.value,
		"label": state.loading_state.label,
		"thread_ready": state.thread_ready,
		"pending_input": state.pending_input,
		"message_count": len(state.messages),
		"closed": state.closed,
		"error": state.last_error.to_payload() if state.last_error is not None else None,
	}


def _dump(messages: List[Message]) -> List[Dict[str, Any]]:
	return [message.model_dump() for message in messages]


async def start_conversation(request: Request, assistant_id: Optional[str]) -> Dict[str, Any]:
	"""Create a conversation and its remote thread."""
	try:
		conversation_id, orchestrator = _store(request).create(assistant_id)
	except ValueError as exc:
		raise HTTPException(status_code=400, detail=str(exc)) from exc
	await orchestrator.start()
	return describe(conversation_id, orchestrator)


async def get_conversation(request: Request, conversation_id: str) -> Dict[str, Any]:
	return describe(conversation_id, _get(request, conversation_id))


async def send_message(request: Request, conversation_id: str, text: str, wait: bool = True) -> Dict[str, Any]:
	"""Send a user message; with `wait` the reply is harvested before returning.

	A conversation whose thread creation failed retries it first.
	"""
	orchestrator = _get(request, conversation_id)
	if orchestrator.thread_id is None and not orchestrator.is_busy:
		await orchestrator.start()
	try:
		if wait:
			appended = await orchestrator.send_message(text)
		else:
			orchestrator.submit(text)
			appended = []
	except ConversationBusyError as exc:
		raise HTTPException(status_code=409, detail=exc.message) from exc
	result = describe(conversation_id, orchestrator)
	result["appended"] = _dump(appended)
	return result


async def list_messages(request: Request, conversation_id: str, order: str = "recent") -> Dict[str, Any]:
	"""Return the conversation's messages, most recent first unless `order=chronological`."""
	orchestrator = _get(request, conversation_id)
	if order not in ("recent", "chronological"):
		raise HTTPException(status_code=400, detail="order must be 'recent' or 'chronological'")
	messages = orchestrator.recent_first() if order == "recent" else orchestrator.messages
	return {"conversation_id": conversation_id, "order": order, "messages": _dump(messages)}


async def refresh_conversation(request: Request, conversation_id: str) -> Dict[str, Any]:
	orchestrator = _get(request, conversation_id)
	try:
		appended = await orchestrator.refresh()
	except ConversationBusyError as exc:
		raise HTTPException(status_code=409, detail=exc.message) from exc
	result = describe(conversation_id, orchestrator)
	result["appended"] = _dump(appended)
	return result


async def close_conversation(request: Request, conversation_id: str) -> Dict[str, Any]:
	try:
		await _store(request).remove(conversation_id)
	except KeyError as exc:
		raise HTTPException(status_code=404, detail=str(exc)) from exc
	return {"conversation_id": conversation_id, "closed": True}
