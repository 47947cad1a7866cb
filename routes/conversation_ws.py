"""WebSocket endpoint streaming one conversation's events."""

from __future__ import annotations

import json
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, WebSocket
from starlette.websockets import WebSocketDisconnect

from services.conversation.conversation_store import ConversationStore
from services.conversation.events import ConversationEvent
from services.conversation.orchestrator import ConversationOrchestrator
from services.openai.error_classifier import AssistantServiceError

router = APIRouter()


def _require_conversation_store(websocket: WebSocket) -> ConversationStore:
	store = getattr(websocket.app.state, "conversation_store", None)
	if store is None:
		raise HTTPException(status_code=500, detail="Conversation store unavailable")
	return store


async def _send(websocket: WebSocket, payload: Dict[str, Any]) -> None:
	await websocket.send_text(json.dumps(payload))


async def _handle(websocket: WebSocket, orchestrator: ConversationOrchestrator, payload: Dict[str, Any]) -> None:
	"""Process one inbound frame; results arrive as conversation events."""
	request_id = payload.get("request_id")
	message_type = payload.get("type")
	try:
		if message_type == "message.send":
			text = (payload.get("text") or "").strip()
			if not text:
				raise ValueError("Message text is required.")
			orchestrator.submit(text)
		elif message_type == "conversation.refresh":
			await orchestrator.refresh()
		else:
			raise ValueError("Unsupported message type.")
	except AssistantServiceError as exc:
		await _send(websocket, {"type": "error", "request_id": request_id, **exc.to_payload()})
	except Exception as exc:
		await _send(websocket, {"type": "error", "request_id": request_id, "detail": str(exc)})


@router.websocket("/ws/conversations/{conversation_id}")
async def conversation_socket(
	websocket: WebSocket,
	conversation_id: str,
	store: ConversationStore = Depends(_require_conversation_store),
):
	"""Forward conversation events to the socket and accept message sends."""
	await websocket.accept()
	try:
		orchestrator = store.get(conversation_id)
	except KeyError:
		await _send(websocket, {"type": "error", "detail": "Conversation not found"})
		await websocket.close()
		return

	async def forward(event: ConversationEvent) -> None:
		await _send(websocket, event.to_payload())

	unsubscribe = orchestrator.events.subscribe(forward)
	try:
		while True:
			try:
				raw = await websocket.receive_text()
			except WebSocketDisconnect:
				break
			try:
				payload = json.loads(raw)
			except Exception:
				await _send(websocket, {"type": "error", "detail": "Payload must be JSON"})
				continue
			if not isinstance(payload, dict):
				await _send(websocket, {"type": "error", "detail": "Payload must be a JSON object"})
				continue
			await _handle(websocket, orchestrator, payload)
	finally:
		unsubscribe()
	try:
		await websocket.close()
	except Exception:
		pass
