"""FastAPI routes for assistant conversations."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.conversation_controller import (
	close_conversation,
	get_conversation,
	list_messages,
	refresh_conversation,
	send_message,
	start_conversation,
)

router = APIRouter(prefix="/conversations")


class StartPayload(BaseModel):
	assistant_id: Optional[str] = None


class MessagePayload(BaseModel):
	text: str
	wait: bool = True


@router.post("")
async def start_conversation_route(request: Request, payload: StartPayload):
	try:
		return await start_conversation(request, payload.assistant_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/{conversation_id}")
async def get_conversation_route(request: Request, conversation_id: str):
	try:
		return await get_conversation(request, conversation_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/{conversation_id}/messages")
async def post_message_route(request: Request, conversation_id: str, payload: MessagePayload):
	try:
		return await send_message(request, conversation_id, payload.text, payload.wait)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/{conversation_id}/messages")
async def list_messages_route(request: Request, conversation_id: str, order: str = "recent"):
	try:
		return await list_messages(request, conversation_id, order)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/{conversation_id}/refresh")
async def refresh_conversation_route(request: Request, conversation_id: str):
	try:
		return await refresh_conversation(request, conversation_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.delete("/{conversation_id}")
async def close_conversation_route(request: Request, conversation_id: str):
	try:
		return await close_conversation(request, conversation_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
