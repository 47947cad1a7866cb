"""Simple in-memory registry of live conversations."""

from __future__ import annotations

import logging
from typing import Dict, Optional
from uuid import uuid4

from services.conversation.message_log import MessageLog
from services.conversation.orchestrator import ConversationOrchestrator
from services.openai.assistant_client import AssistantClient

LOGGER = logging.getLogger(__name__)


class ConversationStore:
	"""Own the orchestrators of open conversations, keyed by conversation id.

	All conversations share one `AssistantClient` and one message log; each
	orchestrator writes only messages of its own thread.
	"""

	def __init__(
		self,
		client: AssistantClient,
		message_log: MessageLog,
		default_assistant_id: Optional[str] = None,
		poll_interval: Optional[float] = None,
	) -> None:
		self.client = client
		self.message_log = message_log
		self.default_assistant_id = default_assistant_id
		self.poll_interval = poll_interval
		self._conversations: Dict[str, ConversationOrchestrator] = {}

	def create(self, assistant_id: Optional[str] = None) -> tuple[str, ConversationOrchestrator]:
		"""Register a new conversation; the caller starts it."""
		resolved = assistant_id or self.default_assistant_id
		if not resolved:
			raise ValueError("assistant_id is required (set OPENAI_ASSISTANT_ID or pass one).")
		conversation_id = uuid4().hex
		orchestrator = ConversationOrchestrator(
			self.client,
			self.message_log,
			resolved,
			poll_interval=self.poll_interval,
		)
		self._conversations[conversation_id] = orchestrator
		return conversation_id, orchestrator

	def get(self, conversation_id: str) -> ConversationOrchestrator:
		"""Return a conversation or raise KeyError if missing."""
		orchestrator = self._conversations.get(conversation_id)
		if orchestrator is None:
			raise KeyError(f"Conversation {conversation_id} not found")
		return orchestrator

	async def remove(self, conversation_id: str) -> None:
		"""Close and forget a conversation."""
		orchestrator = self._conversations.pop(conversation_id, None)
		if orchestrator is None:
			raise KeyError(f"Conversation {conversation_id} not found")
		await orchestrator.close()

	async def close_all(self) -> None:
		"""Close every open conversation (application shutdown)."""
		conversations, self._conversations = self._conversations, {}
		for conversation_id, orchestrator in conversations.items():
			LOGGER.info("Closing conversation %s", conversation_id)
			await orchestrator.close()

	def __len__(self) -> int:
		return len(self._conversations)
