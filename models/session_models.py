"""Conversation session models for the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from models.assistant_models import Message, Run


class LoadingState(Enum):
	"""Progress steps of a conversation, in the order the UI counts them."""

	IDLE = 0
	CREATING_THREAD = 1
	THREAD_CREATED = 2
	RUNNING_ASSISTANT = 3
	PROCESSING_RESPONSE = 4
	COMPLETING_RUN = 5
	SENDING_MESSAGE = 6

	@property
	def label(self) -> str:
		return _LABELS[self]

	@property
	def is_busy(self) -> bool:
		"""True while a thread creation or send is in flight."""
		return self not in (LoadingState.IDLE, LoadingState.THREAD_CREATED)


_LABELS = {
	LoadingState.IDLE: "Ready",
	LoadingState.CREATING_THREAD: "Creating Thread",
	LoadingState.THREAD_CREATED: "Thread Created",
	LoadingState.RUNNING_ASSISTANT: "Running Assistant",
	LoadingState.PROCESSING_RESPONSE: "Processing",
	LoadingState.COMPLETING_RUN: "Completing",
	LoadingState.SENDING_MESSAGE: "Sending Message",
}


@dataclass
class ConversationState:
	"""Transient state owned by one orchestrator; never persisted."""

	loading_state: LoadingState = LoadingState.IDLE
	thread_ready: bool = False
	current_run: Optional[Run] = None
	messages: List[Message] = field(default_factory=list)
	last_error: Optional[Exception] = None
	pending_input: str = ""
	closed: bool = False

	def message_ids(self) -> set[str]:
		return {message.id for message in self.messages}
