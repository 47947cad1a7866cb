"""Typed events a conversation publishes to its presentation layer."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Tuple, Union

from models.assistant_models import Message
from models.session_models import LoadingState
from services.openai.error_classifier import AssistantServiceError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateChanged:
	state: LoadingState

	def to_payload(self) -> Dict[str, Any]:
		return {
			"type": "conversation.state",
			"state": self.state.name.lower(),
			"step": self.state.value,
			"label": self.state.label,
		}


@dataclass(frozen=True)
class MessagesAppended:
	messages: Tuple[Message, ...]

	def to_payload(self) -> Dict[str, Any]:
		return {
			"type": "conversation.messages",
			"messages": [message.model_dump() for message in self.messages],
		}


@dataclass(frozen=True)
class ErrorSurfaced:
	error: AssistantServiceError

	def to_payload(self) -> Dict[str, Any]:
		return {"type": "error", **self.error.to_payload()}


ConversationEvent = Union[StateChanged, MessagesAppended, ErrorSurfaced]
Listener = Callable[[ConversationEvent], Union[Awaitable[None], None]]


class EventChannel:
	"""Explicit publish/subscribe channel owned by one conversation."""

	def __init__(self) -> None:
		self._listeners: List[Listener] = []

	def subscribe(self, listener: Listener) -> Callable[[], None]:
		"""Register `listener` and return a callable that unregisters it."""
		self._listeners.append(listener)

		def unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return unsubscribe

	async def publish(self, event: ConversationEvent) -> None:
		"""Deliver `event` to every listener; sync and async listeners are both accepted."""
		for listener in list(self._listeners):
			try:
				result = listener(event)
				if inspect.isawaitable(result):
					await result
			except Exception:
				# Listener failures never reach the orchestrator.
				LOGGER.exception("Conversation listener failed on %s", type(event).__name__)
