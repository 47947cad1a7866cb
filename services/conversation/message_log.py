"""Deduplicating message log contract and its in-memory implementation."""

from __future__ import annotations

from typing import Dict, Iterable, List, Protocol

from models.assistant_models import Message


class MessageLog(Protocol):
	"""Append-only store of messages, unique by id and queryable by thread.

	Adding a message whose id is already stored is a no-op.
	"""

	async def add(self, message: Message) -> bool: ...

	async def add_all(self, messages: Iterable[Message]) -> int: ...

	async def query(self, thread_id: str) -> List[Message]: ...


class InMemoryMessageLog:
	"""Keep messages in process memory, partitioned by thread id."""

	def __init__(self) -> None:
		self._messages: Dict[str, Message] = {}
		self._by_thread: Dict[str, List[str]] = {}

	async def add(self, message: Message) -> bool:
		"""Store `message` unless its id is already present. Returns True if stored."""
		if message.id in self._messages:
			return False
		self._messages[message.id] = message
		self._by_thread.setdefault(message.thread_id, []).append(message.id)
		return True

	async def add_all(self, messages: Iterable[Message]) -> int:
		"""Store each new message in order and return how many were added."""
		added = 0
		for message in messages:
			if await self.add(message):
				added += 1
		return added

	async def query(self, thread_id: str) -> List[Message]:
		"""Return the thread's messages in insertion order."""
		return [self._messages[message_id] for message_id in self._by_thread.get(thread_id, [])]

	def __len__(self) -> int:
		return len(self._messages)
