"""Conversation lifecycle: thread creation, sends, runs, and harvesting replies.

One `ConversationOrchestrator` owns one remote thread. Every step is a single
awaited call, so a conversation moves strictly through
create -> send -> run -> poll -> harvest and always comes back to `IDLE`.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Iterable, List, Optional
from uuid import uuid4

from models.assistant_models import Message, MessageContent, MessageText, Thread
from models.session_models import ConversationState, LoadingState
from services.conversation.events import ErrorSurfaced, EventChannel, MessagesAppended, StateChanged
from services.conversation.message_log import MessageLog
from services.conversation.run_poller import RunPoller
from services.openai.assistant_client import AssistantClient
from services.openai.error_classifier import ConversationBusyError, classify

LOGGER = logging.getLogger(__name__)


class ConversationOrchestrator:
	"""State machine for a single assistant conversation.

	Args:
		client: Remote assistant operations.
		message_log: Shared deduplicating log; this orchestrator only writes
			messages of its own thread.
		assistant_id: Assistant that runs on the thread.
		poller: Optional `RunPoller`; one is built on `client` when omitted.
		events: Optional channel the presentation layer listens on.
		poll_interval: Seconds between run status checks (poller default if None).
		id_factory: Generator for client-side message ids.
	"""

	def __init__(
		self,
		client: AssistantClient,
		message_log: MessageLog,
		assistant_id: str,
		*,
		poller: Optional[RunPoller] = None,
		events: Optional[EventChannel] = None,
		poll_interval: Optional[float] = None,
		id_factory: Callable[[], str] = lambda: uuid4().hex,
	) -> None:
		if client is None:
			raise ValueError("AssistantClient is required.")
		if not assistant_id:
			raise ValueError("assistant_id is required.")
		self.client = client
		self.message_log = message_log
		self.assistant_id = assistant_id
		self.poller = poller or RunPoller(client)
		self.events = events or EventChannel()
		self.poll_interval = poll_interval
		self._id_factory = id_factory
		self.thread: Optional[Thread] = None
		self.state = ConversationState()
		self._send_task: Optional[asyncio.Task] = None

	@property
	def thread_id(self) -> Optional[str]:
		return self.thread.id if self.thread else None

	@property
	def loading_state(self) -> LoadingState:
		return self.state.loading_state

	@property
	def messages(self) -> List[Message]:
		"""In-memory view, oldest first."""
		return list(self.state.messages)

	@property
	def is_busy(self) -> bool:
		return self.state.loading_state.is_busy

	def recent_first(self) -> List[Message]:
		"""In-memory view in presentation order, most recent first."""
		return list(reversed(self.state.messages))

	# Thread management

	async def start(self) -> Optional[Thread]:
		"""Create the conversation thread and load any messages already logged for it.

		Returns the thread, or None when creation failed (the error is surfaced).
		Calling again after a failure retries; after success it is a no-op.
		"""
		if self.thread is not None or self.state.closed:
			return self.thread

		await self._set_state(LoadingState.CREATING_THREAD)
		try:
			thread = await self.client.create_thread()
			self.thread = thread
			self.state.thread_ready = True
			await self._set_state(LoadingState.THREAD_CREATED)
			await self._load_known_messages(thread.id)
		except Exception as exc:
			await self._fail(exc)
		return self.thread

	async def _load_known_messages(self, thread_id: str) -> None:
		known = await self.message_log.query(thread_id)
		if not known:
			return
		self.state.messages = sorted(known, key=lambda message: message.created_at)
		await self.events.publish(MessagesAppended(tuple(self.state.messages)))

	# Sending

	async def send_message(self, text: str) -> List[Message]:
		"""Send `text`, run the assistant, and return the assistant replies appended.

		No-op (no API calls, no state change) without a thread or for blank
		text. Raises `ConversationBusyError` while a previous send is in
		flight. Every other failure is surfaced on `events` and the state
		returns to `IDLE`; the optimistic user message stays in the log. A send
		interrupted by `close()` returns an empty list.
		"""
		if self.thread is None or self.state.closed or not text or not text.strip():
			return []
		if self.is_busy:
			LOGGER.warning("Rejected send on thread %s while %s", self.thread.id, self.loading_state.label)
			raise ConversationBusyError()

		thread_id = self.thread.id
		user_message = self._build_user_message(thread_id, text)
		self.state.pending_input = text
		# Claim the conversation before the first await so overlapping sends are rejected.
		self.state.loading_state = LoadingState.SENDING_MESSAGE

		try:
			await self._append([user_message])
			await self._set_state(LoadingState.SENDING_MESSAGE)
			if not self.state.thread_ready:
				await self.client.retrieve_thread(thread_id)
				self.state.thread_ready = True
			await self.client.post_message(thread_id, user_message)
			self.state.pending_input = ""
			run = await self.client.start_run(thread_id, self.assistant_id)
			self.state.current_run = run
			await self._set_state(LoadingState.RUNNING_ASSISTANT)

			run = await self.poller.poll(thread_id, run.id, self.poll_interval)
			self.state.current_run = run
			await self._set_state(LoadingState.COMPLETING_RUN)

			remote_messages = await self.client.list_messages(thread_id)
			harvested = await self._harvest(remote_messages)
		except asyncio.CancelledError:
			LOGGER.info("Send on thread %s cancelled", thread_id)
			await self._set_state(LoadingState.IDLE)
			# Interrupted by close() rather than by the caller: end normally.
			if self.state.closed and not _cancel_requested():
				return []
			raise
		except Exception as exc:
			await self._fail(exc)
			return []
		finally:
			self.state.current_run = None

		await self._set_state(LoadingState.IDLE)
		return harvested

	def submit(self, text: str) -> asyncio.Task:
		"""Run `send_message` in a background task tracked for teardown.

		The busy check happens before the task is created.
		"""
		if self.is_busy or (self._send_task is not None and not self._send_task.done()):
			raise ConversationBusyError()
		self._send_task = asyncio.create_task(self.send_message(text))
		return self._send_task

	async def refresh(self) -> List[Message]:
		"""Pull the thread's messages and append assistant replies not yet seen."""
		if self.thread is None or self.state.closed:
			return []
		if self.is_busy:
			raise ConversationBusyError()

		await self._set_state(LoadingState.PROCESSING_RESPONSE)
		try:
			harvested = await self._harvest(await self.client.list_messages(self.thread.id))
		except asyncio.CancelledError:
			await self._set_state(LoadingState.IDLE)
			raise
		except Exception as exc:
			await self._fail(exc)
			return []
		await self._set_state(LoadingState.IDLE)
		return harvested

	async def close(self) -> None:
		"""Tear down: stop any in-flight poll and background send."""
		self.state.closed = True
		self.poller.cancel()
		task = self._send_task
		if task is not None and not task.done():
			task.cancel()
			try:
				await task
			except asyncio.CancelledError:
				pass
		self._send_task = None
		self.state.loading_state = LoadingState.IDLE

	# Internals

	def _build_user_message(self, thread_id: str, text: str) -> Message:
		return Message(
			id=self._unique_message_id(),
			created_at=int(time.time()),
			thread_id=thread_id,
			role="user",
			content=[MessageContent(type="text", text=MessageText(value=text))],
		)

	def _unique_message_id(self) -> str:
		existing = self.state.message_ids()
		message_id = self._id_factory()
		while message_id in existing:
			message_id = self._id_factory()
		return message_id

	async def _harvest(self, remote_messages: Iterable[Message]) -> List[Message]:
		"""Append assistant messages absent from the view, oldest first."""
		seen = self.state.message_ids()
		fresh: List[Message] = []
		for message in remote_messages:
			if message.role != "assistant" or message.id in seen:
				continue
			seen.add(message.id)
			fresh.append(message)
		fresh.sort(key=lambda message: message.created_at)
		if fresh:
			await self._append(fresh)
			LOGGER.info("Appended %d assistant message(s) to thread %s", len(fresh), self.thread_id)
		return fresh

	async def _append(self, messages: List[Message]) -> None:
		await self.message_log.add_all(messages)
		self.state.messages.extend(messages)
		await self.events.publish(MessagesAppended(tuple(messages)))

	async def _fail(self, error: BaseException) -> None:
		domain_error = classify(error)
		LOGGER.error("Conversation on thread %s failed: %s", self.thread_id, domain_error.message)
		self.state.last_error = domain_error
		self.state.thread_ready = False
		await self.events.publish(ErrorSurfaced(domain_error))
		await self._set_state(LoadingState.IDLE)

	async def _set_state(self, state: LoadingState) -> None:
		self.state.loading_state = state
		await self.events.publish(StateChanged(state))


def _cancel_requested() -> bool:
	"""True when the running task itself has a pending cancellation (Python 3.11+)."""
	task = asyncio.current_task()
	cancelling = getattr(task, "cancelling", None)
	return bool(cancelling()) if cancelling is not None else False
