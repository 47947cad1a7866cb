"""Poll a run on a fixed interval until it reaches a terminal status."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional

from models.assistant_models import Run
from services.openai.assistant_client import AssistantClient
from services.openai.error_classifier import RunFailedError

LOGGER = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = float(os.getenv("RUN_POLL_INTERVAL", "2.0"))


class RunPoller:
	"""Drive a run to a terminal status without busy-waiting.

	The repeating timer is an `asyncio.Task` held in `self._timer`. It is
	cancelled on every exit from `poll` (completion, terminal failure, a
	failed status call, or cancellation of the caller) and can be stopped
	from outside with `cancel()`.
	"""

	def __init__(self, client: AssistantClient, interval: float = DEFAULT_POLL_INTERVAL) -> None:
		if client is None:
			raise ValueError("AssistantClient is required.")
		self.client = client
		self.interval = interval
		self.check_count = 0
		self._timer: Optional[asyncio.Task] = None

	@property
	def is_polling(self) -> bool:
		return self._timer is not None and not self._timer.done()

	async def poll(self, thread_id: str, run_id: str, interval: Optional[float] = None) -> Run:
		"""Return the run once it completes.

		Raises:
			RunFailedError: The run ended as failed, cancelled, expired or incomplete.
			AssistantServiceError: A status check failed; polling stops at once.
			asyncio.CancelledError: `cancel()` was called or the caller was cancelled.
		"""
		if self.is_polling:
			raise RuntimeError("A run is already being polled.")
		period = self.interval if interval is None else interval
		self.check_count = 0
		self._timer = asyncio.create_task(self._tick_until_terminal(thread_id, run_id, period))
		try:
			return await self._timer
		finally:
			self.cancel()
			self._timer = None

	def cancel(self) -> None:
		"""Stop the timer if it is still running."""
		if self._timer is not None and not self._timer.done():
			self._timer.cancel()

	async def _tick_until_terminal(self, thread_id: str, run_id: str, interval: float) -> Run:
		while True:
			await asyncio.sleep(interval)
			run = await self.client.get_run_status(thread_id, run_id)
			self.check_count += 1
			LOGGER.debug("Run %s status check %d: %s", run_id, self.check_count, run.status)
			if run.is_completed:
				LOGGER.info("Run %s completed after %d checks", run_id, self.check_count)
				return run
			if run.is_terminal:
				LOGGER.error("Run %s ended with status %s", run_id, run.status)
				raise RunFailedError(run)
