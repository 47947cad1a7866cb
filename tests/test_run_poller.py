"""Tests for RunPoller.

Tests cover:
- Termination on completion after the expected number of checks
- Terminal failure statuses
- Status-call failures stopping the timer at once
- Explicit and caller-side cancellation
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from services.conversation.run_poller import RunPoller
from services.openai.assistant_client import AssistantClient
from services.openai.error_classifier import NetworkError, RunFailedError

from conftest import THREAD_ID


@pytest.fixture
def client() -> AsyncMock:
    return AsyncMock(spec=AssistantClient)


class TestRunPollerCompletion:
    """Test successful polling."""

    @pytest.mark.asyncio
    async def test_resolves_after_fourth_check(self, client, make_run) -> None:
        """Test queued, queued, in_progress, completed resolves on the 4th check only."""
        client.get_run_status.side_effect = [
            make_run("queued"),
            make_run("queued"),
            make_run("in_progress"),
            make_run("completed"),
        ]
        poller = RunPoller(client, interval=0)

        run = await poller.poll(THREAD_ID, "run_1")
        await asyncio.sleep(0)

        assert run.is_completed
        assert poller.check_count == 4
        assert client.get_run_status.await_count == 4
        client.get_run_status.assert_awaited_with(THREAD_ID, "run_1")
        assert not poller.is_polling

    @pytest.mark.asyncio
    async def test_unknown_status_keeps_polling(self, client, make_run) -> None:
        """Test statuses outside the terminal set are treated as in progress."""
        client.get_run_status.side_effect = [make_run("requires_action"), make_run("completed")]
        poller = RunPoller(client, interval=0)

        await poller.poll(THREAD_ID, "run_1")

        assert poller.check_count == 2

    @pytest.mark.asyncio
    async def test_interval_override(self, client, make_run) -> None:
        """Test the per-call interval wins over the constructor default."""
        client.get_run_status.return_value = make_run("completed")
        poller = RunPoller(client, interval=60)

        run = await asyncio.wait_for(poller.poll(THREAD_ID, "run_1", interval=0), timeout=1)

        assert run.is_completed


class TestRunPollerFailures:
    """Test failure exits."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["failed", "cancelled", "expired", "incomplete"])
    async def test_terminal_failure_raises(self, client, make_run, status) -> None:
        """Test every failure status raises RunFailedError on the first tick."""
        client.get_run_status.return_value = make_run(status)
        poller = RunPoller(client, interval=0)

        with pytest.raises(RunFailedError) as exc_info:
            await poller.poll(THREAD_ID, "run_1")

        assert exc_info.value.status == status
        assert poller.check_count == 1
        assert not poller.is_polling

    @pytest.mark.asyncio
    async def test_status_call_failure_propagates_without_retry(self, client, make_run) -> None:
        """Test a failed status check stops polling immediately."""
        client.get_run_status.side_effect = [make_run("queued"), NetworkError("timed out"), make_run("completed")]
        poller = RunPoller(client, interval=0)

        with pytest.raises(NetworkError):
            await poller.poll(THREAD_ID, "run_1")

        assert client.get_run_status.await_count == 2
        assert not poller.is_polling

    @pytest.mark.asyncio
    async def test_one_poll_at_a_time(self, client, make_run) -> None:
        """Test a second concurrent poll is refused."""
        client.get_run_status.return_value = make_run("queued")
        poller = RunPoller(client, interval=0.01)
        first = asyncio.create_task(poller.poll(THREAD_ID, "run_1"))
        await asyncio.sleep(0)

        with pytest.raises(RuntimeError):
            await poller.poll(THREAD_ID, "run_2")

        poller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first


class TestRunPollerCancellation:
    """Test teardown of the timer."""

    @pytest.mark.asyncio
    async def test_cancel_stops_timer(self, client, make_run) -> None:
        """Test cancel() ends the poll and no further checks happen."""
        client.get_run_status.return_value = make_run("in_progress")
        poller = RunPoller(client, interval=0.01)
        task = asyncio.create_task(poller.poll(THREAD_ID, "run_1"))
        await asyncio.sleep(0.05)

        poller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        checks = client.get_run_status.await_count
        await asyncio.sleep(0.05)

        assert client.get_run_status.await_count == checks
        assert not poller.is_polling

    @pytest.mark.asyncio
    async def test_caller_cancellation_stops_timer(self, client, make_run) -> None:
        """Test cancelling the awaiting task also cancels the timer."""
        client.get_run_status.return_value = make_run("queued")
        poller = RunPoller(client, interval=0.01)
        task = asyncio.create_task(poller.poll(THREAD_ID, "run_1"))
        await asyncio.sleep(0.03)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        checks = client.get_run_status.await_count
        await asyncio.sleep(0.05)

        assert client.get_run_status.await_count == checks

    def test_requires_client(self) -> None:
        """Test construction without a client is rejected."""
        with pytest.raises(ValueError):
            RunPoller(None)
