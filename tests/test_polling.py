"""Tests for the transition poller."""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from dossier.browser.polling import PollResult, poll_until_cleared
from dossier.core.errors import WaitTimeoutError


def scripted(*results):
    """Async predicate that replays results, then reports cleared."""
    queue = list(results)

    async def predicate():
        if not queue:
            return False
        value = queue.pop(0)
        if isinstance(value, Exception):
            raise value
        return value

    return predicate


class TestPollUntilCleared:
    """Test bounded polling."""

    @pytest.mark.asyncio
    async def test_clears_on_first_evaluation(self):
        """A state already gone clears after one interval."""
        result = await poll_until_cleared(scripted(), interval=0.001, deadline=1)

        assert result.cleared is True
        assert result.ticks == 1

    @pytest.mark.asyncio
    async def test_never_clears_respects_deadline(self):
        """Timeout is only reported once the deadline has elapsed."""
        async def always():
            return True

        result = await poll_until_cleared(always, interval=0.005, deadline=0.03)

        assert result.cleared is False
        assert result.elapsed_seconds >= 0.03
        assert result.ticks >= 2

    @pytest.mark.asyncio
    async def test_evaluation_errors_count_as_present(self):
        """Exceptions while the page navigates do not abort the wait."""
        predicate = scripted(RuntimeError("Execution context was destroyed"), True, False)

        result = await poll_until_cleared(predicate, interval=0.001, deadline=1)

        assert result.cleared is True
        assert result.ticks == 3
        assert "Execution context" in result.last_error

    @pytest.mark.asyncio
    async def test_on_tick_called_every_evaluation(self):
        """Heartbeat callback sees every tick in order."""
        ticks = []

        await poll_until_cleared(
            scripted(True, True, False),
            interval=0.001,
            deadline=1,
            on_tick=lambda tick, elapsed: ticks.append(tick),
        )

        assert ticks == [1, 2, 3]


class TestPollResult:
    """Test timeout conversion."""

    def test_raise_for_timeout(self):
        result = PollResult(cleared=False, elapsed_seconds=120.4, ticks=60)

        with pytest.raises(WaitTimeoutError) as exc_info:
            result.raise_for_timeout("Merge")

        assert "Merge did not complete within 120 seconds." == exc_info.value.message

    def test_cleared_does_not_raise(self):
        PollResult(cleared=True, elapsed_seconds=4.0, ticks=2).raise_for_timeout("Merge")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
