"""Tests for the command-line entry point."""

import os
import signal
import sys
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from dossier.main import install_signal_handlers


class TestSignalHandlers:
    """Test cancel-then-abort signal handling."""

    @pytest.fixture
    def loop(self):
        return MagicMock()

    def test_first_signal_cancels_and_restores_defaults(self, loop):
        """After the first signal a second one reaches the default handler."""
        runner = MagicMock()
        install_signal_handlers(loop, runner)

        handlers = {c.args[0]: c.args[1:] for c in loop.add_signal_handler.call_args_list}
        assert set(handlers) == {signal.SIGTERM, signal.SIGINT}

        callback, sig = handlers[signal.SIGINT]
        callback(sig)

        runner.cancel.assert_called_once()
        removed = {c.args[0] for c in loop.remove_signal_handler.call_args_list}
        assert removed == {signal.SIGTERM, signal.SIGINT}

    def test_unsupported_loop_is_tolerated(self, loop):
        loop.add_signal_handler.side_effect = NotImplementedError
        install_signal_handlers(loop, MagicMock())
        assert loop.add_signal_handler.call_count == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
