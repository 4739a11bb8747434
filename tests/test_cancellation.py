"""Tests for waitkit.cancellation module."""

import threading

from waitkit.cancellation import CancellationToken


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_initial_state(self):
        token = CancellationToken()
        assert not token.cancelled
        assert token.reason is None
        assert token.wait(0) is False

    def test_cancel(self):
        token = CancellationToken()
        token.cancel("deploy aborted")
        assert token.cancelled
        assert token.reason == "deploy aborted"
        assert token.wait(0) is True

    def test_cancel_is_one_shot(self):
        token = CancellationToken()
        token.cancel("first")
        token.cancel("second")
        assert token.reason == "first"

    def test_callbacks_run_once(self):
        token = CancellationToken()
        calls = []
        token.add_callback(lambda: calls.append("a"))
        token.cancel()
        token.cancel()
        assert calls == ["a"]

    def test_callback_after_cancel_runs_immediately(self):
        token = CancellationToken()
        token.cancel()
        calls = []
        token.add_callback(lambda: calls.append("late"))
        assert calls == ["late"]

    def test_remove_callback(self):
        token = CancellationToken()
        calls = []

        def callback():
            calls.append(1)

        token.add_callback(callback)
        token.remove_callback(callback)
        token.remove_callback(callback)
        token.cancel()
        assert calls == []

    def test_wakes_waiting_thread(self):
        token = CancellationToken()
        woke = threading.Event()

        def sleeper():
            if token.wait(5):
                woke.set()

        thread = threading.Thread(target=sleeper)
        thread.start()
        token.cancel()
        thread.join(5)
        assert woke.is_set()
