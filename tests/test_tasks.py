"""Tests for background tasks, cancellation and the main-thread dispatcher."""

from __future__ import annotations

import threading

import pytest

from romkeeper.core.tasks import BackgroundTask, CancelToken, MainThreadDispatcher, run_inline


class TestCancelToken:
    def test_cancel(self) -> None:
        token = CancelToken()
        assert not token.is_cancelled()
        token.cancel()
        assert token.is_cancelled()


class TestBackgroundTask:
    def test_result(self) -> None:
        task = BackgroundTask(lambda token: 21 * 2).start()
        assert task.result(timeout=5) == 42
        assert not task.is_running()

    def test_exception_reraised(self) -> None:
        def boom(token: CancelToken) -> None:
            raise ValueError("bad input")

        task = BackgroundTask(boom).start()
        with pytest.raises(ValueError, match="bad input"):
            task.result(timeout=5)

    def test_cancel_reaches_worker(self) -> None:
        started = threading.Event()

        def wait_for_cancel(token: CancelToken) -> str:
            started.set()
            while not token.is_cancelled():
                threading.Event().wait(0.01)
            return "stopped"

        task = BackgroundTask(wait_for_cancel).start()
        started.wait(5)
        task.cancel()
        assert task.result(timeout=5) == "stopped"

    def test_timeout(self) -> None:
        release = threading.Event()
        task = BackgroundTask(lambda token: release.wait(5)).start()
        with pytest.raises(TimeoutError):
            task.result(timeout=0.01)
        release.set()
        assert task.result(timeout=5) is True


class TestMainThreadDispatcher:
    def test_posted_callbacks_run_on_drain(self) -> None:
        dispatcher = MainThreadDispatcher()
        calls: list[int] = []
        worker = threading.Thread(target=lambda: [dispatcher.post(lambda i=i: calls.append(i)) for i in range(3)])
        worker.start()
        worker.join()
        assert calls == []
        assert dispatcher.drain() == 3
        assert calls == [0, 1, 2]

    def test_callable_as_dispatch(self) -> None:
        dispatcher = MainThreadDispatcher()
        ran: list[int] = []
        dispatcher(lambda: ran.append(threading.get_ident()))
        dispatcher.drain()
        assert ran == [threading.get_ident()]

    def test_drain_off_owner_thread_refused(self) -> None:
        dispatcher = MainThreadDispatcher()
        errors: list[Exception] = []

        def drain() -> None:
            try:
                dispatcher.drain()
            except RuntimeError as e:
                errors.append(e)

        worker = threading.Thread(target=drain)
        worker.start()
        worker.join()
        assert len(errors) == 1

    def test_run_inline(self) -> None:
        calls: list[str] = []
        run_inline(lambda: calls.append("now"))
        assert calls == ["now"]
