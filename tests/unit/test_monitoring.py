"""Unit tests for the global token error listeners."""

import asyncio
import sys

import pytest

from tests.helpers.mock_exceptions import MockBackendError, MockRefreshTokenError


@pytest.fixture
def received(runtime):
    events = []
    runtime.subscribe(events.append)
    return events


@pytest.fixture
def previous_hook(monkeypatch):
    calls = []
    monkeypatch.setattr(sys, "excepthook", lambda *args: calls.append(args))
    return calls


class TestRecoveryMonitor:
    """Test install/uninstall and routing of stray errors."""

    @pytest.mark.asyncio
    async def test_install_is_idempotent(self, runtime, previous_hook):
        loop = asyncio.get_running_loop()
        uninstall = runtime.install_monitoring()
        handler = loop.get_exception_handler()
        hook = sys.excepthook

        runtime.install_monitoring()
        assert loop.get_exception_handler() is handler
        assert sys.excepthook is hook
        assert runtime.diagnostics()["monitoring_installed"] is True

        uninstall()
        assert loop.get_exception_handler() is None
        assert sys.excepthook is not hook
        assert runtime.monitor.installed is False
        await runtime.aclose()

    @pytest.mark.asyncio
    async def test_unhandled_task_token_error_recovers(self, runtime, received, previous_hook):
        loop = asyncio.get_running_loop()
        runtime.install_monitoring()

        loop.call_exception_handler({
            "message": "Task exception was never retrieved",
            "exception": MockRefreshTokenError(),
        })
        await runtime.monitor.drain()

        assert len(received) == 1
        assert received[0].context == "unhandled-task"
        await runtime.aclose()

    @pytest.mark.asyncio
    async def test_other_loop_errors_passed_on(self, runtime, received, previous_hook):
        loop = asyncio.get_running_loop()
        seen = []
        loop.set_exception_handler(lambda lp, context: seen.append(context))
        try:
            runtime.install_monitoring()
            loop.call_exception_handler({
                "message": "boom",
                "exception": MockBackendError("Internal Server Error", 500),
            })
            await runtime.monitor.drain()

            assert received == []
            assert seen[0]["message"] == "boom"

            runtime.monitor.uninstall()
            assert loop.get_exception_handler() is not None
        finally:
            loop.set_exception_handler(None)
        await runtime.aclose()

    @pytest.mark.asyncio
    async def test_uncaught_token_error_recovers(self, runtime, received, previous_hook):
        runtime.install_monitoring()
        error = MockRefreshTokenError()

        sys.excepthook(type(error), error, None)
        await asyncio.sleep(0)
        await runtime.monitor.drain()

        assert len(received) == 1
        assert received[0].context == "global-error"
        assert previous_hook[0][1] is error
        await runtime.aclose()

    @pytest.mark.asyncio
    async def test_uncaught_other_error_ignored(self, runtime, received, previous_hook):
        runtime.install_monitoring()
        error = ValueError("bad input")

        sys.excepthook(type(error), error, None)
        await asyncio.sleep(0)

        assert received == []
        assert len(previous_hook) == 1
        await runtime.aclose()

    def test_uncaught_without_running_loop(self, runtime, received, previous_hook):
        """Outside a running loop recovery runs to completion synchronously."""
        loop = asyncio.new_event_loop()
        try:
            runtime.install_monitoring(loop)
            error = MockRefreshTokenError()
            sys.excepthook(type(error), error, None)
            assert len(received) == 1
            assert received[0].context == "global-error"
        finally:
            runtime.monitor.uninstall()
            loop.close()
