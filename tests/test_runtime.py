"""Tests for server bootstrap state and shutdown sequencing."""

import asyncio
import signal
import threading
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import uvicorn

from servermon.core.config import Settings
from servermon.runtime import ExitCode, RuntimeState, ServerRuntime, ShutdownToken, _RuntimeServer


@pytest.fixture
def exits() -> list[int]:
    return []


@pytest.fixture
def runtime(exits: list[int]) -> ServerRuntime:
    return ServerRuntime(Settings(), exit_func=exits.append)


class TestShutdownToken:
    def test_closes_once(self):
        token = ShutdownToken()

        assert token.close(ExitCode.UNCAUGHT_FAULT, "first") is True
        assert token.close(ExitCode.INTERRUPTED, "second") is False
        assert token.exit_code is ExitCode.UNCAUGHT_FAULT
        assert token.reason == "first"

    def test_open_token_reports_clean_exit(self):
        token = ShutdownToken()

        assert not token.closed
        assert token.exit_code is ExitCode.CLEAN


class TestShutdownTriggers:
    """Exit codes per trigger when no server is running."""

    def test_starts_in_created_state(self, runtime: ServerRuntime):
        assert runtime.state is RuntimeState.CREATED
        assert runtime.app.state.runtime is runtime
        assert runtime.app.state.connection_manager is runtime.connections

    def test_uncaught_exception_exits_with_1(self, runtime: ServerRuntime, exits: list[int]):
        error = ValueError("boom")

        runtime.handle_uncaught_exception(ValueError, error, None)

        assert exits == [1]
        assert runtime.state is RuntimeState.TERMINATED

    @pytest.mark.parametrize("signum", [signal.SIGTERM, signal.SIGINT])
    def test_signal_exits_with_2(self, runtime: ServerRuntime, exits: list[int], signum):
        runtime.handle_signal(signum)

        assert exits == [2]
        assert runtime.token.reason == f"caught {signal.Signals(signum).name}"

    def test_unhandled_task_error_exits_with_2(self, runtime: ServerRuntime, exits: list[int]):
        loop = MagicMock()
        context = {
            "message": "Task exception was never retrieved",
            "exception": RuntimeError("lost"),
            "future": object(),
        }

        runtime.handle_loop_exception(loop, context)

        assert exits == [2]
        loop.default_exception_handler.assert_not_called()

    def test_other_loop_errors_go_to_default_handler(self, runtime: ServerRuntime, exits: list[int]):
        loop = MagicMock()
        context = {"message": "socket.send() raised exception."}

        runtime.handle_loop_exception(loop, context)

        loop.default_exception_handler.assert_called_once_with(context)
        assert exits == []

    def test_thread_exception_exits_with_1(self, runtime: ServerRuntime, exits: list[int]):
        error = KeyError("worker")
        args = SimpleNamespace(exc_type=KeyError, exc_value=error, exc_traceback=None, thread=None)

        runtime._handle_thread_exception(args)

        assert exits == [1]

    def test_second_trigger_ignored(self, runtime: ServerRuntime, exits: list[int]):
        runtime.handle_uncaught_exception(ValueError, ValueError("first"), None)
        runtime.handle_signal(signal.SIGTERM)

        assert exits == [1]


class TestShutdownWhileServing:
    """A running server is stopped first; shutdown runs after it returns."""

    def test_trigger_stops_server(self, runtime: ServerRuntime, exits: list[int]):
        runtime._server = SimpleNamespace(should_exit=False)
        runtime._serving = True

        runtime.handle_signal(signal.SIGTERM)

        assert runtime._server.should_exit is True
        assert runtime.state is RuntimeState.SHUTTING_DOWN
        assert exits == []

        runtime._serving = False
        runtime.shutdown(runtime.token.exit_code)

        assert exits == [2]
        assert runtime.state is RuntimeState.TERMINATED

    def test_start_runs_shutdown_after_server_returns(
        self, runtime: ServerRuntime, exits: list[int], monkeypatch
    ):
        def fake_run(server):
            runtime.handle_signal(signal.SIGTERM)

        monkeypatch.setattr("servermon.runtime._RuntimeServer.run", fake_run)
        monkeypatch.setattr(runtime, "install_process_hooks", lambda: None)

        runtime.start()

        assert exits == [2]

    def test_start_converts_server_crash_to_exit_1(
        self, runtime: ServerRuntime, exits: list[int], monkeypatch
    ):
        def fake_run(server):
            raise OSError("address in use")

        monkeypatch.setattr("servermon.runtime._RuntimeServer.run", fake_run)
        monkeypatch.setattr(runtime, "install_process_hooks", lambda: None)

        runtime.start()

        assert exits == [1]

    def test_clean_server_exit(self, runtime: ServerRuntime, exits: list[int], monkeypatch):
        monkeypatch.setattr("servermon.runtime._RuntimeServer.run", lambda server: None)
        monkeypatch.setattr(runtime, "install_process_hooks", lambda: None)

        runtime.start()

        assert exits == [0]

    def test_bind_failure_exits_with_1(self, runtime: ServerRuntime, exits: list[int], monkeypatch):
        def fake_run(server):
            raise SystemExit(1)

        monkeypatch.setattr("servermon.runtime._RuntimeServer.run", fake_run)
        monkeypatch.setattr(runtime, "install_process_hooks", lambda: None)

        runtime.start()

        assert exits == [1]
        assert runtime.state is RuntimeState.TERMINATED


class TestListening:
    """The runtime reports LISTENING only after uvicorn has bound its sockets."""

    def test_listening_after_startup(self, runtime: ServerRuntime, monkeypatch):
        async def fake_startup(server, sockets=None):
            server.started = True

        monkeypatch.setattr(uvicorn.Server, "startup", fake_startup)
        server = _RuntimeServer(runtime, uvicorn.Config(runtime.app))

        assert runtime.state is RuntimeState.CREATED
        asyncio.run(server.startup())

        assert runtime.state is RuntimeState.LISTENING

    def test_not_listening_when_startup_fails(self, runtime: ServerRuntime, monkeypatch):
        async def fake_startup(server, sockets=None):
            server.should_exit = True

        monkeypatch.setattr(uvicorn.Server, "startup", fake_startup)
        server = _RuntimeServer(runtime, uvicorn.Config(runtime.app))

        asyncio.run(server.startup())

        assert runtime.state is RuntimeState.CREATED


class TestCleanupFailure:
    def test_fault_during_cleanup_forces_exit_1(
        self, runtime: ServerRuntime, exits: list[int], monkeypatch
    ):
        def broken_cleanup():
            raise RuntimeError("flush failed")

        monkeypatch.setattr(runtime, "cleanup", broken_cleanup)

        runtime.handle_signal(signal.SIGTERM)

        assert exits == [1]

    def test_shutdown_runs_once(self, runtime: ServerRuntime, exits: list[int]):
        runtime.shutdown(ExitCode.INTERRUPTED)
        runtime.shutdown(ExitCode.UNCAUGHT_FAULT)

        assert exits == [2]


class TestProcessHooks:
    def test_hooks_installed(self, runtime: ServerRuntime, monkeypatch):
        import sys

        installed = {}
        monkeypatch.setattr(sys, "excepthook", sys.excepthook)
        monkeypatch.setattr(threading, "excepthook", threading.excepthook)
        monkeypatch.setattr(
            "servermon.runtime.signal.signal",
            lambda sig, handler: installed.__setitem__(sig, handler),
        )

        runtime.install_process_hooks()

        assert sys.excepthook == runtime.handle_uncaught_exception
        assert threading.excepthook == runtime._handle_thread_exception
        assert installed == {
            signal.SIGTERM: runtime.handle_signal,
            signal.SIGINT: runtime.handle_signal,
        }
