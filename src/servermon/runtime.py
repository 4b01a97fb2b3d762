"""
Server bootstrap and graceful shutdown.

ServerRuntime owns the process-wide pieces: settings, the FastAPI app, the
WebSocket connection set and the shutdown token. Lifecycle:

    CREATED -> LISTENING -> SHUTTING_DOWN -> TERMINATED

Shutdown triggers and their exit codes:
    uncaught exception (main thread, other threads, server loop)   1
    unhandled asyncio task error                                   2
    SIGTERM / SIGINT                                               2

The first trigger closes the token; later triggers are ignored. If the server
is serving, the trigger only asks uvicorn to stop and the shutdown routine runs
once on the main thread after the server returns. Otherwise it runs at once.
"""

import asyncio
import enum
import signal
import socket
import sys
import threading
from collections.abc import Callable
from types import FrameType, TracebackType
from typing import Any, Optional

import uvicorn

from servermon.core import sentry
from servermon.core.config import Settings
from servermon.core.logging import get_logger
from servermon.main import create_app
from servermon.ws.connection_manager import ConnectionManager

logger = get_logger(__name__)

HANDLED_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class RuntimeState(str, enum.Enum):
    """Server lifecycle states."""

    CREATED = "CREATED"
    LISTENING = "LISTENING"
    SHUTTING_DOWN = "SHUTTING_DOWN"
    TERMINATED = "TERMINATED"


class ExitCode(enum.IntEnum):
    CLEAN = 0
    UNCAUGHT_FAULT = 1
    INTERRUPTED = 2


class ShutdownToken:
    """Closes exactly once and remembers the exit code of the first trigger."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._exit_code: Optional[ExitCode] = None
        self.reason: Optional[str] = None

    def close(self, exit_code: ExitCode, reason: str) -> bool:
        """Return True for the call that closed the token, False afterwards."""
        with self._lock:
            if self._exit_code is not None:
                return False
            self._exit_code = exit_code
            self.reason = reason
            return True

    @property
    def closed(self) -> bool:
        return self._exit_code is not None

    @property
    def exit_code(self) -> ExitCode:
        return self._exit_code if self._exit_code is not None else ExitCode.CLEAN


class _RuntimeServer(uvicorn.Server):
    """uvicorn server that reports exit signals to the runtime."""

    def __init__(self, runtime: "ServerRuntime", config: uvicorn.Config):
        super().__init__(config)
        self.runtime = runtime

    async def startup(self, sockets: Optional[list[socket.socket]] = None) -> None:
        await super().startup(sockets=sockets)
        if self.started:
            self.runtime.mark_listening()

    def handle_exit(self, sig: int, frame: Optional[FrameType]) -> None:
        super().handle_exit(sig, frame)
        self.runtime.handle_signal(sig, frame)


class ServerRuntime:
    """Owns the server process from startup to exit."""

    def __init__(
        self,
        settings: Settings,
        exit_func: Callable[[int], Any] = sys.exit,
    ):
        self.settings = settings
        self.connections = ConnectionManager()
        self.app = create_app(settings, self.connections)
        self.app.state.runtime = self
        self.token = ShutdownToken()
        self.state = RuntimeState.CREATED
        self._exit = exit_func
        self._server: Optional[_RuntimeServer] = None
        self._serving = False

    # --- lifecycle -------------------------------------------------------

    def start(self) -> None:
        """Install process hooks, serve until a trigger fires, then shut down."""
        self.install_process_hooks()

        config = uvicorn.Config(
            self.app,
            host=self.settings.host,
            port=self.settings.port,
            log_config=None,
        )
        self._server = _RuntimeServer(self, config)

        self._serving = True
        try:
            self._server.run()
        except SystemExit as exc:
            # uvicorn exits with 1 when it cannot bind
            if exc.code:
                logger.error("server.exited", code=exc.code)
                self.request_shutdown(ExitCode.UNCAUGHT_FAULT, "server exited")
        except Exception as exc:
            self.handle_uncaught_exception(type(exc), exc, exc.__traceback__)
        finally:
            self._serving = False

        self.shutdown(self.token.exit_code)

    def mark_listening(self) -> None:
        """Called once the sockets are bound."""
        self.state = RuntimeState.LISTENING
        logger.info("server.listening", host=self.settings.host, port=self.settings.port)

    def request_shutdown(self, exit_code: ExitCode, reason: str) -> bool:
        """Close the token; stop the server or shut down directly. False if already closing."""
        if not self.token.close(exit_code, reason):
            logger.debug("shutdown.already_requested", reason=reason)
            return False

        self.state = RuntimeState.SHUTTING_DOWN
        if self._serving and self._server is not None:
            self._server.should_exit = True
        else:
            self.shutdown(exit_code)
        return True

    def cleanup(self) -> None:
        """Release process resources before exit."""
        sentry.flush()

    def shutdown(self, exit_code: ExitCode) -> None:
        """Run cleanup and terminate with ``exit_code`` (1 if cleanup fails)."""
        if self.state is RuntimeState.TERMINATED:
            return
        self.state = RuntimeState.SHUTTING_DOWN
        logger.info("shutdown.start", exit_code=int(exit_code), reason=self.token.reason)

        try:
            self.cleanup()
            logger.info("shutdown.complete", exit_code=int(exit_code))
        except Exception as exc:
            logger.error("shutdown.failed", error=str(exc), exc_info=exc)
            exit_code = ExitCode.UNCAUGHT_FAULT

        self.state = RuntimeState.TERMINATED
        self._exit(int(exit_code))

    # --- triggers --------------------------------------------------------

    def install_process_hooks(self) -> None:
        """Route uncaught exceptions and termination signals into shutdown."""
        sys.excepthook = self.handle_uncaught_exception
        threading.excepthook = self._handle_thread_exception
        if threading.current_thread() is threading.main_thread():
            for sig in HANDLED_SIGNALS:
                signal.signal(sig, self.handle_signal)

    def handle_uncaught_exception(
        self,
        exc_type: type[BaseException],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        logger.error(
            "process.uncaught_exception",
            error=f"{exc_type.__name__}: {exc}",
            exc_info=(exc_type, exc, tb),
        )
        if exc is not None:
            sentry.capture_exception(exc)
        self.request_shutdown(ExitCode.UNCAUGHT_FAULT, "uncaught exception")

    def _handle_thread_exception(self, args: threading.ExceptHookArgs) -> None:
        self.handle_uncaught_exception(args.exc_type, args.exc_value, args.exc_traceback)

    def handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        """
        Event loop exception handler.

        A task whose exception was never retrieved counts as an unhandled
        rejection and shuts the server down. Anything else goes to the loop's
        default handler.
        """
        exc = context.get("exception")
        if exc is None or "future" not in context:
            loop.default_exception_handler(context)
            return

        logger.error(
            "process.unhandled_task_error",
            message=context.get("message"),
            error=f"{type(exc).__name__}: {exc}",
        )
        sentry.capture_exception(exc)
        self.request_shutdown(ExitCode.INTERRUPTED, "unhandled task error")

    def handle_signal(self, signum: int, frame: Optional[FrameType] = None) -> None:
        name = signal.Signals(signum).name
        logger.info("process.signal", signal=name)
        self.request_shutdown(ExitCode.INTERRUPTED, f"caught {name}")
