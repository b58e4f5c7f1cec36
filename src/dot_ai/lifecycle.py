"""Process lifecycle of the dot-ai MCP server.

The controller runs the boot stages strictly in order:

    validating -> initializing -> starting -> running -> shutting_down -> terminated

and owns the decision of how the process ends. Every fatal condition before
`running` ends with exit code 1 without the MCP server ever being stopped
(there is nothing to stop). A shutdown signal while running stops the server
exactly once and ends with exit code 0, even if stopping fails. Once the exit
code is decided, a transport still blocked on stdin does not keep the process
alive.
"""

from __future__ import annotations

import functools
import logging
import os
import signal
import sys
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import TracebackType
from typing import NoReturn, Protocol

import anyio
import anyio.to_thread
from anyio.abc import TaskGroup, TaskStatus
from pydantic import ValidationError

from dot_ai._exception_utils import describe_error, open_task_group
from dot_ai.core import DomainService, DotAI
from dot_ai.exceptions import LifecycleError, PreflightError
from dot_ai.preflight import validate_session_dir
from dot_ai.server import SERVER_METADATA, MCPServer, ServerMetadata
from dot_ai.settings import SessionSettings, Settings, describe_validation_error

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


class LifecycleState(str, Enum):
    CREATED = "created"
    VALIDATING = "validating"
    INITIALIZING = "initializing"
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


_NEXT_STATE: dict[LifecycleState, LifecycleState] = {
    LifecycleState.CREATED: LifecycleState.VALIDATING,
    LifecycleState.VALIDATING: LifecycleState.INITIALIZING,
    LifecycleState.INITIALIZING: LifecycleState.STARTING,
    LifecycleState.STARTING: LifecycleState.RUNNING,
    LifecycleState.RUNNING: LifecycleState.SHUTTING_DOWN,
}


@dataclass(frozen=True)
class ExitOutcome:
    """How the process ends."""

    message: str
    exit_code: int


class ProtocolServer(Protocol):
    failure: Exception | None

    @property
    def transport_closed(self) -> bool: ...

    async def start(self, task_group: TaskGroup) -> None: ...

    async def stop(self) -> None: ...

    async def wait_closed(self) -> None: ...


DomainFactory = Callable[[Settings, Path], DomainService]
ServerFactory = Callable[[DomainService, ServerMetadata], ProtocolServer]


class LifecycleController:
    """Boots, runs and shuts down the MCP server process.

    Args:
        settings: process settings; loaded from the environment during the
            validating stage when omitted
        domain_factory: builds the domain service from the settings and the
            validated session directory
        server_factory: builds the protocol server handle
        metadata: identity reported to MCP clients
        signals: signals that trigger a graceful shutdown
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        domain_factory: DomainFactory = DotAI.from_settings,
        server_factory: ServerFactory = MCPServer,
        metadata: ServerMetadata = SERVER_METADATA,
        signals: Sequence[signal.Signals] = SHUTDOWN_SIGNALS,
    ) -> None:
        self._settings = settings
        self._domain_factory = domain_factory
        self._server_factory = server_factory
        self._metadata = metadata
        self._signals = tuple(signals)
        self._state = LifecycleState.CREATED
        self._outcome: ExitOutcome | None = None
        self._shutdown_requested: anyio.Event | None = None
        self._shutdown_reason: str | None = None
        self._fault_handlers_installed = False
        self.server: ProtocolServer | None = None

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def outcome(self) -> ExitOutcome | None:
        return self._outcome

    def install_fault_handlers(self) -> None:
        """Route uncaught exceptions from any thread to the fatal exit path."""
        if self._fault_handlers_installed:
            return
        sys.excepthook = self._on_uncaught_exception
        threading.excepthook = self._on_thread_exception
        self._fault_handlers_installed = True

    def request_shutdown(self, reason: str) -> None:
        """Ask a running server to shut down gracefully.

        The first reason wins. A request made while booting takes effect as
        soon as the server is running.
        """
        if self._shutdown_reason is None:
            self._shutdown_reason = reason
        if self._shutdown_requested is not None:
            self._shutdown_requested.set()

    def execute(self) -> NoReturn:
        """Run the server to completion and exit the process."""
        try:
            outcome = anyio.run(functools.partial(self.run, abandon_transport=True))
        except Exception as e:
            outcome = self._fault(e)
        sys.exit(outcome.exit_code)

    async def run(self, *, abandon_transport: bool = False) -> ExitOutcome:
        """Boot, serve and shut down; returns how the process should end.

        Args:
            abandon_transport: once the outcome is decided, end the process
                right away if the server's transport is still held open
                (a stdin read blocked in a worker thread would otherwise keep
                the event loop alive until the client sends EOF)
        """
        self._shutdown_requested = anyio.Event()
        if self._shutdown_reason is not None:
            self._shutdown_requested.set()

        async with open_task_group() as tg:
            if self._signals:
                await tg.start(self._watch_signals)
            outcome = await self._boot_and_serve(tg)
            if abandon_transport and self.server is not None and not self.server.transport_closed:
                self._exit_now(self._terminate(outcome))
            tg.cancel_scope.cancel()
        return self._terminate(outcome)

    async def _boot_and_serve(self, task_group: TaskGroup) -> ExitOutcome:
        self._transition(LifecycleState.VALIDATING)
        logger.info("Validating MCP server configuration...")
        settings: Settings | None
        config_error: ValidationError | None = None
        try:
            settings = self._settings if self._settings is not None else Settings()
        except ValidationError as e:
            # a missing session directory is reported ahead of any other setting
            config_error = e
            settings = None
        session_value = settings.session_dir if settings is not None else SessionSettings().session_dir

        try:
            session_dir = await anyio.to_thread.run_sync(validate_session_dir, session_value)
        except PreflightError as e:
            outcome = self._fatal(str(e))
            for remedy in e.remedies:
                logger.error(remedy)
            return outcome
        except OSError as e:
            return self._fatal(f"Session directory validation failed: {describe_error(e)}")
        if settings is None:
            assert config_error is not None
            return self._fatal(f"Invalid MCP server configuration: {describe_validation_error(config_error)}")
        self._settings = settings
        logger.info(f"Session directory validated: {session_dir}")

        self._transition(LifecycleState.INITIALIZING)
        logger.info("Initializing DevOps AI Toolkit...")
        try:
            with anyio.move_on_after(settings.startup_timeout) as deadline:
                dot_ai = self._domain_factory(settings, session_dir)
                await dot_ai.initialize_without_cluster()
        except Exception as e:
            return self._fatal(f"Failed to initialize DevOps AI Toolkit: {describe_error(e)}")
        if deadline.cancelled_caught:
            return self._fatal(f"DevOps AI Toolkit initialization timed out after {settings.startup_timeout}s")
        logger.info("DevOps AI Toolkit initialized successfully")
        logger.info("Cluster connectivity will be checked when needed by individual tools")

        self._transition(LifecycleState.STARTING)
        logger.info("Starting DevOps AI Toolkit MCP server...")
        try:
            with anyio.move_on_after(settings.startup_timeout) as deadline:
                server = self._server_factory(dot_ai, self._metadata)
                await server.start(task_group)
        except Exception as e:
            return self._fatal(f"Failed to start DevOps AI Toolkit MCP server: {describe_error(e)}")
        if deadline.cancelled_caught:
            return self._fatal(f"DevOps AI Toolkit MCP server start timed out after {settings.startup_timeout}s")
        self.server = server

        self._transition(LifecycleState.RUNNING)
        logger.info("DevOps AI Toolkit MCP server started successfully")
        reason = await self._wait_for_shutdown(server)

        self._transition(LifecycleState.SHUTTING_DOWN)
        logger.info(f"Shutting down DevOps AI Toolkit MCP server ({reason})...")
        await self._stop_server(server, settings.shutdown_timeout)

        if server.failure is not None:
            return self._fatal(f"MCP server terminated unexpectedly: {describe_error(server.failure)}")
        return ExitOutcome(f"DevOps AI Toolkit MCP server stopped ({reason})", 0)

    async def _wait_for_shutdown(self, server: ProtocolServer) -> str:
        assert self._shutdown_requested is not None
        async with anyio.create_task_group() as tg:
            tg.start_soon(self._watch_server, server)
            await self._shutdown_requested.wait()
            tg.cancel_scope.cancel()
        assert self._shutdown_reason is not None
        return self._shutdown_reason

    async def _stop_server(self, server: ProtocolServer, timeout: float | None) -> None:
        # stop() is awaited once; its failure must not keep the process alive
        with anyio.move_on_after(timeout) as scope:
            try:
                await server.stop()
            except Exception as e:
                logger.error(f"Error while stopping MCP server: {describe_error(e)}")
        if scope.cancelled_caught:
            logger.warning(f"MCP server did not stop within {timeout}s")

    async def _watch_server(self, server: ProtocolServer) -> None:
        await server.wait_closed()
        self.request_shutdown("client disconnected" if server.failure is None else "server error")

    async def _watch_signals(self, *, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
        with anyio.open_signal_receiver(*self._signals) as received:
            task_status.started()
            async for signum in received:
                name = signal.Signals(signum).name
                if self._state is LifecycleState.RUNNING:
                    logger.debug(f"Received {name}")
                else:
                    logger.info(f"Received {name} while {self._state.value}; shutting down once the server is running")
                self.request_shutdown(name)

    def _transition(self, state: LifecycleState) -> None:
        if state is LifecycleState.TERMINATED or _NEXT_STATE.get(self._state) is state:
            if self._state is not LifecycleState.TERMINATED:
                self._state = state
            return
        raise LifecycleError(f"Illegal lifecycle transition {self._state.value} -> {state.value}")

    def _terminate(self, outcome: ExitOutcome) -> ExitOutcome:
        self._transition(LifecycleState.TERMINATED)
        self._outcome = outcome
        return outcome

    def _fatal(self, message: str) -> ExitOutcome:
        logger.critical(f"FATAL: {message}")
        return ExitOutcome(message, 1)

    def _exit_now(self, outcome: ExitOutcome) -> NoReturn:
        logger.debug("MCP transport is still held open; exiting without waiting for it")
        for handler in logging.getLogger().handlers:
            handler.flush()
        sys.stderr.flush()
        os._exit(outcome.exit_code)

    def _fault(self, exc: BaseException) -> ExitOutcome:
        message = f"Uncaught exception in MCP server: {describe_error(exc)}"
        logger.critical(message, exc_info=exc)
        return self._terminate(ExitOutcome(message, 1))

    def _on_uncaught_exception(
        self, exc_type: type[BaseException], exc: BaseException, tb: TracebackType | None
    ) -> None:
        # the interpreter exits with status 1 after this hook returns
        self._fault(exc.with_traceback(tb))

    def _on_thread_exception(self, args: threading.ExceptHookArgs) -> None:
        if args.exc_type is SystemExit or args.exc_value is None:
            return
        self._fault(args.exc_value)
        sys.stderr.flush()
        os._exit(1)
