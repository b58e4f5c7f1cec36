"""MCP server handle for the DevOps AI Toolkit.

Request routing, dispatch and wire encoding belong to the `mcp` low-level
server. This module only decides when it starts and stops serving.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

import anyio
from anyio.abc import TaskGroup, TaskStatus
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server
from mcp.shared.message import SessionMessage
from pydantic import BaseModel, ConfigDict, Field

from dot_ai.core import DomainService
from dot_ai.exceptions import ServerStartError

logger = logging.getLogger(__name__)

ReadStream = MemoryObjectReceiveStream[SessionMessage | Exception]
WriteStream = MemoryObjectSendStream[SessionMessage]
Transport = Callable[[], AbstractAsyncContextManager[tuple[ReadStream, WriteStream]]]


class ServerMetadata(BaseModel):
    """Identifies this server to connecting clients."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    version: str = Field(min_length=1)
    description: str = ""
    author: str = ""


SERVER_METADATA = ServerMetadata(
    name="dot-ai",
    version="0.1.0",
    description="Universal Kubernetes application deployment agent with AI-powered orchestration",
    author="Viktor Farcic",
)


class MCPServer:
    """Serves the DevOps AI Toolkit over MCP.

    `start()` returns once the transport is open and the server is accepting
    a session. Serving runs in a child task of the caller's task group until
    `stop()` is called or the client closes the session; a fault while
    serving is recorded in `failure` and never escapes the serving task.

    The session can end before the transport is released: the stdio
    transport reads stdin from a worker thread that only returns on the next
    line or EOF. `transport_closed` tells the two apart.
    """

    def __init__(self, dot_ai: DomainService, metadata: ServerMetadata, *, transport: Transport = stdio_server):
        self.dot_ai = dot_ai
        self.metadata = metadata
        self._transport = transport
        self._server: Server = Server(metadata.name, version=metadata.version, instructions=metadata.description or None)
        self._cancel_scope: anyio.CancelScope | None = None
        self._session_ended = anyio.Event()
        self._transport_released = anyio.Event()
        self.failure: Exception | None = None

    @property
    def started(self) -> bool:
        return self._cancel_scope is not None

    @property
    def transport_closed(self) -> bool:
        return self._transport_released.is_set()

    async def start(self, task_group: TaskGroup) -> None:
        if self._cancel_scope is not None:
            raise ServerStartError("MCP server already started")
        try:
            await task_group.start(self._serve)
        except Exception as e:
            self._cancel_scope = None
            raise ServerStartError(f"Could not open MCP transport: {e}") from e
        logger.debug("Serving %s %s by %s", self.metadata.name, self.metadata.version, self.metadata.author)

    async def stop(self) -> None:
        """Stop serving and wait for the session to end.

        Does nothing when the server never started or has already stopped.
        The transport may still be held open when this returns.
        """
        if self._cancel_scope is None:
            return
        self._cancel_scope.cancel()
        await self._session_ended.wait()

    async def wait_closed(self) -> None:
        await self._session_ended.wait()

    async def _serve(self, *, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
        with anyio.CancelScope() as scope:
            self._cancel_scope = scope
            started = False
            try:
                async with self._transport() as (read_stream, write_stream):
                    task_status.started()
                    started = True
                    try:
                        await self._server.run(read_stream, write_stream, self._server.create_initialization_options())
                    except Exception as e:
                        self._record_failure(e)
                    else:
                        logger.info("MCP client closed the session")
                    finally:
                        self._session_ended.set()
            except Exception as e:
                if not started:
                    raise
                self._record_failure(e)
            finally:
                self._session_ended.set()
                self._transport_released.set()

    def _record_failure(self, exc: Exception) -> None:
        logger.exception("MCP server stopped serving after an error")
        if self.failure is None:
            self.failure = exc
