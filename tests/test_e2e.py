"""Boot the real toolkit and MCP server handle, with memory streams in place of stdio."""

from pathlib import Path

import anyio
import pytest
from mcp.types import JSONRPCResponse

from dot_ai.core import DotAI
from dot_ai.lifecycle import ExitOutcome, LifecycleController, LifecycleState
from dot_ai.server import MCPServer, ServerMetadata
from dot_ai.settings import Settings
from tests.test_helpers import MemoryTransport, initialize_request

pytestmark = pytest.mark.anyio


def make_controller(session_dir: Path, transport: MemoryTransport) -> LifecycleController:
    def server_factory(dot_ai: DotAI, metadata: ServerMetadata) -> MCPServer:
        return MCPServer(dot_ai, metadata, transport=transport)

    return LifecycleController(
        Settings(session_dir=str(session_dir)),
        server_factory=server_factory,
        signals=(),
    )


async def test_serves_until_client_disconnects(tmp_path: Path):
    transport = MemoryTransport()
    controller = make_controller(tmp_path, transport)
    result: dict[str, ExitOutcome] = {}

    async def run() -> None:
        result["outcome"] = await controller.run()

    with anyio.fail_after(10):
        async with anyio.create_task_group() as tg:
            tg.start_soon(run)
            await transport.client_send.send(initialize_request())
            response = await transport.client_read.receive()
            await transport.client_send.aclose()

    await transport.aclose()
    root = response.message.root
    assert isinstance(root, JSONRPCResponse)
    assert root.result["serverInfo"]["name"] == "dot-ai"
    assert result["outcome"] == ExitOutcome("DevOps AI Toolkit MCP server stopped (client disconnected)", 0)
    assert list(tmp_path.iterdir()) == []


async def test_shutdown_request_stops_real_server(tmp_path: Path):
    transport = MemoryTransport()
    controller = make_controller(tmp_path, transport)
    result: dict[str, ExitOutcome] = {}

    async def run() -> None:
        result["outcome"] = await controller.run()

    with anyio.fail_after(10):
        async with anyio.create_task_group() as tg:
            tg.start_soon(run)
            while controller.state is not LifecycleState.RUNNING:
                await anyio.sleep(0.01)
            controller.request_shutdown("SIGTERM")

    await transport.aclose()
    assert result["outcome"].exit_code == 0
    assert controller.server is not None
    assert controller.server.failure is None
