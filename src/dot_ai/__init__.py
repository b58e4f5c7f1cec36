"""MCP server for the DevOps AI Toolkit.

Exposes the toolkit to AI assistants over the Model Context Protocol on stdio,
after checking that the process environment can hold session state.
"""

from dot_ai.core import DotAI
from dot_ai.exceptions import (
    DomainInitError,
    DotAIError,
    LifecycleError,
    MissingSessionDirError,
    PreflightError,
    ServerStartError,
    SessionDirNotADirectoryError,
    SessionDirNotFoundError,
    SessionDirNotWritableError,
)
from dot_ai.lifecycle import ExitOutcome, LifecycleController, LifecycleState
from dot_ai.preflight import validate_session_dir
from dot_ai.server import SERVER_METADATA, MCPServer, ServerMetadata
from dot_ai.settings import SessionSettings, Settings

__all__ = [
    "DomainInitError",
    "DotAI",
    "DotAIError",
    "ExitOutcome",
    "LifecycleController",
    "LifecycleError",
    "LifecycleState",
    "MCPServer",
    "MissingSessionDirError",
    "PreflightError",
    "SERVER_METADATA",
    "ServerMetadata",
    "ServerStartError",
    "SessionDirNotADirectoryError",
    "SessionDirNotFoundError",
    "SessionDirNotWritableError",
    "SessionSettings",
    "Settings",
    "validate_session_dir",
]
