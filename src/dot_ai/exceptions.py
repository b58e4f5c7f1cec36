"""Custom exceptions for the dot-ai MCP server."""

from pathlib import Path


class DotAIError(Exception):
    """Base error for the dot-ai MCP server."""


class PreflightError(DotAIError):
    """The process environment cannot support the server.

    Preflight errors are operator-fixable: the message says what is wrong and
    `remedies` lists what to change before re-running the process.

    Attributes:
        path: the configured session directory, if one was configured
        remedies: human-readable lines describing how to fix the problem
    """

    def __init__(self, message: str, *, path: Path | None = None, remedies: list[str] | None = None):
        super().__init__(message)
        self.path = path
        self.remedies = remedies or []


class MissingSessionDirError(PreflightError):
    """The session directory variable is unset or empty."""


class SessionDirNotFoundError(PreflightError):
    """The session directory does not exist."""


class SessionDirNotADirectoryError(PreflightError):
    """The session directory path exists but is not a directory."""


class SessionDirNotWritableError(PreflightError):
    """A probe file could not be created and removed in the session directory."""


class DomainInitError(DotAIError):
    """Local initialization of the DevOps AI Toolkit failed."""


class ServerStartError(DotAIError):
    """The MCP server could not start accepting sessions."""


class LifecycleError(DotAIError):
    """An illegal lifecycle state transition was attempted."""
