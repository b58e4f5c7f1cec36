"""Preflight validation of the session directory.

The checks run before any stateful work so that operator misconfiguration is
reported at the earliest point. They are ordered: each check assumes the
previous ones passed.
"""

import logging
import secrets
from pathlib import Path

from dot_ai.exceptions import (
    MissingSessionDirError,
    SessionDirNotADirectoryError,
    SessionDirNotFoundError,
    SessionDirNotWritableError,
)
from dot_ai.settings import SESSION_DIR_ENV

logger = logging.getLogger(__name__)

PROBE_PREFIX = ".mcp-write-probe-"


def validate_session_dir(value: str | None) -> Path:
    """Check that the configured session directory can hold session state.

    Args:
        value: the raw configuration value, None when unset

    Returns:
        the validated directory

    Raises:
        MissingSessionDirError: the value is unset or empty
        SessionDirNotFoundError: nothing exists at the path
        SessionDirNotADirectoryError: the path is not a directory
        SessionDirNotWritableError: a probe file could not be written and removed
    """
    if not value:
        raise MissingSessionDirError(
            f"{SESSION_DIR_ENV} environment variable is required",
            remedies=[
                f"Set {SESSION_DIR_ENV} in .mcp.json env section",
                f'Example: "{SESSION_DIR_ENV}": "/tmp/dot-ai-sessions"',
                "Ensure the directory exists and is writable",
            ],
        )

    path = Path(value)
    if not path.exists():
        raise SessionDirNotFoundError(
            f"Session directory does not exist: {path}",
            path=path,
            remedies=[f"Solution: Create the directory or update {SESSION_DIR_ENV}"],
        )
    if not path.is_dir():
        raise SessionDirNotADirectoryError(
            f"Session directory path is not a directory: {path}",
            path=path,
            remedies=[f"Solution: Use a valid directory path in {SESSION_DIR_ENV}"],
        )

    _probe_write(path)
    return path


def _probe_write(directory: Path) -> None:
    probe = directory / f"{PROBE_PREFIX}{secrets.token_hex(8)}"
    try:
        probe.write_text("test")
        probe.unlink()
    except Exception as e:
        # the write may have succeeded and only the removal failed
        try:
            probe.unlink(missing_ok=True)
        except Exception:
            logger.debug("Could not remove write probe %s", probe)
        raise SessionDirNotWritableError(
            f"Session directory is not writable: {directory}",
            path=directory,
            remedies=["Solution: Fix directory permissions or use a different directory"],
        ) from e
