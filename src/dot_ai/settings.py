"""Process configuration for the dot-ai MCP server."""

from pathlib import Path

from pydantic import AliasChoices, Field, PositiveFloat, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

SESSION_DIR_ENV = "DOT_AI_SESSION_DIR"


class SessionSettings(BaseSettings):
    """The session directory setting on its own.

    Loading it cannot fail, so preflight can report on the session directory
    even when another setting is invalid.
    """

    model_config = SettingsConfigDict(
        env_prefix="DOT_AI_",
        env_file=".env",
        env_ignore_empty=True,
        populate_by_name=True,
        extra="ignore",
    )

    session_dir: str | None = None
    """Directory for session state. Required; checked during preflight."""


class Settings(SessionSettings):
    """dot-ai server settings.

    Settings use the prefix DOT_AI_, e.g. DOT_AI_SESSION_DIR=/tmp/dot-ai-sessions.
    KUBECONFIG and ANTHROPIC_API_KEY are read under their usual names.
    """

    startup_timeout: PositiveFloat | None = None
    """Upper bound in seconds for each of the initialize and start stages. None waits forever."""

    shutdown_timeout: PositiveFloat | None = 10.0
    """Upper bound in seconds for stopping the MCP server."""

    kubeconfig: Path | None = Field(default=None, validation_alias=AliasChoices("KUBECONFIG", "kubeconfig"))
    anthropic_api_key: SecretStr | None = Field(
        default=None, validation_alias=AliasChoices("ANTHROPIC_API_KEY", "anthropic_api_key")
    )


def describe_validation_error(error: ValidationError) -> str:
    """Condense a settings error to one line, one clause per offending field."""
    return "; ".join(f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in error.errors())
