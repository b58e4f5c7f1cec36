"""DevOps AI Toolkit facade used by the MCP server.

Only the boot contract lives here. The toolkit is initialized without a
cluster connection: connectivity is checked lazily by the tools that need it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from pydantic import SecretStr

from dot_ai.exceptions import DomainInitError
from dot_ai.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_KUBECONFIG = Path("~/.kube/config")


class DomainService(Protocol):
    """What the lifecycle controller needs from the domain service."""

    async def initialize_without_cluster(self) -> None: ...


class DotAI:
    """Entry point to the DevOps AI Toolkit."""

    def __init__(
        self,
        session_dir: Path,
        *,
        kubeconfig: Path | None = None,
        anthropic_api_key: SecretStr | None = None,
    ) -> None:
        self.session_dir = session_dir
        self._kubeconfig = kubeconfig
        self._anthropic_api_key = anthropic_api_key
        self._kubeconfig_path: Path | None = None
        self._initialized = False
        self.cluster_connected = False

    @classmethod
    def from_settings(cls, settings: Settings, session_dir: Path) -> DotAI:
        return cls(
            session_dir,
            kubeconfig=settings.kubeconfig,
            anthropic_api_key=settings.anthropic_api_key,
        )

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def kubeconfig_path(self) -> Path | None:
        """Kubeconfig the toolkit will use once a tool needs the cluster."""
        return self._kubeconfig_path

    @property
    def has_api_key(self) -> bool:
        return self._anthropic_api_key is not None and bool(self._anthropic_api_key.get_secret_value())

    async def initialize_without_cluster(self) -> None:
        """Perform local setup only. Never contacts the cluster."""
        if self._initialized:
            return

        if self._kubeconfig is not None:
            kubeconfig = self._kubeconfig.expanduser()
            if not kubeconfig.is_file():
                raise DomainInitError(f"Kubeconfig file not found: {kubeconfig} (from KUBECONFIG)")
        else:
            kubeconfig = DEFAULT_KUBECONFIG.expanduser()
            if not kubeconfig.is_file():
                logger.debug("No kubeconfig at %s; cluster tools will report it when used", kubeconfig)
        self._kubeconfig_path = kubeconfig

        if not self.has_api_key:
            logger.warning("ANTHROPIC_API_KEY is not set; AI-powered features will be unavailable")

        self._initialized = True
