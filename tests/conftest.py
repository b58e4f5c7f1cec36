import pytest


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Keep the developer's environment and .env files out of Settings()."""
    for name in (
        "DOT_AI_SESSION_DIR",
        "DOT_AI_STARTUP_TIMEOUT",
        "DOT_AI_SHUTDOWN_TIMEOUT",
        "DOT_AI_LOG_LEVEL",
        "KUBECONFIG",
        "ANTHROPIC_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
