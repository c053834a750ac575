"""
Pytest configuration for alttext tests.

Why: Force AnyIO to use the asyncio backend (the background runner and the
funnel are asyncio-based) and keep process-wide state from leaking between
tests.
"""
import pytest

from alttext.enrichment import telemetry


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_telemetry():
    telemetry.reset_for_tests()
    yield
    telemetry.reset_for_tests()


@pytest.fixture(autouse=True)
def _dev_env(monkeypatch: pytest.MonkeyPatch):
    """Start every test from a permissive dev environment with in-memory stores."""
    monkeypatch.setenv("ALTTEXT_ENV", "dev")
    monkeypatch.setenv("AI_BACKEND", "stub")
    for var in (
        "DATABASE_URL",
        "SUPABASE_URL",
        "SUPABASE_SERVICE_ROLE_KEY",
        "AI_VISION_ADAPTER",
        "TRUST_PROXY_HEADERS",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("ADMIN_TOKEN", "test-admin-token")
