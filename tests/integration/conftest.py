"""Integration test configuration.

Shared fixtures for tests that talk to a live Jamf Pro tenant.
All integration tests are marked with ``@pytest.mark.integration``.
Run them with: ``INTEGRATION=1 JAMF_URL=... JAMF_API_TOKEN=... pytest tests/integration/ -m integration``
"""

import os
from pathlib import Path

import pytest

from jamf_gateway.core.config import Settings
from jamf_gateway.security.output_sanitizer import OutputSanitizer
from jamf_gateway.server import create_mcp_server
from jamf_gateway.tool_dispatcher import JamfDispatcher
from jamf_gateway.tool_registry import ToolRegistry

# ── Auto-skip when INTEGRATION env not set ──────────────────────────────────


def pytest_collection_modifyitems(config, items):
    """Auto-skip integration tests when INTEGRATION env var is not set."""
    if os.environ.get("INTEGRATION", "").lower() in ("1", "true", "yes"):
        return
    skip_marker = pytest.mark.skip(reason="Set INTEGRATION=1 to run integration tests against a live Jamf Pro")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_marker)


@pytest.fixture
def settings() -> Settings:
    """Real settings from the JAMF_* environment.  Writes stay disabled."""
    settings = Settings(WRITE_ENABLED=False)
    if not settings.API_TOKEN:
        pytest.skip("JAMF_API_TOKEN not set")
    return settings


@pytest.fixture
async def dispatcher(settings):
    """Real JamfDispatcher with a live HTTP client."""
    dispatcher = JamfDispatcher(settings)
    yield dispatcher
    await dispatcher.close()


@pytest.fixture
def registry() -> ToolRegistry:
    """Real tool registry from config/tools.yaml."""
    return ToolRegistry(Path(__file__).resolve().parents[2] / "config" / "tools.yaml")


@pytest.fixture
def mcp_server(registry, dispatcher, settings):
    """Create a real MCP server, same as production."""
    return create_mcp_server(registry, dispatcher, OutputSanitizer(), settings)

