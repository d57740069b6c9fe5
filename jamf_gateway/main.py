"""FastAPI application entrypoint.

Provides ``/health``, circuit breaker diagnostics (``/health/circuits``
and ``/admin/circuits/reset``), request-ID middleware, and the FastMCP
SSE server mounted at ``/mcp``.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, Response

from jamf_gateway.core.config import Settings
from jamf_gateway.models.schemas import CircuitResetResponse, CircuitSnapshot, HealthResponse
from jamf_gateway.security.output_sanitizer import OutputSanitizer
from jamf_gateway.tool_dispatcher import JamfDispatcher
from jamf_gateway.write_queue import create_tool_write_queue

settings = Settings()

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG_MODE else settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_start_time = time.monotonic()

dispatcher = JamfDispatcher(settings)
write_queue = create_tool_write_queue(settings)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    await dispatcher.close()


app = FastAPI(
    title=settings.SERVICE_NAME,
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next) -> Response:
    """Assign or preserve a unique request ID on every request."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Return service health with name, version, status, and uptime."""
    return HealthResponse(
        service=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        status="healthy",
        uptime_seconds=round(time.monotonic() - _start_time, 2),
    )


@app.get("/health/circuits", response_model=list[CircuitSnapshot])
async def circuits() -> list[CircuitSnapshot]:
    """Report every circuit breaker the dispatcher has created so far."""
    return [CircuitSnapshot(**snap) for snap in dispatcher.resilience.all_snapshots()]


@app.post("/admin/circuits/reset", response_model=CircuitResetResponse)
async def reset_circuits(key: str | None = None) -> CircuitResetResponse:
    """Forget one breaker (``?key=``) or all of them."""
    dispatcher.resilience.reset(key)
    logger.warning("Circuit breaker reset requested for %s", key or "all keys")
    return CircuitResetResponse(
        reset=key or "*",
        remaining=list(dispatcher.resilience.circuit_breakers),
    )


# ── MCP Protocol Server ────────────────────────────────────────────────

_config_path = Path(__file__).parent.parent / "config" / "tools.yaml"

if _config_path.exists():
    from jamf_gateway.server import create_mcp_server
    from jamf_gateway.tool_registry import ToolRegistry

    _registry = ToolRegistry(
        _config_path,
        write_prefixes=settings.WRITE_TOOL_PREFIXES,
        namespace_prefix=settings.SKILL_TOOL_PREFIX,
    )
    mcp_server = create_mcp_server(
        _registry,
        dispatcher,
        OutputSanitizer(),
        settings,
        write_queue=write_queue,
    )
    app.mount("/mcp", mcp_server.http_app(transport="sse"))
    logger.info("MCP server mounted at /mcp with %d tools", _registry.tool_count)
else:
    logger.warning("config/tools.yaml not found, MCP server not mounted")
