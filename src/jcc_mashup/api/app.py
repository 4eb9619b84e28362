"""FastAPI application factory.

create_app() wires the session store, upstream client, auth flow and schedule
proxy onto app.state. The lifespan loads persisted sessions at startup, flushes
the store in the background on a fixed interval, and flushes once more at
shutdown.
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from src.jcc_mashup.api.routes import router
from src.jcc_mashup.auth import AuthFlow
from src.jcc_mashup.config import ProxyConfig, get_config
from src.jcc_mashup.errors import ProxyError
from src.jcc_mashup.logging import bind_request, clear_request, get_logger
from src.jcc_mashup.schedule import ScheduleProxy
from src.jcc_mashup.session import SessionStore
from src.jcc_mashup.upstream import UpstreamClient

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


async def _flush_periodically(store: SessionStore, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        await asyncio.to_thread(store.flush)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load sessions, run the periodic flush, flush again on shutdown."""
    store: SessionStore = app.state.store
    config: ProxyConfig = app.state.config

    await asyncio.to_thread(store.load)
    flusher = asyncio.create_task(
        _flush_periodically(store, config.session_flush_interval_seconds)
    )
    logger.info(
        "proxy_started",
        portal=config.online_base_url,
        session_file=config.session_file,
        flush_interval=config.session_flush_interval_seconds,
    )
    try:
        yield
    finally:
        flusher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await flusher
        await asyncio.to_thread(store.flush, True)
        logger.info("proxy_stopped", sessions=len(store))


async def _request_context(request: Request, call_next):
    request_id = bind_request(
        request.method, request.url.path, request.headers.get(REQUEST_ID_HEADER)
    )
    try:
        response = await call_next(request)
    finally:
        clear_request()
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


async def _proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    logger.info(
        "request_failed",
        path=request.url.path,
        status=exc.http_status,
        error=exc.message,
        type=type(exc).__name__,
    )
    return JSONResponse(exc.to_body(), status_code=exc.http_status)


def create_app(
    config: ProxyConfig | None = None,
    *,
    store: SessionStore | None = None,
    client: UpstreamClient | None = None,
) -> FastAPI:
    """Build the proxy application.

    Args:
        config: Settings; the get_config() singleton when omitted.
        store: Session store; one backed by config.session_file when omitted.
        client: Upstream client; a fresh requests-based client when omitted.

    Returns:
        Configured FastAPI app.
    """
    config = config or get_config()
    if store is None:
        store = SessionStore(config.session_file, config.session_max_age_ms)
    if client is None:
        client = UpstreamClient(config)

    app = FastAPI(
        title="JCC Studio Availability",
        description="Caches Daxko portal sessions and relays the class schedule.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.store = store
    app.state.auth_flow = AuthFlow(config, client)
    app.state.schedule_proxy = ScheduleProxy(config, client, store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(_request_context)
    app.add_exception_handler(ProxyError, _proxy_error_handler)
    app.include_router(router)

    if config.static_dir and Path(config.static_dir).is_dir():
        app.mount("/", StaticFiles(directory=config.static_dir, html=True), name="static")

    return app
