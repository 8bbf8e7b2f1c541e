from __future__ import annotations

import asyncio
import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from prom2grafana import __version__
from prom2grafana.config import Settings, load_settings, setup_logging
from prom2grafana.errors import GenerationError, GenerationTimeout
from prom2grafana.llm_client import LLMClient
from prom2grafana.models import ConvertRequest, ErrorResponse
from prom2grafana.render import render_index_html

log = logging.getLogger(__name__)

# Maximum request body size (1MB)
MAX_REQUEST_BODY_BYTES = 1 << 20
# Wall-clock budget for one conversion, across all model attempts
CONVERT_TIMEOUT_SECS = 30.0

STATIC_DIR = Path(__file__).with_name("static")

router = APIRouter()


class PayloadTooLarge(Exception):
    pass


async def _read_limited_body(request: Request, limit: int) -> bytes:
    """Read the body, failing as soon as it is known to exceed `limit` bytes."""
    declared = request.headers.get("content-length")
    if declared:
        try:
            if int(declared) > limit:
                raise PayloadTooLarge(f"declared content-length {declared} > {limit}")
        except ValueError:
            pass
    buf = bytearray()
    async for chunk in request.stream():
        buf.extend(chunk)
        if len(buf) > limit:
            raise PayloadTooLarge(f"body exceeds {limit} bytes")
    return bytes(buf)


def _error_response(status_code: int, message: str, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    log.debug("http: sending error response code=%d message=%s", status_code, message)
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
        headers=headers,
    )


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = "Method not allowed" if exc.status_code == 405 else str(exc.detail)
    return _error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


@router.get("/", response_class=HTMLResponse)
def root() -> str:
    return render_index_html()


@router.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@router.get("/llm/status")
def llm_status_endpoint(request: Request) -> Dict[str, Any]:
    return request.app.state.llm.status()


@router.post("/convert")
async def convert(request: Request):
    start = time.monotonic()
    log.info("convert: handling request method=%s path=%s", request.method, request.url.path)

    try:
        raw = await _read_limited_body(request, MAX_REQUEST_BODY_BYTES)
    except PayloadTooLarge as exc:
        log.error("convert: request body too large err=%s", exc)
        return _error_response(413, "Request body too large (max 1MB)")

    try:
        req = ConvertRequest.model_validate_json(raw)
    except ValidationError as exc:
        log.error("convert: failed to decode request body err=%s", exc.errors()[:1])
        return _error_response(400, "Invalid request body")

    if not req.metrics.strip():
        log.debug("convert: empty metrics provided")
        return _error_response(400, "Metrics cannot be empty")

    log.info("convert: request validated metrics_length=%d", len(req.metrics))

    llm = request.app.state.llm
    timeout = CONVERT_TIMEOUT_SECS
    deadline = time.monotonic() + timeout
    # None outside a running lifespan: the loop default executor is used
    executor = getattr(request.app.state, "executor", None)
    loop = asyncio.get_running_loop()
    try:
        work = loop.run_in_executor(executor, llm.generate_dashboard, req.metrics, deadline)
        result = await asyncio.wait_for(work, timeout=timeout)
    except (asyncio.TimeoutError, GenerationTimeout) as exc:
        log.error("convert: generation timed out after %.1fs err=%r", timeout, exc)
        return _error_response(504, "Request timeout - please try again")
    except GenerationError as exc:
        log.error("convert: generation failed err=%s", exc)
        return _error_response(500, "Failed to generate dashboard")
    except Exception:
        log.exception("convert: unexpected generation error")
        return _error_response(500, "Failed to generate dashboard")

    log.info(
        "convert: generated dashboard dashboard_size=%d alerts_size=%d",
        len(result.grafana_dashboard),
        len(result.prometheus_alerts),
    )
    response = JSONResponse(result.model_dump())
    log.info("convert: request completed total_ms=%d", int((time.monotonic() - start) * 1000))
    return response


def create_app(settings: Optional[Settings] = None, llm: Optional[Any] = None) -> FastAPI:
    """Build the FastAPI app.

    With no settings, they are loaded from the environment and a missing API
    key raises ConfigError here, before the server accepts connections.
    `llm` is anything with `generate_dashboard(metrics, deadline)` and
    `status()`; by default an LLMClient.
    """
    if settings is None:
        settings = load_settings()
        setup_logging(settings)
    if llm is None:
        llm = LLMClient(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        executor = ThreadPoolExecutor(max_workers=settings.workers, thread_name_prefix="convert")
        app.state.executor = executor
        log.info(
            "app.startup: version=%s base_url=%s models=%s workers=%d",
            __version__,
            settings.api_url,
            settings.models_to_try(),
            settings.workers,
        )
        try:
            yield
        finally:
            # In-flight conversions past their deadline are abandoned, not awaited
            app.state.executor = None
            executor.shutdown(wait=False)
            log.info("app.shutdown: executor stopped")

    app = FastAPI(title="prom2grafana", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.llm = llm
    app.state.executor = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allow_origins) or ["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        rid = str(uuid.uuid4())
        start = time.monotonic()
        request.state.request_id = rid
        response = None
        try:
            response = await call_next(request)
            return response
        finally:
            dur_ms = int((time.monotonic() - start) * 1000)
            log.info(
                "request: rid=%s method=%s path=%s status=%s dur_ms=%d",
                rid,
                request.method,
                request.url.path,
                getattr(response, "status_code", "?"),
                dur_ms,
            )

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR), html=False), name="static")
    app.include_router(router)
    return app
