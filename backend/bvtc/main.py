import logging
import sys

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse

from .client import ApiClient
from .config import (
    API_BASE, CAPTCHA_COOLDOWN, FRONTEND_DIR, HEADERS, LOG_LEVEL, PAGE_SIZE, POLL_INTERVAL,
    REQUEST_TIMEOUT, STREAM_MAX_RETRIES, STREAM_RETRY_DELAY,
)
from .errors import BvtcError, FlowError, InputError, LoginRequired, RequestTimeout
from .flow import UploadFlow
from .router import is_logged_in, router as api_router

logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)


def _error_status(exc: BvtcError) -> int:
    if isinstance(exc, LoginRequired):
        return 401
    if isinstance(exc, (InputError, FlowError)):
        return 400
    if isinstance(exc, RequestTimeout):
        return 504
    # Transport errors, application errors from the backend, aborted streams
    return 502


def _serve_index():
    index_path = FRONTEND_DIR / "index.html"
    if not index_path.exists():
        raise HTTPException(status_code=404, detail="Frontend 'index.html' not found.")
    return FileResponse(index_path)


def create_app(client=None) -> FastAPI:
    """
    Build the application.

    ``client`` replaces the ApiClient built from the environment (tests pass
    a fake one).
    """
    app = FastAPI(title="BVTC Front-end")

    # --- Event Handlers ---
    @app.on_event("startup")
    async def startup_event():
        api = client or ApiClient(API_BASE, timeout=REQUEST_TIMEOUT, headers=HEADERS)
        app.state.client = api
        app.state.flow = UploadFlow(
            api,
            page_size=PAGE_SIZE,
            poll_interval=POLL_INTERVAL,
            stream_max_retries=STREAM_MAX_RETRIES,
            stream_retry_delay=STREAM_RETRY_DELAY,
            captcha_cooldown=CAPTCHA_COOLDOWN,
        )
        logger.info("🚀 Front-end service started, backend at %s", getattr(api, "base_url", API_BASE))

    @app.on_event("shutdown")
    async def shutdown_event():
        # Stop polling/streaming before the HTTP session goes away
        await app.state.flow.close()
        await app.state.client.close()
        logger.info("🔄 Front-end service stopped, HTTP session closed.")

    # --- Errors become notifications ---
    @app.exception_handler(BvtcError)
    async def bvtc_error_handler(request: Request, exc: BvtcError):
        status = _error_status(exc)
        if status >= 500:
            logger.warning("%s %s: %s", request.method, request.url.path, exc.message)
        body = {"code": status, "msg": exc.message, "data": None}
        if isinstance(exc, LoginRequired):
            body["data"] = {"redirect": "/login"}
        return JSONResponse(status_code=status, content=body)

    # --- Middleware ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- API Router ---
    app.include_router(api_router)

    @app.get("/health", response_class=JSONResponse)
    async def health():
        return {"code": 200, "msg": "Server is healthy", "data": None}

    # --- Views ---
    # The main page and the playlist page need a NetEase login; the login page
    # bounces logged-in users to the main page.
    @app.get("/login")
    async def login_view(request: Request):
        if await is_logged_in(request.app.state.flow):
            return RedirectResponse("/bilibili")
        return _serve_index()

    @app.get("/")
    @app.get("/bilibili")
    @app.get("/playlists")
    async def guarded_view(request: Request):
        if not await is_logged_in(request.app.state.flow):
            return RedirectResponse("/login")
        return _serve_index()

    @app.get("/{file_path:path}", response_class=FileResponse)
    async def serve_frontend_files(file_path: str):
        """Serves other static files for the frontend, required for SPA routing."""
        file = FRONTEND_DIR / file_path
        if file.is_file() and FRONTEND_DIR.resolve() in file.resolve().parents:
            return FileResponse(file)
        return _serve_index()

    return app


app = create_app()
